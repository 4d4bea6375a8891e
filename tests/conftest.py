import io

import numpy as np
import pytest
from PIL import Image


def _encode(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    if fmt == "JPEG":
        img = img.convert("RGB")
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory: solid-colour image, encoded (PNG unless fmt given)."""
    def _make(size=(100, 80), color=(0, 0, 255, 255), fmt="PNG") -> bytes:
        return _encode(Image.new("RGBA", size, color), fmt)
    return _make


@pytest.fixture
def noise_png():
    """Random RGB noise so the compressed payload is large enough to truncate."""
    rng = np.random.default_rng(0)
    arr = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
    return _encode(Image.fromarray(arr, "RGB"))

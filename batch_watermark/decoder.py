from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from .assets import DecodedImage, RawAsset
from .config import settings
from .errors import InvalidFormatError

Image.MAX_IMAGE_PIXELS = settings.max_image_pixels


def decode(raw: RawAsset) -> DecodedImage:
    """
    Decode raw bytes into an RGBA DecodedImage.

    Raises
    ------
    InvalidFormatError
        Declared media type is not an image, or the bytes cannot be
        identified / fully loaded.
    ZeroDimensionError
        Decoded raster has zero width or height.
    """
    if raw.media_type and not raw.media_type.lower().startswith("image/"):
        raise InvalidFormatError(f"not an image media type: {raw.media_type}")
    if not raw.data:
        raise InvalidFormatError("empty image data")

    try:
        with Image.open(io.BytesIO(raw.data)) as img:
            img.load()
            rgba = img.convert("RGBA")
    except UnidentifiedImageError as exc:
        raise InvalidFormatError(f"unrecognised image data ({_label(raw)})") from exc
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise InvalidFormatError(f"corrupt image data ({_label(raw)}): {exc}") from exc

    return DecodedImage(rgba)


def _label(raw: RawAsset) -> str:
    return raw.name or f"{len(raw.data)} bytes"

from __future__ import annotations

import io
from typing import Any, Dict, NamedTuple, Optional

from .assets import DecodedImage, EncodedOutput
from .config import settings
from .errors import UnsupportedFormatError

OUTPUT_STEM = "watermarked_image"


class _Format(NamedTuple):
    pil_format: str
    media_type: str
    ext: str
    flatten: bool   # drop alpha before saving


FORMATS: Dict[str, _Format] = {
    "png": _Format("PNG", "image/png", "png", False),
    "jpeg": _Format("JPEG", "image/jpeg", "jpg", True),
    "jpg": _Format("JPEG", "image/jpeg", "jpg", True),
    "webp": _Format("WEBP", "image/webp", "webp", False),
}


def _lookup(fmt: str) -> _Format:
    spec = FORMATS.get((fmt or "").lower().lstrip("."))
    if spec is None:
        raise UnsupportedFormatError(
            f"unsupported output format {fmt!r}; expected one of {sorted(FORMATS)}"
        )
    return spec


def _save_options(spec: _Format) -> Dict[str, Any]:
    if spec.pil_format == "JPEG":
        return {"quality": settings.jpeg_quality}
    if spec.pil_format == "WEBP":
        return {"lossless": True}
    return {}


def is_supported(fmt: str) -> bool:
    return (fmt or "").lower().lstrip(".") in FORMATS


def output_filename(index: int, fmt: str = "png") -> str:
    """watermarked_image_<1-based index>.<ext>"""
    return f"{OUTPUT_STEM}_{index + 1}.{_lookup(fmt).ext}"


def encode(img: DecodedImage, fmt: str = "png", *,
           filename: Optional[str] = None) -> EncodedOutput:
    """Serialise a composite. Same pixels + same format → same bytes."""
    spec = _lookup(fmt)
    pil = img.image.convert("RGB") if spec.flatten else img.image

    buf = io.BytesIO()
    try:
        pil.save(buf, format=spec.pil_format, **_save_options(spec))
    except (KeyError, OSError) as exc:
        # Pillow built without this codec
        raise UnsupportedFormatError(f"{spec.pil_format} encoder unavailable: {exc}") from exc

    return EncodedOutput(
        filename=filename or f"{OUTPUT_STEM}.{spec.ext}",
        data=buf.getvalue(),
        media_type=spec.media_type,
        format=spec.ext,
    )

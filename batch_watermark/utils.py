from __future__ import annotations

import io
import logging
from typing import Tuple

import structlog
from PIL import Image


def configure_logging(level: str = "INFO", json: bool = True) -> None:
    """Route structlog through a level filter and a JSON (or console) renderer."""
    lvl = logging.getLevelName(level.upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(lvl),
        cache_logger_on_first_use=False,
    )


def synthetic_image(
    size: Tuple[int, int] = (64, 64),
    color: Tuple[int, ...] = (255, 255, 255, 255),
    fmt: str = "PNG",
) -> bytes:
    """Solid-colour RGBA image, encoded. Used for health probes."""
    img = Image.new("RGBA", size, color=color)
    if fmt.upper() == "JPEG":
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()

from __future__ import annotations

import threading

import structlog

from .assets import DecodedImage, EncodedOutput, RawAsset
from .compositor import composite
from .decoder import decode
from .encoder import encode, output_filename
from .placement import compute_placement

log = structlog.get_logger()


class _Singleton(type):
    _inst = None
    _lock = threading.Lock()

    def __call__(cls, *a, **kw):
        with cls._lock:
            if cls._inst is None:
                cls._inst = super().__call__(*a, **kw)
        return cls._inst


class Watermarker(metaclass=_Singleton):
    """Stateless helper housing the per-image watermark routine."""

    def load_logo(self, raw: RawAsset) -> DecodedImage:
        logo = decode(raw)
        log.debug("logo_decoded", width=logo.width, height=logo.height)
        return logo

    def process(self, raw: RawAsset, logo: DecodedImage,
                index: int, fmt: str = "png") -> EncodedOutput:
        """
        • Decode the source image
        • Fit the logo into 15% of its shorter side, bottom-left
        • Composite logo over a copy of the source
        • Encode as `fmt` with the batch filename for `index`
        """
        src = decode(raw)
        placement = compute_placement(logo.width, logo.height, src.width, src.height)
        log.debug("placement", index=index, size=src.size,
                  draw_w=placement.draw_width, draw_h=placement.draw_height,
                  x=placement.x, y=placement.y)

        merged = composite(src, logo, placement)
        return encode(merged, fmt, filename=output_filename(index, fmt))


watermarker = Watermarker()

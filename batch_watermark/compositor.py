from __future__ import annotations

from PIL import Image

from .assets import CompositeResult, DecodedImage, Placement


def composite(base: DecodedImage, logo: DecodedImage,
              placement: Placement) -> CompositeResult:
    """
    • Allocate a fresh RGBA surface the size of `base` and copy `base` in
    • Resample the logo (bilinear) to the placement size
    • Source-over the logo at (x, y) using its own alpha
    Logo pixels falling outside the surface are clipped.
    Neither input is modified.
    """
    surface = Image.new("RGBA", base.size, (0, 0, 0, 0))
    surface.paste(base.image, (0, 0))

    left, top, w, h = placement.box()
    scaled = logo.image.resize((w, h), Image.Resampling.BILINEAR)

    # paste() clips to the layer, so negative or oversized offsets are fine
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    layer.paste(scaled, (left, top))

    return DecodedImage(Image.alpha_composite(surface, layer))

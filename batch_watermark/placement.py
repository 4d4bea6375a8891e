from __future__ import annotations

from .assets import Placement
from .errors import ZeroDimensionError

LOGO_MAX_RATIO = 0.15   # of the source's shorter side
LEFT_MARGIN = 10
BOTTOM_MARGIN = 5


def compute_placement(logo_w: int, logo_h: int,
                      target_w: int, target_h: int) -> Placement:
    """
    Fit the logo into 15% of the target's shorter side and anchor it
    bottom-left (10 px from the left edge, 5 px from the bottom).

    The logo is only ever shrunk, never enlarged. `y` is not clamped and
    goes negative when the logo is taller than the target allows.
    """
    if min(logo_w, logo_h, target_w, target_h) <= 0:
        raise ZeroDimensionError(
            f"cannot place {logo_w}x{logo_h} logo on {target_w}x{target_h} image"
        )

    bound_side = min(target_w, target_h)
    max_logo_size = bound_side * LOGO_MAX_RATIO

    draw_w: float = logo_w
    draw_h: float = logo_h
    if logo_w >= logo_h:
        if logo_w > max_logo_size:
            draw_h = logo_h * max_logo_size / logo_w
            draw_w = max_logo_size
    elif logo_h > max_logo_size:
        draw_w = logo_w * max_logo_size / logo_h
        draw_h = max_logo_size

    return Placement(
        draw_width=float(draw_w),
        draw_height=float(draw_h),
        x=float(LEFT_MARGIN),
        y=float(target_h - draw_h - BOTTOM_MARGIN),
    )

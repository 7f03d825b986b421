"""
Cover-fit, clamping and zoom math for placing a photo behind a frame window.

Every function here is pure: it takes the current Transform/Window values and
returns new numbers. Callers (the gesture handler, the session) decide what to
do with them.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from flagbooth.core.models import Transform, Window

MAX_ZOOM = 5.0


def cover_scale(photo_w: float, photo_h: float, window: Window) -> float:
    """Smallest scale at which a photo_w x photo_h photo covers the window with no gaps."""
    return max(window.w / float(photo_w), window.h / float(photo_h))


def center_offset(photo_w: float, photo_h: float, scale: float, window: Window) -> Tuple[float, float]:
    """Offset that puts the centre of the scaled photo on the centre of the window."""
    x = window.x + (window.w - photo_w * scale) / 2.0
    y = window.y + (window.h - photo_h * scale) / 2.0
    return x, y


def _clamp_axis(value: float, lo: float, hi: float) -> float:
    # lo > hi only when the photo is smaller than the window; collapses to hi.
    return min(hi, max(lo, value))


def clamp_offset(transform: Transform, photo_w: float, photo_h: float, window: Window) -> Tuple[float, float]:
    """
    Clamp the offset so the scaled photo rectangle contains the window:

        offset_x in [window.x + window.w - photo_w * scale, window.x]
        offset_y in [window.y + window.h - photo_h * scale, window.y]
    """
    scaled_w = photo_w * transform.scale
    scaled_h = photo_h * transform.scale
    x = _clamp_axis(transform.offset_x, window.right - scaled_w, window.x)
    y = _clamp_axis(transform.offset_y, window.bottom - scaled_h, window.y)
    return x, y


def clamp_scale(scale: float, min_scale: float, max_zoom: float = MAX_ZOOM) -> float:
    return max(min_scale, min(min_scale * max_zoom, scale))


def zoom_about(
    transform: Transform,
    fx: float,
    fy: float,
    factor: float,
    min_scale: float,
    max_zoom: float = MAX_ZOOM,
) -> Transform:
    """
    Multiply the scale by `factor` (clamped to [min_scale, min_scale * max_zoom]) while
    keeping the canvas point (fx, fy) over the same photo pixel.

    The offset is not clamped here; callers clamp afterwards.
    """
    new_scale = clamp_scale(transform.scale * factor, min_scale, max_zoom)
    ratio = new_scale / transform.scale
    return replace(
        transform,
        offset_x=fx - (fx - transform.offset_x) * ratio,
        offset_y=fy - (fy - transform.offset_y) * ratio,
        scale=new_scale,
    )


def initial_transform(photo_w: float, photo_h: float, window: Window) -> Transform:
    """Transform for a freshly loaded photo: cover scale, centred in the window."""
    scale = cover_scale(photo_w, photo_h, window)
    x, y = center_offset(photo_w, photo_h, scale, window)
    return Transform(offset_x=x, offset_y=y, scale=scale)

"""
Composite a user photo and a frame overlay onto the output canvas, and encode
the result for download or upload.
"""

from __future__ import annotations

import base64
import io
import math
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from flagbooth.core.models import OutputFormat, Transform, Window
from flagbooth.render.frames import GREEN, GREEN_DARK

EXPORT_QUALITY = 92
THUMBNAIL_MAX_WIDTH = 480
THUMBNAIL_QUALITY = 70


def _resize_rgb(arr: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Resize an RGB(A) array to (width, height); area filter when shrinking."""
    new_w, new_h = max(1, size[0]), max(1, size[1])
    h, w = arr.shape[:2]
    interp = cv2.INTER_AREA if (new_w < w or new_h < h) else cv2.INTER_LANCZOS4
    return cv2.resize(arr, (new_w, new_h), interpolation=interp)


def _visible_patch(photo: Image.Image, transform: Transform, window: Window) -> Optional[Tuple[Image.Image, Tuple[int, int]]]:
    """
    Cut the part of the photo that lands inside the window, scaled to canvas pixels.

    Returns (patch, (left, top)) in canvas coordinates, already clipped to the window,
    or None when the photo does not reach into the window at all.
    """
    s = transform.scale
    if s <= 0:
        return None
    ox, oy = transform.offset_x, transform.offset_y

    # Window edges in photo pixel coordinates, widened to whole pixels
    sx0 = max(0, math.floor((window.x - ox) / s))
    sy0 = max(0, math.floor((window.y - oy) / s))
    sx1 = min(photo.width, math.ceil((window.right - ox) / s))
    sy1 = min(photo.height, math.ceil((window.bottom - oy) / s))
    if sx0 >= sx1 or sy0 >= sy1:
        return None

    # Where that source rectangle lands on the canvas
    dx0 = int(round(ox + sx0 * s))
    dy0 = int(round(oy + sy0 * s))
    dx1 = int(round(ox + sx1 * s))
    dy1 = int(round(oy + sy1 * s))

    src = np.asarray(photo.crop((sx0, sy0, sx1, sy1)).convert("RGB"))
    scaled = Image.fromarray(_resize_rgb(src, (dx1 - dx0, dy1 - dy0)), "RGB")

    # Clip to the window
    wx0, wy0, wx1, wy1 = window.box()
    cx0, cy0 = max(dx0, wx0), max(dy0, wy0)
    cx1, cy1 = min(dx0 + scaled.width, wx1), min(dy0 + scaled.height, wy1)
    if cx0 >= cx1 or cy0 >= cy1:
        return None
    patch = scaled.crop((cx0 - dx0, cy0 - dy0, cx1 - dx0, cy1 - dy0))
    return patch, (cx0, cy0)


def render_composite(
    fmt: OutputFormat,
    photo: Optional[Image.Image],
    transform: Optional[Transform],
    overlay: Optional[Image.Image],
) -> Image.Image:
    """
    Render the full canvas for a format.

    Layers, bottom to top: solid background; the photo clipped to the window (or a
    placeholder fill when there is no photo); the frame overlay at full canvas size.
    """
    window = fmt.window
    canvas = Image.new("RGBA", fmt.size, GREEN)

    if photo is not None and transform is not None:
        placed = _visible_patch(photo, transform, window)
        if placed is not None:
            patch, pos = placed
            canvas.paste(patch, pos)
    else:
        canvas.paste(GREEN_DARK, window.box())

    if overlay is not None:
        if overlay.size != canvas.size:
            overlay = overlay.resize(canvas.size, Image.LANCZOS)
        if overlay.mode != "RGBA":
            overlay = overlay.convert("RGBA")
        canvas = Image.alpha_composite(canvas, overlay)

    return canvas.convert("RGB")


def export_filename(slug: str, format_name: str) -> str:
    return f"capture-the-flag-{slug}-{format_name}.jpg"


def encode_jpeg(img: Image.Image, quality: int = EXPORT_QUALITY) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=quality, optimize=True)
    return buf.getvalue()


def save_export(img: Image.Image, output_path: Path | str) -> Path:
    """Write the composited canvas; JPEG at export quality unless the suffix says otherwise."""
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix.lower() in (".jpg", ".jpeg"):
        out.write_bytes(encode_jpeg(img))
    else:
        img.save(out)
    return out


def make_thumbnail(img: Image.Image, max_width: int = THUMBNAIL_MAX_WIDTH) -> Image.Image:
    """Downscale to at most `max_width` wide, keeping the aspect ratio."""
    ratio = img.height / float(img.width)
    thumb_w = min(img.width, max_width)
    thumb_h = int(round(thumb_w * ratio))
    arr = _resize_rgb(np.asarray(img.convert("RGB")), (thumb_w, thumb_h))
    return Image.fromarray(arr, "RGB")


def thumbnail_data_url(img: Image.Image, max_width: int = THUMBNAIL_MAX_WIDTH, quality: int = THUMBNAIL_QUALITY) -> str:
    """Thumbnail encoded as a data:image/jpeg;base64 URL, the shape the upload API takes."""
    data = encode_jpeg(make_thumbnail(img, max_width), quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")

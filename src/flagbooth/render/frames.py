"""
Frame overlays: procedurally drawn branded frames and designer PNG assets.

A frame is an RGBA image the size of the output canvas whose photo window is
fully transparent. Designer assets that come without an alpha channel are keyed:
the near-white rectangle around the image centre becomes the cutout.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError, features

from flagbooth.core.models import Location, get_format

logger = logging.getLogger(__name__)

GREEN = "#1B3A2D"
GREEN_DARK = "#152E23"
GOLD = "#C9A94E"
TEXT = "#F5F0E8"
TEXT_DIM = "#A89E8C"

WHITE_THRESHOLD = 240
ALPHA_PRESENT_THRESHOLD = 10

_FONT_CANDIDATES = {
    False: ("DejaVuSans.ttf", "Arial.ttf", "Helvetica.ttc"),
    True: ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "Arial.ttf", "Helvetica.ttc"),
}


@lru_cache(maxsize=None)
def _font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    for name in _FONT_CANDIDATES[bold]:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    try:
        return ImageFont.load_default(size=size)
    except TypeError:  # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


# Colour emoji fonts; CBDT fonts such as Noto Color Emoji only load at their bitmap size
_EMOJI_FONT_CANDIDATES = (
    "NotoColorEmoji.ttf",
    "/usr/share/fonts/truetype/noto/NotoColorEmoji.ttf",
    "/usr/share/fonts/noto/NotoColorEmoji.ttf",
    "seguiemj.ttf",
    "/System/Library/Fonts/Apple Color Emoji.ttc",
)
EMOJI_FONT_SIZE = 109
FLAG_HEIGHT = 36


@lru_cache(maxsize=1)
def _emoji_font() -> Optional[ImageFont.FreeTypeFont]:
    """
    A colour emoji font, or None.

    Flags are pairs of regional-indicator code points, so they only compose into one
    glyph with the raqm layout engine.
    """
    if not features.check("raqm"):
        return None
    for name in _EMOJI_FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, EMOJI_FONT_SIZE, layout_engine=ImageFont.Layout.RAQM)
        except OSError:
            continue
    logger.debug("No colour emoji font found; frames are drawn without flags")
    return None


def _flag_badge(flag: str, height: int = FLAG_HEIGHT) -> Optional[Image.Image]:
    """The flag emoji rendered as an RGBA image `height` pixels tall, or None."""
    font = _emoji_font()
    if font is None or not flag:
        return None
    try:
        left, top, right, bottom = font.getbbox(flag)
        tile = Image.new("RGBA", (max(1, right - left), max(1, bottom - top)), (0, 0, 0, 0))
        ImageDraw.Draw(tile).text((-left, -top), flag, font=font, embedded_color=True)
    except (OSError, ValueError) as e:
        logger.debug("Could not draw flag %r: %s", flag, e)
        return None

    bbox = tile.getbbox()
    if bbox is None:
        return None
    tile = tile.crop(bbox)
    width = max(1, int(round(tile.width * height / float(tile.height))))
    return tile.resize((width, height), Image.LANCZOS)


def _centered_text(draw: ImageDraw.ImageDraw, cx: float, cy: float, text: str, font, fill: str) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = cx - (right - left) / 2.0 - left
    y = cy - (bottom - top) / 2.0 - top
    draw.text((x, y), text, font=font, fill=fill)


@lru_cache(maxsize=64)
def generate_frame(location: Location, format_name: str) -> Image.Image:
    """
    Draw the branded frame for a location and format.

    Memoised per (location, format); callers must treat the returned image as
    read-only.
    """
    fmt = get_format(format_name)
    win = fmt.window
    W, H = fmt.size
    wx, wy, wr, wb = win.box()

    img = Image.new("RGBA", (W, H), GREEN)
    draw = ImageDraw.Draw(img)

    # Photo window
    draw.rectangle([wx, wy, wr - 1, wb - 1], fill=(0, 0, 0, 0))

    # 3px gold border just outside the window
    draw.rectangle([wx - 3, wy - 3, wr + 2, wb + 2], outline=GOLD, width=3)

    # Header
    top_center = fmt.insets.top / 2.0
    _centered_text(draw, W / 2, top_center - 20, "CAPTURE THE FLAG", _font(28, bold=True), GOLD)
    _centered_text(draw, W / 2, top_center + 16, location.name.upper(), _font(22, bold=True), TEXT)
    _centered_text(draw, W / 2, top_center + 44, f"Paired with {location.country}", _font(16), TEXT_DIM)

    # Footer
    bottom_center = (H - fmt.insets.bottom) + fmt.insets.bottom / 2.0
    _centered_text(draw, W / 2, bottom_center - 30, f'"{location.tagline}"', _font(18), TEXT_DIM)
    _centered_text(draw, W / 2, bottom_center + 10, "WORLD WELCOME TO ATLANTA", _font(20, bold=True), GOLD)
    _centered_text(draw, W / 2, bottom_center + 38, "SHOWCASE ATLANTA  •  2026", _font(14), TEXT_DIM)

    # Corner accents (all outside the window)
    length, thick = 30, 3
    for x0, y0, x1, y1 in (
        (wx - thick, wy - thick, wx - thick + length, wy),          # top-left, horizontal
        (wx - thick, wy - thick, wx, wy - thick + length),          # top-left, vertical
        (wr - length + thick, wy - thick, wr + thick, wy),          # top-right, horizontal
        (wr, wy - thick, wr + thick, wy - thick + length),          # top-right, vertical
        (wx - thick, wb, wx - thick + length, wb + thick),          # bottom-left, horizontal
        (wx - thick, wb - length + thick, wx, wb + thick),          # bottom-left, vertical
        (wr - length + thick, wb, wr + thick, wb + thick),          # bottom-right, horizontal
        (wr, wb - length + thick, wr + thick, wb + thick),          # bottom-right, vertical
    ):
        draw.rectangle([x0, y0, x1 - 1, y1 - 1], fill=GOLD)

    # Flag at the left of the header, when an emoji font is available
    badge = _flag_badge(location.flag)
    if badge is not None:
        img.alpha_composite(badge, (wx, int(round(top_center - badge.height / 2.0))))

    return img


def has_transparency(rgba: np.ndarray) -> bool:
    """True if any pixel is (nearly) transparent already."""
    return bool((rgba[:, :, 3] < ALPHA_PRESENT_THRESHOLD).any())


def _white_mask(pixels: np.ndarray) -> np.ndarray:
    return (pixels[..., 0] >= WHITE_THRESHOLD) & (pixels[..., 1] >= WHITE_THRESHOLD) & (pixels[..., 2] >= WHITE_THRESHOLD)


def _run_bounds(white: np.ndarray, center: int) -> Tuple[int, int]:
    """Extend outwards from `center` over consecutive white entries of a 1D mask."""
    lo = hi = center
    while lo > 0 and white[lo - 1]:
        lo -= 1
    while hi < len(white) - 1 and white[hi + 1]:
        hi += 1
    return lo, hi


def key_white_cutout(img: Image.Image) -> Image.Image:
    """
    Turn the near-white rectangle around the image centre into a transparent cutout.

    The rectangle is found by walking outwards from the centre along the centre row
    and the centre column while pixels stay near-white (R, G, B >= 240). Inside that
    rectangle every near-white pixel gets alpha 0; nothing else changes.

    Images that already carry transparency are returned unchanged (as RGBA). Assets
    whose cutout is not a single near-white rectangle centred in the image are not
    supported and will key the wrong region.
    """
    rgba = np.array(img.convert("RGBA"))
    if has_transparency(rgba):
        return Image.fromarray(rgba, "RGBA")

    h, w = rgba.shape[:2]
    cx, cy = w // 2, h // 2
    left, right = _run_bounds(_white_mask(rgba[cy, :, :]), cx)
    top, bottom = _run_bounds(_white_mask(rgba[:, cx, :]), cy)

    region = rgba[top:bottom + 1, left:right + 1]
    region[_white_mask(region), 3] = 0
    return Image.fromarray(rgba, "RGBA")


def frame_asset_path(frames_dir: Path | str, slug: str, format_name: str) -> Path:
    return Path(frames_dir) / f"{slug}-{format_name}.png"


def load_frame_asset(frames_dir: Path | str, slug: str, format_name: str) -> Optional[Image.Image]:
    """
    Load and key the designer frame for a location/format.

    Returns None when the asset is missing or unreadable; the caller keeps the
    procedural frame in that case.
    """
    path = frame_asset_path(frames_dir, slug, format_name)
    try:
        with Image.open(path) as im:
            im.load()
            keyed = key_white_cutout(im)
    except FileNotFoundError:
        logger.debug("No designer frame at %s", path)
        return None
    except (OSError, UnidentifiedImageError) as e:
        logger.warning("Could not read designer frame %s: %s", path, e)
        return None
    logger.info("Loaded designer frame %s (%dx%d)", path, keyed.width, keyed.height)
    return keyed

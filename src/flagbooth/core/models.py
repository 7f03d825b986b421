from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Window:
    """
    Axis-aligned rectangle of the output canvas where the photo shows through
    the frame cutout. Coordinates are canvas pixels.
    """
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def box(self) -> tuple[int, int, int, int]:
        """Integer (left, top, right, bottom) box, as Pillow expects it."""
        return (int(self.x), int(self.y), int(self.x + self.w), int(self.y + self.h))


@dataclass(frozen=True)
class Insets:
    top: int
    bottom: int
    left: int
    right: int


@dataclass(frozen=True)
class OutputFormat:
    """
    A target output format: fixed canvas size plus the frame insets around the
    photo window.
    """
    name: str
    width: int
    height: int
    label: str
    insets: Insets

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def window(self) -> Window:
        i = self.insets
        return Window(
            x=i.left,
            y=i.top,
            w=self.width - i.left - i.right,
            h=self.height - i.top - i.bottom,
        )


FORMATS: Dict[str, OutputFormat] = {
    "square": OutputFormat("square", 1080, 1080, "Square (1:1)", Insets(top=120, bottom=160, left=40, right=40)),
    "portrait": OutputFormat("portrait", 1080, 1350, "Portrait (4:5)", Insets(top=140, bottom=180, left=40, right=40)),
    "story": OutputFormat("story", 1080, 1920, "Story (9:16)", Insets(top=160, bottom=260, left=40, right=40)),
}

DEFAULT_FORMAT = "portrait"


def get_format(name: str) -> OutputFormat:
    try:
        return FORMATS[name]
    except KeyError:
        raise ValueError(f"Unknown format '{name}' (expected one of: {', '.join(FORMATS)}).") from None


def window_for(format_name: str | None) -> Window:
    """Photo window for a format; the square window when nothing is selected yet."""
    if not format_name:
        return FORMATS["square"].window
    return get_format(format_name).window


@dataclass
class Transform:
    """
    How the source photo maps onto the canvas: the photo's top-left corner sits at
    (offset_x, offset_y) and every photo pixel is drawn `scale` canvas pixels wide.

    Mutated in place by gestures; geometry helpers keep scale >= the cover scale
    and the offset clamped so the photo always covers the window.
    """
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0


@dataclass(frozen=True)
class Location:
    """
    One check-in location of the campaign.

    knockout:
        True when a knockout-phase override replaced the pairing text.
    """
    slug: str
    name: str
    country: str
    flag: str
    tier: int
    tagline: str
    knockout: bool = False

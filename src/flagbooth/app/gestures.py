"""
Pointer / wheel gesture handling for positioning a photo behind the frame window.

One active pointer drags the photo, two pointers pinch-zoom about their midpoint,
and the wheel zooms about the cursor. All coordinates are canvas pixels; the UI
layer converts widget coordinates before calling in.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Hashable, Optional, Tuple

from flagbooth.app.state import AppState
from flagbooth.core.geometry import clamp_offset, zoom_about

WHEEL_ZOOM_OUT = 0.95
WHEEL_ZOOM_IN = 1.05

Point = Tuple[float, float]


class GestureHandler:
    """
    Idle (0 pointers) -> Dragging (1) -> Pinching (2), and back as pointers lift.

    The handler only mutates `state.transform`, and calls `on_update` synchronously
    after each mutation. Events arriving while no photo is loaded are ignored.
    """

    def __init__(self, state: AppState, on_update: Optional[Callable[[], None]] = None):
        self.state = state
        self.on_update = on_update or (lambda: None)
        self._pointers: Dict[Hashable, Point] = {}
        self._last_pinch_dist = 0.0

    @property
    def active_pointers(self) -> int:
        return len(self._pointers)

    @property
    def mode(self) -> str:
        n = len(self._pointers)
        if n == 0:
            return "idle"
        if n == 1:
            return "dragging"
        return "pinching"

    def _ready(self) -> bool:
        return self.state.photo is not None and self.state.transform is not None

    def _clamp(self) -> None:
        t = self.state.transform
        w, h = self.state.photo.size
        t.offset_x, t.offset_y = clamp_offset(t, w, h, self.state.window)

    def _zoom(self, fx: float, fy: float, factor: float) -> None:
        t = self.state.transform
        z = zoom_about(t, fx, fy, factor, self.state.min_scale)
        t.offset_x, t.offset_y, t.scale = z.offset_x, z.offset_y, z.scale
        self._clamp()
        self.on_update()

    # ---------- Pointer events ----------

    def pointer_down(self, pointer_id: Hashable, x: float, y: float) -> None:
        if not self._ready():
            return
        self._pointers[pointer_id] = (x, y)
        self._last_pinch_dist = 0.0

    def pointer_move(self, pointer_id: Hashable, x: float, y: float) -> None:
        if pointer_id not in self._pointers or not self._ready():
            return

        prev = self._pointers[pointer_id]
        self._pointers[pointer_id] = (x, y)

        if len(self._pointers) == 1:
            t = self.state.transform
            t.offset_x += x - prev[0]
            t.offset_y += y - prev[1]
            self._clamp()
            self.on_update()
        elif len(self._pointers) == 2:
            (x0, y0), (x1, y1) = self._pointers.values()
            dist = math.hypot(x1 - x0, y1 - y0)
            if self._last_pinch_dist > 0:
                self._zoom((x0 + x1) / 2.0, (y0 + y1) / 2.0, dist / self._last_pinch_dist)
            self._last_pinch_dist = dist

    def pointer_up(self, pointer_id: Hashable) -> None:
        self._pointers.pop(pointer_id, None)
        if len(self._pointers) < 2:
            self._last_pinch_dist = 0.0

    pointer_cancel = pointer_up

    def reset(self) -> None:
        """Forget all active pointers (new photo, new format, reset)."""
        self._pointers.clear()
        self._last_pinch_dist = 0.0

    # ---------- Wheel ----------

    def wheel(self, x: float, y: float, delta_y: float) -> None:
        """
        Zoom about the cursor. Positive delta (scroll down) zooms out by 5%, negative
        zooms in by 5%; a zero delta does nothing.
        """
        if not self._ready() or delta_y == 0:
            return
        self._zoom(x, y, WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN)

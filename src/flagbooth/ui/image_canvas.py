from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Optional, Tuple

from PIL import Image, ImageTk

from flagbooth.app.gestures import GestureHandler

MOUSE_POINTER = "mouse"


class EditorCanvas(ttk.Frame):
    """
    Shows the composited canvas scaled to fit, and turns mouse input into gestures.

    Widget coordinates are mapped back to canvas pixels before they reach the
    gesture handler, so drags move the photo by the same visible distance at any
    window size.
    """

    def __init__(self, master, gestures: GestureHandler, *, bg: str = "#f3f3f3"):
        super().__init__(master)
        self.gestures = gestures
        self._canvas = tk.Canvas(self, highlightthickness=0, bg=bg)
        self._canvas.pack(fill="both", expand=True)

        self._photo: Optional[ImageTk.PhotoImage] = None
        self._pil: Optional[Image.Image] = None
        self._view: Tuple[float, float, float] = (0.0, 0.0, 1.0)  # left, top, scale

        self._canvas.bind("<Configure>", self._on_resize)
        self._canvas.bind("<ButtonPress-1>", self._on_press)
        self._canvas.bind("<B1-Motion>", self._on_motion)
        self._canvas.bind("<ButtonRelease-1>", self._on_release)
        self._canvas.bind("<MouseWheel>", self._on_wheel)
        self._canvas.bind("<Button-4>", lambda e: self._wheel_at(e, -1))  # X11 scroll up
        self._canvas.bind("<Button-5>", lambda e: self._wheel_at(e, 1))   # X11 scroll down

        self._placeholder_id = self._canvas.create_text(
            10, 10, anchor="nw",
            text="Pick a location and a format to start",
            fill="#555",
            font=("TkDefaultFont", 11),
        )

    def set_image(self, pil: Optional[Image.Image]) -> None:
        self._pil = pil
        self._redraw()

    def clear(self) -> None:
        self.set_image(None)

    # ---------- Coordinates ----------

    def to_canvas(self, wx: float, wy: float) -> Tuple[float, float]:
        """Widget coordinates -> composited canvas pixels."""
        left, top, scale = self._view
        return (wx - left) / scale, (wy - top) / scale

    # ---------- Events ----------

    def _on_press(self, evt) -> None:
        self.gestures.pointer_down(MOUSE_POINTER, *self.to_canvas(evt.x, evt.y))

    def _on_motion(self, evt) -> None:
        self.gestures.pointer_move(MOUSE_POINTER, *self.to_canvas(evt.x, evt.y))

    def _on_release(self, _evt) -> None:
        self.gestures.pointer_up(MOUSE_POINTER)

    def _on_wheel(self, evt) -> None:
        # Tk reports scroll-up as a positive delta; the handler expects scroll-down > 0.
        self._wheel_at(evt, -evt.delta)

    def _wheel_at(self, evt, delta: float) -> None:
        self.gestures.wheel(*self.to_canvas(evt.x, evt.y), delta)

    def _on_resize(self, _evt) -> None:
        self._redraw()

    # ---------- Drawing ----------

    def _fit_size(self, img_w: int, img_h: int, box_w: int, box_h: int) -> Tuple[int, int, float]:
        if img_w <= 0 or img_h <= 0 or box_w <= 2 or box_h <= 2:
            return (1, 1, 1.0)
        scale = min(box_w / img_w, box_h / img_h)
        new_w = max(1, int(img_w * scale))
        new_h = max(1, int(img_h * scale))
        return new_w, new_h, scale

    def _redraw(self) -> None:
        self._canvas.delete("img")
        if self._pil is None:
            self._canvas.itemconfigure(self._placeholder_id, state="normal")
            return

        self._canvas.itemconfigure(self._placeholder_id, state="hidden")

        w = max(1, self._canvas.winfo_width())
        h = max(1, self._canvas.winfo_height())

        pil = self._pil
        new_w, new_h, scale = self._fit_size(pil.width, pil.height, w, h)
        resized = pil.resize((new_w, new_h), Image.BILINEAR)

        self._photo = ImageTk.PhotoImage(resized)
        x = (w - new_w) // 2
        y = (h - new_h) // 2
        self._view = (float(x), float(y), scale)
        self._canvas.create_image(x, y, anchor="nw", image=self._photo, tags=("img",))

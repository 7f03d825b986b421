"""
Editing session: selection, photo, frame overlay, gestures and rendering.

This is the non-GUI half of the application controller. The tkinter window (or
the CLI) drives it; it never touches widgets itself.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from flagbooth.app.gestures import GestureHandler
from flagbooth.app.state import AppState
from flagbooth.core.geometry import initial_transform
from flagbooth.core.locations import effective_location
from flagbooth.core.models import get_format
from flagbooth.render.compositor import export_filename, render_composite, save_export, thumbnail_data_url
from flagbooth.render.frames import generate_frame, load_frame_asset

logger = logging.getLogger(__name__)


def load_image_rgb(path: Path | str) -> Image.Image:
    """Load an image, apply EXIF orientation, return an RGB PIL Image."""
    img = Image.open(path)
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def _run_inline(fn: Callable[[], None]) -> None:
    fn()


class EditorSession:
    """
    Owns the AppState for one booth and keeps the rendered canvas up to date.

    on_render:
        Called with the freshly composited canvas after every change.
    dispatch:
        Runs a callable on the UI thread. Background frame loads hand their result
        back through it (tkinter passes `lambda fn: root.after(0, fn)`).
    """

    def __init__(
        self,
        frames_dir: Path | str,
        state: Optional[AppState] = None,
        on_render: Optional[Callable[[Image.Image], None]] = None,
        dispatch: Callable[[Callable[[], None]], None] = _run_inline,
    ):
        self.frames_dir = Path(frames_dir)
        self.state = state or AppState()
        self.on_render = on_render
        self.dispatch = dispatch
        self.overlay: Optional[Image.Image] = None
        self.canvas: Optional[Image.Image] = None
        self.gestures = GestureHandler(self.state, on_update=self.render)

    # ---------- Selection ----------

    def select_location(self, slug: str) -> bool:
        loc = effective_location(slug, self.state.overrides)
        if loc is None:
            return False
        self.state.location_slug = slug
        self.state.location = loc
        return True

    def select_format(self, format_name: str, background: bool = True) -> None:
        """
        Switch to a format: the procedural frame is shown at once, then the designer
        asset is loaded (in a worker thread when `background`) and swapped in if the
        selection has not changed meanwhile.
        """
        if self.state.location is None:
            raise ValueError("Select a location before choosing a format.")
        get_format(format_name)

        self.state.format_name = format_name
        self.overlay = generate_frame(self.state.location, format_name)
        self._refit_photo()
        self.render()

        slug = self.state.location_slug
        if background:
            threading.Thread(target=self._load_asset, args=(slug, format_name), daemon=True).start()
        else:
            self._load_asset(slug, format_name)

    def _load_asset(self, slug: str, format_name: str) -> None:
        asset = load_frame_asset(self.frames_dir, slug, format_name)
        if asset is not None:
            self.dispatch(lambda: self.apply_loaded_frame(slug, format_name, asset))

    def apply_loaded_frame(self, slug: str, format_name: str, asset: Image.Image) -> bool:
        """Swap in a loaded frame if it still matches the current selection."""
        if self.state.location_slug != slug or self.state.format_name != format_name:
            logger.debug("Discarding late frame for %s/%s", slug, format_name)
            return False
        self.overlay = asset
        self.render()
        return True

    # ---------- Photo ----------

    def load_photo(self, path: Path | str) -> bool:
        """
        Load a photo and fit it to the window. Files that are not images are ignored
        (returns False, state unchanged).
        """
        try:
            img = load_image_rgb(path)
        except (OSError, UnidentifiedImageError) as e:
            logger.info("Ignoring %s: not a readable image (%s)", path, e)
            return False
        self.set_photo(img, str(path))
        return True

    def set_photo(self, img: Image.Image, path: Optional[str] = None) -> None:
        self.gestures.reset()
        self.state.photo = img
        self.state.photo_path = path
        self._refit_photo()
        self.render()

    def _refit_photo(self) -> None:
        if self.state.photo is None:
            return
        t = initial_transform(self.state.photo.width, self.state.photo.height, self.state.window)
        self.state.transform = t
        self.state.min_scale = t.scale

    def reset_photo(self) -> None:
        self.gestures.reset()
        self.state.reset_photo()
        self.render()

    def reset(self) -> None:
        self.gestures.reset()
        self.state.reset()
        self.overlay = None
        self.canvas = None

    # ---------- Output ----------

    def render(self) -> Optional[Image.Image]:
        if self.state.format_name is None:
            return None
        fmt = get_format(self.state.format_name)
        self.canvas = render_composite(fmt, self.state.photo, self.state.transform, self.overlay)
        if self.on_render is not None:
            self.on_render(self.canvas)
        return self.canvas

    def export(self, out_dir: Path | str) -> Path:
        """Write the current canvas as `capture-the-flag-<slug>-<format>.jpg` into out_dir."""
        if self.canvas is None or self.state.photo is None:
            raise RuntimeError("Nothing to export yet: choose a format and load a photo.")
        name = export_filename(self.state.location_slug, self.state.format_name)
        path = save_export(self.canvas, Path(out_dir) / name)
        logger.info("Exported %s", path)
        return path

    def thumbnail(self) -> str:
        if self.canvas is None:
            raise RuntimeError("Nothing rendered yet.")
        return thumbnail_data_url(self.canvas)

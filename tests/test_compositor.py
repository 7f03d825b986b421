import base64
import io
import tempfile
import unittest
from pathlib import Path

import numpy as np
from PIL import Image, ImageColor

from tests._test_path import SRC  # noqa: F401

from flagbooth.core.geometry import initial_transform
from flagbooth.core.locations import get_location
from flagbooth.core.models import Transform, get_format
from flagbooth.render.compositor import (
    export_filename,
    make_thumbnail,
    render_composite,
    save_export,
    thumbnail_data_url,
)
from flagbooth.render.frames import GREEN, GREEN_DARK, generate_frame

RED = (220, 20, 20)


def _solid(size, color=RED) -> Image.Image:
    return Image.new("RGB", size, color)


class TestRenderComposite(unittest.TestCase):
    def test_placeholder_fills_window_without_photo(self):
        fmt = get_format("square")
        out = np.asarray(render_composite(fmt, None, None, None))
        x0, y0, x1, y1 = fmt.window.box()

        self.assertEqual(out.shape, (1080, 1080, 3))
        self.assertTrue((out[y0:y1, x0:x1] == ImageColor.getrgb(GREEN_DARK)).all())
        self.assertEqual(tuple(out[5, 5]), ImageColor.getrgb(GREEN))

    def test_photo_covers_the_window(self):
        fmt = get_format("square")
        photo = _solid((2000, 1000))
        t = initial_transform(photo.width, photo.height, fmt.window)
        out = np.asarray(render_composite(fmt, photo, t, None))
        x0, y0, x1, y1 = fmt.window.box()

        self.assertTrue((out[y0:y1, x0:x1] == RED).all())
        # Nothing of the photo leaks outside the window
        self.assertTrue((out[:y0] == ImageColor.getrgb(GREEN)).all())
        self.assertTrue((out[y1:] == ImageColor.getrgb(GREEN)).all())
        self.assertTrue((out[:, :x0] == ImageColor.getrgb(GREEN)).all())

    def test_photo_outside_window_draws_nothing(self):
        fmt = get_format("square")
        t = Transform(offset_x=2000.0, offset_y=2000.0, scale=1.0)
        out = np.asarray(render_composite(fmt, _solid((100, 100)), t, None))
        self.assertFalse((out == RED).all(axis=2).any())

    def test_frame_overlay_on_top(self):
        fmt = get_format("portrait")
        photo = _solid((1000, 1000))
        frame = generate_frame(get_location("west-end"), "portrait")
        t = initial_transform(photo.width, photo.height, fmt.window)
        out = render_composite(fmt, photo, t, frame)

        self.assertEqual(out.mode, "RGB")
        self.assertEqual(out.size, (1080, 1350))
        self.assertEqual(out.getpixel((540, 600)), RED)
        self.assertEqual(out.getpixel((0, 0)), frame.getpixel((0, 0))[:3])

    def test_overlay_of_other_size_is_stretched(self):
        fmt = get_format("square")
        overlay = Image.new("RGBA", (540, 540), (0, 0, 255, 255))
        out = render_composite(fmt, None, None, overlay)
        self.assertEqual(out.size, (1080, 1080))
        self.assertEqual(out.getpixel((600, 600)), (0, 0, 255))


class TestExportHelpers(unittest.TestCase):
    def test_export_filename(self):
        self.assertEqual(export_filename("west-end", "story"), "capture-the-flag-west-end-story.jpg")

    def test_thumbnail_keeps_aspect(self):
        thumb = make_thumbnail(_solid((1080, 1350)))
        self.assertEqual(thumb.size, (480, 600))

        small = make_thumbnail(_solid((300, 200)))
        self.assertEqual(small.size, (300, 200))

    def test_thumbnail_data_url(self):
        url = thumbnail_data_url(_solid((1080, 1920)))
        prefix = "data:image/jpeg;base64,"
        self.assertTrue(url.startswith(prefix))
        with Image.open(io.BytesIO(base64.b64decode(url[len(prefix):]))) as im:
            self.assertEqual(im.format, "JPEG")
            self.assertEqual(im.size, (480, 853))

    def test_save_export_writes_jpeg(self):
        with tempfile.TemporaryDirectory() as d:
            path = save_export(_solid((1080, 1080)), Path(d) / "nested" / "out.jpg")
            self.assertTrue(path.exists())
            with Image.open(path) as im:
                self.assertEqual(im.format, "JPEG")
                self.assertEqual(im.size, (1080, 1080))

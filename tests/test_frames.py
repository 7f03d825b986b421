import tempfile
import unittest
from dataclasses import replace
from pathlib import Path
from unittest import mock

import numpy as np
from PIL import Image

from tests._test_path import SRC  # noqa: F401

from flagbooth.core.locations import get_location
from flagbooth.core.models import FORMATS
from flagbooth.render import frames
from flagbooth.render.frames import frame_asset_path, generate_frame, key_white_cutout, load_frame_asset


def _flat_design(size=(600, 600), color=(30, 60, 90), square=(200, 200, 400, 400)) -> Image.Image:
    arr = np.zeros((size[1], size[0], 3), dtype=np.uint8)
    arr[:, :] = color
    x0, y0, x1, y1 = square
    arr[y0:y1, x0:x1] = 255
    return Image.fromarray(arr, "RGB")


class TestGenerateFrame(unittest.TestCase):
    def test_window_is_transparent_and_surround_opaque(self):
        loc = get_location("piedmont-park")
        for name, fmt in FORMATS.items():
            frame = generate_frame(loc, name)
            self.assertEqual(frame.size, fmt.size)
            self.assertEqual(frame.mode, "RGBA")

            alpha = np.asarray(frame)[:, :, 3]
            x0, y0, x1, y1 = fmt.window.box()
            self.assertTrue((alpha[y0:y1, x0:x1] == 0).all(), name)
            self.assertEqual(int((alpha == 0).sum()), (x1 - x0) * (y1 - y0), name)
            self.assertTrue((alpha[alpha != 0] == 255).all(), name)

    def test_frames_are_memoised_per_location_and_format(self):
        loc = get_location("west-end")
        self.assertIs(generate_frame(loc, "story"), generate_frame(loc, "story"))
        self.assertIsNot(generate_frame(loc, "story"), generate_frame(loc, "square"))

    def test_unknown_format(self):
        with self.assertRaises(ValueError):
            generate_frame(get_location("west-end"), "banner")

    def test_flag_drawn_in_header_when_available(self):
        loc = replace(get_location("west-end"), tagline="Flag badge header test")
        badge = Image.new("RGBA", (48, 36), (255, 0, 0, 255))
        with mock.patch.object(frames, "_flag_badge", return_value=badge) as make_badge:
            frame = generate_frame(loc, "square")
        make_badge.assert_called_once_with(loc.flag)

        # Square header: inset 120px tall, window starts at x=40
        self.assertEqual(frame.getpixel((60, 60)), (255, 0, 0, 255))
        x0, y0, x1, y1 = FORMATS["square"].window.box()
        alpha = np.asarray(frame)[:, :, 3]
        self.assertTrue((alpha[y0:y1, x0:x1] == 0).all())

    def test_no_emoji_font_means_no_flag(self):
        with mock.patch.object(frames, "_emoji_font", return_value=None):
            self.assertIsNone(frames._flag_badge("\U0001F1FA\U0001F1FF"))
        self.assertIsNone(frames._flag_badge(""))


class TestKeying(unittest.TestCase):
    def test_white_square_becomes_exactly_transparent(self):
        design = _flat_design()
        keyed = np.asarray(key_white_cutout(design))
        src = np.asarray(design)

        alpha = keyed[:, :, 3]
        expected = np.full((600, 600), 255, dtype=np.uint8)
        expected[200:400, 200:400] = 0
        np.testing.assert_array_equal(alpha, expected)
        np.testing.assert_array_equal(keyed[:, :, :3], src)

    def test_non_white_pixels_inside_cutout_stay_opaque(self):
        design = _flat_design()
        design.putpixel((250, 250), (200, 10, 10))
        alpha = np.asarray(key_white_cutout(design))[:, :, 3]
        self.assertEqual(alpha[250, 250], 255)
        self.assertEqual(alpha[300, 300], 0)

    def test_near_white_counts_as_white(self):
        arr = np.asarray(_flat_design()).copy()
        arr[200:400, 200:400] = (245, 242, 250)
        alpha = np.asarray(key_white_cutout(Image.fromarray(arr, "RGB")))[:, :, 3]
        self.assertTrue((alpha[200:400, 200:400] == 0).all())

    def test_images_with_alpha_are_left_alone(self):
        img = _flat_design().convert("RGBA")
        img.putpixel((0, 0), (30, 60, 90, 0))
        keyed = np.asarray(key_white_cutout(img))
        np.testing.assert_array_equal(keyed, np.asarray(img))

    def test_non_white_centre_keys_nothing(self):
        design = _flat_design(square=(0, 0, 50, 50))
        alpha = np.asarray(key_white_cutout(design))[:, :, 3]
        self.assertTrue((alpha == 255).all())


class TestLoadFrameAsset(unittest.TestCase):
    def test_missing_asset_returns_none(self):
        with tempfile.TemporaryDirectory() as d:
            self.assertIsNone(load_frame_asset(d, "west-end", "portrait"))

    def test_unreadable_asset_returns_none(self):
        with tempfile.TemporaryDirectory() as d:
            frame_asset_path(d, "west-end", "portrait").write_bytes(b"not a png")
            self.assertIsNone(load_frame_asset(d, "west-end", "portrait"))

    def test_flat_asset_is_keyed_on_load(self):
        with tempfile.TemporaryDirectory() as d:
            path = frame_asset_path(d, "west-end", "square")
            self.assertEqual(path, Path(d) / "west-end-square.png")
            _flat_design().save(path)
            frame = load_frame_asset(d, "west-end", "square")
            self.assertIsNotNone(frame)
            self.assertEqual(frame.mode, "RGBA")
            self.assertEqual(frame.getpixel((300, 300))[3], 0)
            self.assertEqual(frame.getpixel((10, 10))[3], 255)

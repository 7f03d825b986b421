import unittest

from PIL import Image

from tests._test_path import SRC  # noqa: F401

from flagbooth.core.locations import get_location
from flagbooth.render.frames import generate_frame
from flagbooth.validation.frame_checker import format_report_text, validate_frame_asset


def _flat_frame(size, cutout):
    img = Image.new("RGB", size, (20, 60, 40))
    img.paste((255, 255, 255), cutout)
    return img


class TestFrameChecker(unittest.TestCase):
    def _rule(self, report, rule_id):
        return next(r for r in report.results if r.rule_id == rule_id)

    def test_procedural_frame_passes(self):
        report = validate_frame_asset(generate_frame(get_location("west-end"), "story"), "story")
        self.assertTrue(report.passed, format_report_text(report))

    def test_flat_design_with_aligned_white_window_passes(self):
        report = validate_frame_asset(_flat_frame((1080, 1350), (40, 140, 1000, 1030)), "portrait")
        self.assertTrue(report.passed, format_report_text(report))

    def test_double_size_asset_is_scaled(self):
        report = validate_frame_asset(_flat_frame((2160, 2160), (80, 240, 2000, 1600)), "square")
        self.assertFalse(self._rule(report, "Size").passed)
        self.assertTrue(self._rule(report, "Window alignment").passed)
        self.assertTrue(self._rule(report, "Coverage").passed)

    def test_misaligned_window_fails(self):
        report = validate_frame_asset(_flat_frame((1080, 1080), (100, 200, 1000, 800)), "square")
        self.assertFalse(report.passed)
        self.assertFalse(self._rule(report, "Window alignment").passed)
        self.assertFalse(self._rule(report, "Coverage").passed)

    def test_no_cutout_fails(self):
        report = validate_frame_asset(Image.new("RGB", (1080, 1080), (20, 60, 40)), "square")
        self.assertFalse(self._rule(report, "Cutout").passed)
        self.assertFalse(self._rule(report, "Window alignment").passed)
        self.assertEqual(self._rule(report, "Coverage").metrics["coverage"], 0.0)

    def test_unknown_format(self):
        with self.assertRaises(ValueError):
            validate_frame_asset(Image.new("RGB", (10, 10)), "banner")

    def test_report_text(self):
        report = validate_frame_asset(Image.new("RGB", (1080, 1080), (20, 60, 40)), "square")
        text = format_report_text(report)
        self.assertTrue(text.startswith("Frame Check Report"))
        self.assertIn("Overall: FAIL", text)
        self.assertIn("Cutout", text)

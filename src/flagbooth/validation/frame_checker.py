from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
from PIL import Image

from flagbooth.core.models import Window, get_format
from flagbooth.render.frames import ALPHA_PRESENT_THRESHOLD, key_white_cutout
from flagbooth.validation.report import RuleResult, ValidationReport

ALIGN_TOLERANCE_PX = 4
MIN_COVERAGE = 0.98


def _transparent_bbox(alpha: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """(left, top, right, bottom) of transparent pixels, right/bottom exclusive."""
    ys, xs = np.nonzero(alpha < ALPHA_PRESENT_THRESHOLD)
    if xs.size == 0:
        return None
    return int(xs.min()), int(ys.min()), int(xs.max()) + 1, int(ys.max()) + 1


def _scaled_window(window: Window, sx: float, sy: float) -> Tuple[int, int, int, int]:
    return (
        int(round(window.x * sx)),
        int(round(window.y * sy)),
        int(round(window.right * sx)),
        int(round(window.bottom * sy)),
    )


def validate_frame_asset(asset: Image.Image, format_name: str) -> ValidationReport:
    """
    Check a designer frame against the format it is meant for.

    The asset is keyed the same way the booth keys it at load time, so flat
    (alpha-less) designs are judged on the cutout they will actually get. These are
    heuristics to catch assets that would mis-key or misalign; they do not look at
    the artwork itself.
    """
    fmt = get_format(format_name)
    results: List[RuleResult] = []

    # Rule: Size
    w, h = asset.size
    size_ok = (w, h) == fmt.size
    msg = f"{w}x{h} pixels (expected {fmt.width}x{fmt.height})."
    if not size_ok:
        msg += " The booth will stretch it to the canvas size."
    results.append(
        RuleResult(
            rule_id="Size",
            passed=size_ok,
            message=msg,
            metrics={"width": w, "height": h, "expected": [fmt.width, fmt.height]},
        )
    )

    keyed = np.asarray(key_white_cutout(asset))
    alpha = keyed[:, :, 3]

    # Rule: Cutout
    bbox = _transparent_bbox(alpha)
    transparent = int((alpha < ALPHA_PRESENT_THRESHOLD).sum())
    if bbox is None:
        results.append(
            RuleResult(
                rule_id="Cutout",
                passed=False,
                message="No transparent or near-white centre region found; the photo would be hidden.",
                metrics={"transparent_px": 0},
            )
        )
    else:
        results.append(
            RuleResult(
                rule_id="Cutout",
                passed=True,
                message=f"{transparent} transparent pixels, bounds {bbox}.",
                metrics={"transparent_px": transparent, "bbox": list(bbox)},
            )
        )

    # Window in asset pixel coordinates (assets are stretched to the canvas)
    sx, sy = w / float(fmt.width), h / float(fmt.height)
    win_box = _scaled_window(fmt.window, sx, sy)

    # Rule: Window alignment
    if bbox is None:
        results.append(
            RuleResult(
                rule_id="Window alignment",
                passed=False,
                message="No cutout to align.",
                metrics={"window": list(win_box), "bbox": None},
            )
        )
    else:
        deltas = [b - e for b, e in zip(bbox, win_box)]
        worst = max(abs(d) for d in deltas)
        ok = worst <= ALIGN_TOLERANCE_PX
        msg = f"Cutout edges off by {deltas} px (tolerance ±{ALIGN_TOLERANCE_PX}px)."
        if not ok:
            msg += f" Expected the cutout at {win_box}."
        results.append(
            RuleResult(
                rule_id="Window alignment",
                passed=ok,
                message=msg,
                metrics={"window": list(win_box), "bbox": list(bbox), "deltas": deltas},
            )
        )

    # Rule: Coverage (window pixels that will actually show the photo)
    x0, y0, x1, y1 = win_box
    win_alpha = alpha[y0:y1, x0:x1]
    coverage = float((win_alpha < ALPHA_PRESENT_THRESHOLD).mean()) if win_alpha.size else 0.0
    cov_ok = coverage >= MIN_COVERAGE
    cov_msg = f"Transparent window pixels: {coverage*100:.1f}% (target ≥ {MIN_COVERAGE*100:.0f}%)."
    if not cov_ok:
        cov_msg += " Parts of the photo would be covered by the frame."
    results.append(
        RuleResult(
            rule_id="Coverage",
            passed=cov_ok,
            message=cov_msg,
            metrics={"coverage": coverage, "threshold": MIN_COVERAGE},
        )
    )

    passed = all(r.passed for r in results)
    return ValidationReport(passed=passed, results=results)


def format_report_text(report: ValidationReport) -> str:
    lines: List[str] = []
    lines.append("Frame Check Report")
    lines.append("-" * 32)
    lines.append(f"Overall: {'PASS' if report.passed else 'FAIL'}")
    lines.append("")
    for r in report.results:
        mark = "✅" if r.passed else "❌"
        lines.append(f"{mark} {r.rule_id}: {r.message}")
    return "\n".join(lines)

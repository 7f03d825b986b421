from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import qrcode
from PIL import Image

from flagbooth.core.locations import LOCATIONS, checkin_url

logger = logging.getLogger(__name__)


def make_location_qr(url: str, box_size: int = 10, border: int = 4) -> Image.Image:
    """QR code image (RGB) for a check-in URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(url)
    qr.make(fit=True)
    return qr.make_image(fill_color="black", back_color="white").convert("RGB")


def write_location_qrs(public_url: str, out_dir: Path | str) -> List[Path]:
    """Write `<slug>.png` for every location; returns the written paths."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for slug in LOCATIONS:
        path = out / f"{slug}.png"
        make_location_qr(checkin_url(public_url, slug)).save(path)
        written.append(path)
    logger.info("Wrote %d QR codes to %s", len(written), out)
    return written

#!/usr/bin/env python3
"""
flag_photo.py

Command-line companion to the Capture the Flag booth:
- compose: fit a photo into a location's frame and export the JPEG
- check-frame: check a designer frame PNG before deploying it
- qr: write one check-in QR code per location

Usage:
  python flag_photo.py compose --input in.jpg --output out.jpg --location west-end
  python flag_photo.py compose -i in.jpg -o out.jpg --location west-end --format story --zoom 1.5
  python flag_photo.py check-frame --input assets/frames/west-end-portrait.png --format portrait
  python flag_photo.py qr --public-url https://example.org --out qr/
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from PIL import Image

from flagbooth.app.config import AppConfig
from flagbooth.app.session import EditorSession, load_image_rgb
from flagbooth.core.geometry import clamp_offset, zoom_about
from flagbooth.core.locations import require_location
from flagbooth.core.models import DEFAULT_FORMAT, FORMATS
from flagbooth.render.compositor import make_thumbnail, save_export
from flagbooth.render.qr_codes import write_location_qrs
from flagbooth.validation.frame_checker import format_report_text, validate_frame_asset

logger = logging.getLogger("flag_photo")


def compose_photo(
    input_path: str,
    output_path: str,
    location_slug: str,
    format_name: str = DEFAULT_FORMAT,
    frames_dir: Optional[str] = None,
    zoom: float = 1.0,
    thumbnail_path: Optional[str] = None,
) -> Image.Image:
    """
    Composite a photo into the frame for `location_slug` and save it.

    Args:
      input_path: photo to place (any format Pillow reads; EXIF orientation applied)
      output_path: where to write the composite (jpg at export quality, or png)
      location_slug: location whose frame to use
      format_name: square / portrait / story
      frames_dir: directory with designer frames; the procedural frame is used otherwise
      zoom: extra zoom about the window centre, 1.0 (cover fit) to 5.0
      thumbnail_path: optional path for the 480px-wide review thumbnail
    """
    require_location(location_slug)
    if not (1.0 <= zoom <= 5.0):
        raise ValueError("zoom should be between 1.0 and 5.0.")

    session = EditorSession(frames_dir or AppConfig().frames_dir)
    session.select_location(location_slug)
    session.select_format(format_name, background=False)
    session.set_photo(load_image_rgb(input_path), input_path)

    if zoom != 1.0:
        st = session.state
        win = st.window
        t = zoom_about(st.transform, win.x + win.w / 2.0, win.y + win.h / 2.0, zoom, st.min_scale)
        t.offset_x, t.offset_y = clamp_offset(t, st.photo.width, st.photo.height, win)
        st.transform = t
        session.render()

    canvas = session.canvas
    save_export(canvas, output_path)
    if thumbnail_path:
        save_export(make_thumbnail(canvas), thumbnail_path)
    return canvas


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Capture the Flag photo tools.")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("compose", help="Composite a photo into a location frame.")
    c.add_argument("--input", "-i", required=True, help="Path to the photo (jpg/png/etc)")
    c.add_argument("--output", "-o", required=True, help="Path to the output image (jpg/png)")
    c.add_argument("--location", "-l", required=True, help="Location slug, e.g. west-end")
    c.add_argument("--format", "-f", default=DEFAULT_FORMAT, choices=sorted(FORMATS), help="Output format")
    c.add_argument("--frames-dir", default=None, help="Directory with designer frames (<slug>-<format>.png)")
    c.add_argument("--zoom", type=float, default=1.0, help="Extra zoom about the window centre (1.0–5.0)")
    c.add_argument("--thumbnail", default=None, help="Also write the 480px review thumbnail here")

    k = sub.add_parser("check-frame", help="Check a designer frame asset.")
    k.add_argument("--input", "-i", required=True, help="Path to the frame PNG")
    k.add_argument("--format", "-f", required=True, choices=sorted(FORMATS), help="Format the frame is for")

    q = sub.add_parser("qr", help="Write a check-in QR code per location.")
    q.add_argument("--public-url", default=os.getenv("FLAGBOOTH_PUBLIC_URL"), help="Public site URL")
    q.add_argument("--out", "-o", required=True, help="Output directory")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    try:
        if args.command == "compose":
            compose_photo(
                input_path=args.input,
                output_path=args.output,
                location_slug=args.location,
                format_name=args.format,
                frames_dir=args.frames_dir,
                zoom=args.zoom,
                thumbnail_path=args.thumbnail,
            )
            print(f"Saved: {args.output}")
            return 0

        if args.command == "check-frame":
            with Image.open(args.input) as im:
                im.load()
                report = validate_frame_asset(im, args.format)
            print(format_report_text(report))
            for r in report.failed():
                logger.info("%s failed for %s", r.rule_id, args.input)
            return 0 if report.passed else 1

        if args.command == "qr":
            if not args.public_url:
                raise ValueError("--public-url (or FLAGBOOTH_PUBLIC_URL) is required.")
            paths = write_location_qrs(args.public_url, args.out)
            print(f"Saved: {len(paths)} QR codes to {args.out}")
            return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    return 2


if __name__ == "__main__":
    raise SystemExit(main())

"""Command-line front end: compress three profile photos and request a styled preview."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from stylist.client import DEFAULT_TIMEOUT_SECONDS, StylingSession
from stylist.config import default_server_url
from stylist.errors import StylistError
from stylist.limits import format_bytes
from stylist.models import SlotPosition, UploadedFile

log = logging.getLogger("stylist.cli")

_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/webp": ".webp"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stylist-preview",
        description="Generate a styled portrait from front, side and rear profile photos.",
    )
    for position in SlotPosition:
        parser.add_argument(f"--{position.value}", required=True, type=Path, help=f"{position.label} path")
    parser.add_argument("--hair", default="", help="Requested hairstyle, e.g. 'Low Fade'")
    parser.add_argument("--beard", default="", help="Requested beard style")
    parser.add_argument("--note", default="", help="Free-form styling request")
    parser.add_argument("--server", default=default_server_url(), help="Generation API base URL")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS, help="Request timeout in seconds")
    parser.add_argument("--output", type=Path, default=Path("styled-preview.png"), help="Where to write the image")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _output_path(path: Path, mime_type: str) -> Path:
    expected = _EXTENSIONS.get(mime_type)
    if expected and path.suffix.lower() != expected:
        return path.with_suffix(expected)
    return path


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    with StylingSession(args.server, timeout=args.timeout) as session:
        try:
            uploads = {
                position: UploadedFile.from_path(getattr(args, position.value))
                for position in SlotPosition
            }
            slots = session.upload_all(uploads)
            for position, slot in slots.items():
                print(f"{position.label}: {slot.file.filename} ({format_bytes(slot.file.size)})")

            decision = session.budget()
            print(f"Combined upload: {format_bytes(decision.total_bytes)}")
            if decision.exceeds_soft_target:
                print(
                    "Warning: combined size is above "
                    f"{format_bytes(session.budget_gate.soft_target)}; the upload may be slow or rejected.",
                )

            session.select_hair(args.hair)
            session.select_beard(args.beard)
            session.set_custom_note(args.note)
            result = session.generate()
        except (StylistError, OSError) as exc:
            message = exc.message if isinstance(exc, StylistError) else str(exc)
            print(f"error: {message}", file=sys.stderr)
            details = getattr(exc, "details", None)
            if details:
                print(details, file=sys.stderr)
            return 1

    if result is None:
        print("error: all three profile images are required.", file=sys.stderr)
        return 1

    target = _output_path(args.output, result.mime_type)
    target.write_bytes(result.image_bytes)
    print(f"Saved {result.mime_type} preview to {target}")
    if result.text:
        print(result.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())

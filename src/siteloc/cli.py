"""Command-line entry point: ``siteloc resolve IMAGE...``."""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import List, Optional, Sequence

from .app import captures_from_paths, create_backend, create_processor, open_cache, resolve_batch
from .core.geocoder import GeocoderSettings
from .core.labels import format_location_label
from .errors import InvalidCoordinateError
from .models.types import BatchOutcome, GeoCoordinate
from .utils.geocoding import ReverseGeocoder
from .utils.logging import configure_logging


def _parse_coordinate(text: str) -> GeoCoordinate:
    try:
        lat_text, lon_text = text.split(",", 1)
        return GeoCoordinate(float(lat_text), float(lon_text))
    except (ValueError, InvalidCoordinateError) as exc:
        raise argparse.ArgumentTypeError(f"expected LAT,LON in degrees, got {text!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="siteloc",
        description="Resolve one site address for a batch of field photos.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="resolve the address for a batch of images")
    resolve.add_argument("images", nargs="+", type=Path, help="image files from one session")
    resolve.add_argument("--job-address", help="known site address; skips geocoding")
    resolve.add_argument(
        "--device", type=_parse_coordinate, metavar="LAT,LON", help="current device location"
    )
    resolve.add_argument(
        "--cache", type=Path, help="geocode cache file or directory (default: in memory)"
    )
    resolve.add_argument(
        "--offline", action="store_true", help="use the bundled offline place dataset"
    )
    resolve.add_argument(
        "--timeout",
        type=float,
        default=GeocoderSettings().timeout_sec,
        help="geocoding timeout in seconds (default: %(default)s)",
    )
    return parser


def _print_outcome(outcome: BatchOutcome, images: Sequence[Path]) -> None:
    print(format_location_label(outcome.address, outcome.coordinate))
    for path, record in zip(images, outcome.photos):
        taken = record.timestamp.isoformat() if record.timestamp is not None else "-"
        print(f"{path}\t{outcome.label_for(record)}\t{taken}")


async def _run_resolve(args: argparse.Namespace, backend: Optional[ReverseGeocoder]) -> BatchOutcome:
    cache = open_cache(args.cache)
    processor = create_processor(
        cache,
        backend or create_backend(offline=args.offline),
        settings=GeocoderSettings(timeout_sec=args.timeout),
    )
    captures = captures_from_paths(args.images, batch_id=uuid.uuid4().hex)
    try:
        return await resolve_batch(
            processor, captures, job_address=args.job_address, device_location=args.device
        )
    finally:
        await processor.aclose()


def main(argv: List[str] | None = None, *, backend: Optional[ReverseGeocoder] = None) -> int:
    """Run the CLI and return the exit code."""

    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)

    if args.command == "resolve":
        outcome = asyncio.run(_run_resolve(args, backend))
        _print_outcome(outcome, args.images)
        return 0
    parser.error(f"unknown command {args.command!r}")  # pragma: no cover - argparse exits
    return 2  # pragma: no cover


if __name__ == "__main__":  # pragma: no cover - manual launch
    raise SystemExit(main())

"""
Memonex Guard command line.

    memonex-guard scan package.json [--deep] [--content-type imprint] [--json]
    memonex-guard screen package.json [--force] [--skip-scan] [--output cleaned.json]

Exit codes: 0 safe / imported, 1 unsafe / nothing imported, 2 unreadable input.
Logs go to stderr; reports go to stdout.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import structlog

from memonex.models.base import ContentType, ScanMode
from memonex.monitoring.logging import configure_logging
from memonex.scanner.pipeline import ScanOptions, scan
from memonex.scanner.report import format_safety_report
from memonex.services.import_gate import ImportOptions, screen_import

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_BAD_INPUT = 2


def load_package(path: str) -> Any:
    """Read a JSON package from a file, or from stdin when path is `-`."""
    if path == "-":
        return json.load(sys.stdin)
    with Path(path).open(encoding="utf-8") as fh:
        return json.load(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memonex-guard", description="Memonex package safety scanner")
    sub = parser.add_subparsers(dest="command", required=True)

    scan_cmd = sub.add_parser("scan", help="Scan a package and print the safety report")
    scan_cmd.add_argument("path", help="Package JSON file, or - for stdin")
    scan_cmd.add_argument("--deep", action="store_true", help="Always run the deep phase")
    scan_cmd.add_argument(
        "--content-type",
        choices=[t.value for t in ContentType] + ["meme"],
        help="Override the package's declared content type",
    )
    scan_cmd.add_argument("--json", action="store_true", help="Print the scan result as JSON")

    screen_cmd = sub.add_parser("screen", help="Screen a purchased package for import")
    screen_cmd.add_argument("path", help="Package JSON file, or - for stdin")
    screen_cmd.add_argument("--force", action="store_true", help="Keep blocked content as warnings")
    screen_cmd.add_argument("--skip-scan", action="store_true", help="Import without scanning")
    screen_cmd.add_argument("--output", help="Write the cleaned package JSON here")

    return parser


def _scan_options(args: argparse.Namespace) -> ScanOptions:
    return ScanOptions(
        content_type=args.content_type,
        mode=ScanMode.DEEP if args.deep else None,
    )


def run_scan(args: argparse.Namespace, raw: Any) -> int:
    result = scan(raw, _scan_options(args))
    if args.json:
        print(json.dumps(result.to_wire(), indent=2))
    else:
        print(format_safety_report(result))
    return EXIT_OK if result.safe_to_import else EXIT_REJECTED


def run_screen(args: argparse.Namespace, raw: Any) -> int:
    screening = screen_import(raw, ImportOptions(force_import=args.force, skip_safety_scan=args.skip_scan))
    print(format_safety_report(screening.safety_report))
    for warning in screening.warnings:
        print(f"Warning: {warning}")
    print(f"Imported {screening.insights_imported} insight(s), blocked {screening.insights_blocked}")

    if not screening.success:
        return EXIT_REJECTED
    if args.output:
        Path(args.output).write_text(json.dumps(screening.cleaned.to_wire(), indent=2), encoding="utf-8")
        logger.info("cleaned_package_written", path=args.output, package_id=screening.package_id)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        raw = load_package(args.path)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read package {args.path}: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    if args.command == "scan":
        return run_scan(args, raw)
    return run_screen(args, raw)


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from softcatalog.app import (
    build_worker,
    diagnostics_report,
    enrich_catalog,
    inventory_statistics,
    list_installed,
    refresh_inventory,
)
from softcatalog.config import configure_logging
from softcatalog.domain.model import Category, OriginPlatform

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from softcatalog.domain.enrichment_pipeline import EnrichmentWorker

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="softcatalog",
        description="Inventory the software and games installed on this machine",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    commands = parser.add_subparsers(dest="command", required=True)

    refresh = commands.add_parser("refresh", help="Run a detection pass")
    refresh.add_argument(
        "--no-enrich",
        action="store_true",
        help="Do not queue new entries for background enrichment",
    )
    refresh.add_argument(
        "--wait",
        action="store_true",
        help="Wait for the background enrichment to finish before exiting",
    )

    enrich = commands.add_parser("enrich", help="Enrich catalog entries now")
    enrich.add_argument(
        "--batch-size",
        type=_positive_int,
        help="Number of entries to process (default: the force batch size)",
    )

    listing = commands.add_parser("list", help="Print the installed software")
    listing.add_argument("--category", choices=[category.value for category in Category])
    listing.add_argument("--origin", choices=[origin.value for origin in OriginPlatform])

    commands.add_parser("stats", help="Print inventory statistics")

    diagnostics = commands.add_parser("diagnostics", help="Print enrichment diagnostics")
    diagnostics.add_argument("--json", action="store_true", help="Print the report as JSON")

    return parser.parse_args(list(argv))


def _run_refresh(args: argparse.Namespace) -> int:
    worker: EnrichmentWorker | None = None if args.no_enrich else build_worker()
    try:
        result = refresh_inventory(worker=worker)
        if worker is not None:
            if args.wait:
                print("Waiting for background enrichment...")
                worker.wait_idle()
            else:
                worker.cancel()
    finally:
        if worker is not None:
            worker.stop()

    for report in result.reports:
        state = report.error or ("ok" if report.available else "not available")
        print(f"{report.name:<18} {report.candidates:>5}  {state}")
    print(
        f"Detected {result.detected}, merged into {result.merged}: "
        f"{result.created} new, {result.updated} updated, {result.pruned} pruned"
    )
    if result.enrichment_candidates and not args.wait:
        print(f"{len(result.enrichment_candidates)} entries await enrichment")
    if result.failed:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    return 0


def _run_enrich(args: argparse.Namespace) -> int:
    result = enrich_catalog(batch_size=args.batch_size)
    print(
        f"Selected {result.selected}: {result.enriched} enriched, {result.failed} failed, "
        f"{result.skipped} skipped"
    )
    if result.no_provider_available:
        print(f"{result.no_provider_available} waiting for an available provider")
    for provider in sorted(result.unavailable_providers):
        print(f"Provider unavailable: {provider}")
    if result.error:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    return 0


def _run_list(args: argparse.Namespace) -> int:
    installed = list_installed(
        category=Category(args.category) if args.category else None,
        origin=OriginPlatform(args.origin) if args.origin else None,
    )
    for item in installed:
        version = item.installation.version or ""
        print(f"{item.name:<50} {item.origin:<9} {item.category.display_name:<24} {version}")
    print(f"{len(installed)} installed")
    return 0


def _run_stats() -> int:
    stats = inventory_statistics()
    print(f"Installed: {stats.total}")
    print("By category:")
    for category, count in stats.by_category.items():
        print(f"  {Category(category).display_name:<24} {count}")
    print("By origin:")
    for origin, count in stats.by_origin.items():
        print(f"  {origin:<24} {count}")
    print(f"Available sources: {', '.join(stats.available_origins) or 'none'}")
    return 0


def _run_diagnostics(args: argparse.Namespace) -> int:
    report = diagnostics_report()
    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print(report.render())
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "refresh":
            code = _run_refresh(args)
        elif args.command == "enrich":
            code = _run_enrich(args)
        elif args.command == "list":
            code = _run_list(args)
        elif args.command == "stats":
            code = _run_stats()
        else:
            code = _run_diagnostics(args)
    except Exception as e:
        log.exception("Unexpected failure")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def entrypoint() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    entrypoint()

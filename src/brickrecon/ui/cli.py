from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Final

from dotenv import load_dotenv

from brickrecon.app import (
    ExportFormat,
    build_services,
    export_rows,
    init_database,
    map_set_minifigs,
    validate_part,
)
from brickrecon.config import configure_logging
from brickrecon.domain.export import BrickLinkOptions, Condition, RebrickableOptions
from brickrecon.domain.validation import MalformedRequestError, RateLimited, ValidationRequest
from brickrecon.ui.schema import dump_missing_rows, parse_missing_rows

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence
    from types import FrameType

    from brickrecon.app import AppServices

log = logging.getLogger(__name__)

EXIT_FAILURE: Final[int] = 1
EXIT_USAGE: Final[int] = 2
EXIT_RATE_LIMITED: Final[int] = 3


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile Rebrickable and BrickLink ids")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create or upgrade the database schema")
    init_db.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy database URI (defaults to DATABASE_URI or the data dir)",
    )

    validate = subparsers.add_parser("validate", help="Validate a stored BrickLink part id")
    validate.add_argument("--bl-part-id", type=str, required=True, help="Stored BrickLink part id")
    validate.add_argument(
        "--rb-part-id",
        type=str,
        help="Rebrickable part id used to derive replacement candidates",
    )
    validate.add_argument(
        "--caller",
        type=str,
        default="cli",
        help="Caller identity for rate limiting (default: %(default)s)",
    )

    export = subparsers.add_parser("export", help="Write a parts manifest CSV")
    export.add_argument(
        "--format",
        type=ExportFormat,
        choices=list(ExportFormat),
        required=True,
        help="Manifest format",
    )
    export.add_argument("--input", type=Path, required=True, help="JSON file of missing rows")
    export.add_argument("--output", type=Path, help="CSV output path (default: stdout)")
    export.add_argument("--unmapped", type=Path, help="Write unmapped rows to this JSON file")
    export.add_argument(
        "--wanted-list-name",
        type=str,
        default="",
        help="Wanted list name placed in the BrickLink Description column",
    )
    export.add_argument(
        "--condition",
        type=Condition,
        choices=list(Condition),
        default=Condition.USED,
        help="BrickLink condition (default: %(default)s)",
    )
    export.add_argument(
        "--include-minifigs",
        action="store_true",
        help="Append minifig rows to the Rebrickable export",
    )
    export.add_argument(
        "--no-resolve",
        action="store_true",
        help="Skip identity resolution; BrickLink rows are looked up one by one",
    )

    minifigs = subparsers.add_parser("minifigs", help="Map a set's Rebrickable minifigs")
    minifigs.add_argument("--set", dest="set_number", type=str, required=True, help="Set number")
    minifigs.add_argument(
        "--read-only",
        action="store_true",
        help="Never trigger a BrickLink sync",
    )
    minifigs.add_argument("fig_ids", nargs="+", help="Rebrickable fig ids")

    return parser.parse_args(list(argv))


def _print_json(payload: object) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


async def _closing[T](services: AppServices, work: Awaitable[T]) -> T:
    try:
        return await work
    finally:
        await services.aclose()


async def _validate_and_report(services: AppServices, request: ValidationRequest) -> int:
    try:
        outcome = await validate_part(services, request)
        # Report before draining the self-heal write
        _print_json(outcome.to_payload())
    finally:
        await services.aclose()
    return EXIT_RATE_LIMITED if isinstance(outcome, RateLimited) else 0


def _run_validate(args: argparse.Namespace) -> int:
    services = build_services()
    request = ValidationRequest(
        bl_part_id=args.bl_part_id,
        rb_part_id=args.rb_part_id,
        caller=args.caller,
    )
    try:
        return asyncio.run(_validate_and_report(services, request))
    except MalformedRequestError as exc:
        log.error("Invalid request: %s", exc)
        return EXIT_USAGE


def _run_export(args: argparse.Namespace) -> int:
    payloads = parse_missing_rows(args.input.read_bytes())
    rows = [payload.to_missing_row() for payload in payloads]
    overrides = [row for payload in payloads if (row := payload.to_inventory_row()) is not None]

    services = build_services()
    result = asyncio.run(
        _closing(
            services,
            export_rows(
                services,
                rows,
                args.format,
                resolve=not args.no_resolve,
                inventory_rows=overrides,
                bricklink_options=BrickLinkOptions(
                    wanted_list_name=args.wanted_list_name,
                    condition=args.condition,
                ),
                rebrickable_options=RebrickableOptions(include_minifigs=args.include_minifigs),
            ),
        )
    )

    if args.output is None:
        sys.stdout.write(result.csv + "\n")
    else:
        args.output.write_text(result.csv, encoding="utf-8")
        log.info("Wrote %s manifest to %s", args.format, args.output)
    if args.unmapped is not None:
        args.unmapped.write_bytes(dump_missing_rows(result.unmapped))
    if result.unmapped:
        log.warning("%d rows could not be mapped", len(result.unmapped))
    return 0


def _run_minifigs(args: argparse.Namespace) -> int:
    services = build_services()
    result = asyncio.run(
        _closing(
            services,
            map_set_minifigs(services, args.set_number, args.fig_ids, read_only=args.read_only),
        )
    )
    _print_json(
        {
            "mappings": result.mappings,
            "syncStatus": result.sync_status.value if result.sync_status else None,
            "unmappedFigIds": result.unmapped_fig_ids,
            "syncTriggered": result.sync_triggered,
        }
    )
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        if parsed_args.command == "init-db":
            init_database(database_uri=parsed_args.database_uri)
            log.info("Database schema is up to date")
            exit_code = 0
        elif parsed_args.command == "validate":
            exit_code = _run_validate(parsed_args)
        elif parsed_args.command == "export":
            exit_code = _run_export(parsed_args)
        elif parsed_args.command == "minifigs":
            exit_code = _run_minifigs(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error running %s", parsed_args.command)
        sys.exit(EXIT_FAILURE)

    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()

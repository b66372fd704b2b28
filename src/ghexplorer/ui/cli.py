from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any, cast

from dotenv import load_dotenv

from ghexplorer.app import (
    ENRICHABLE_TYPES,
    enrich,
    init_database,
    pipeline_status,
    run_ingestion,
    sync_repositories,
)
from ghexplorer.config import configure_logging
from ghexplorer.domain.model import EntityType, split_full_name

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import FrameType

log = logging.getLogger(__name__)

ENTITY_CHOICES: dict[str, tuple[EntityType, ...]] = {
    "repositories": (EntityType.REPOSITORY,),
    "contributors": (EntityType.CONTRIBUTOR,),
    "merge_requests": (EntityType.MERGE_REQUEST,),
    "all": ENRICHABLE_TYPES,
}


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest and enrich GitHub data")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create or migrate the database schema")

    ingest = subparsers.add_parser("ingest", help="Ingest raw GitHub event payloads")
    ingest.add_argument(
        "--events",
        type=Path,
        required=True,
        help="JSON file (object or array) or JSON Lines file with one payload per line",
    )
    ingest.add_argument(
        "--batch-size",
        type=int,
        help="Split the payloads into batches of this size (runs unbatched when omitted)",
    )

    sync = subparsers.add_parser("sync", help="Fetch repositories and their activity")
    sync.add_argument("repositories", nargs="+", metavar="OWNER/NAME")
    sync.add_argument(
        "--max-items",
        type=int,
        help="Maximum number of contributors, pull requests and commits per repository",
    )

    enrich_parser = subparsers.add_parser("enrich", help="Enrich stored entities from GitHub")
    enrich_parser.add_argument(
        "--entity",
        choices=sorted(ENTITY_CHOICES),
        default="all",
        help="Entity type to enrich (default: %(default)s)",
    )
    enrich_parser.add_argument(
        "--once",
        action="store_true",
        help="Process a single batch instead of draining the backlog",
    )
    enrich_parser.add_argument(
        "--batch-size",
        type=int,
        help="Candidates per batch (defaults to config)",
    )

    subparsers.add_parser("status", help="Show pending enrichment work per pipeline")

    return parser.parse_args(list(argv))


def _positive(value: int | None, flag: str) -> int | None:
    if value is not None and value <= 0:
        raise ValueError(f"{flag} must be positive, got {value}")
    return value


def _load_events(path: Path) -> list[Mapping[str, object]]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read events file {path}: {exc}") from exc

    try:
        document: Any = json.loads(text)
    except json.JSONDecodeError:
        lines = [line for line in text.splitlines() if line.strip()]
        try:
            items: list[Any] = [json.loads(line) for line in lines]
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is neither JSON nor JSON Lines: {exc}") from exc
    else:
        items = cast(list[Any], document) if isinstance(document, list) else [document]

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"Event {index} in {path} is not a JSON object")
    return cast(list["Mapping[str, object]"], items)


def _validate(args: argparse.Namespace) -> None:
    if args.command == "ingest":
        _positive(args.batch_size, "--batch-size")
        args.events = _load_events(args.events)
    elif args.command == "sync":
        _positive(args.max_items, "--max-items")
        for full_name in args.repositories:
            split_full_name(full_name)
    elif args.command == "enrich":
        _positive(args.batch_size, "--batch-size")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "init-db":
            revision = init_database()
            log.info("Database ready at revision %s", revision)
        elif parsed_args.command == "ingest":
            context = run_ingestion(parsed_args.events, batch_size=parsed_args.batch_size)
            log.info("Ingestion summary: %s", context.summary().as_dict())
        elif parsed_args.command == "sync":
            context = sync_repositories(
                parsed_args.repositories,
                max_items=parsed_args.max_items,
            )
            log.info("Sync summary: %s", context.summary().as_dict())
        elif parsed_args.command == "enrich":
            results = enrich(
                ENTITY_CHOICES[parsed_args.entity],
                once=parsed_args.once,
                batch_size=parsed_args.batch_size,
            )
            for entity_type, stats in results.items():
                log.info(
                    "%s: processed=%d success=%d failed=%d not_found=%d",
                    entity_type,
                    stats.processed,
                    stats.success,
                    stats.failed,
                    stats.not_found,
                )
        elif parsed_args.command == "status":
            for kind, counts in pipeline_status().items():
                pending = ", ".join(f"{entity}={count}" for entity, count in counts.items())
                log.info("%s: %s", kind, pending or "no enrichment backlog")
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from xdedupe.app import (
    cleanup_runs,
    exclude_tuple,
    find_duplicates,
    list_tuples,
    load_dedupe_profile,
    merge_tuples,
)
from xdedupe.config import ConfigurationError, configure_logging, parse_retention
from xdedupe.domain.errors import MissingRunError, UnknownStrategyError
from xdedupe.domain.model import RunIdentifier

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find and merge duplicate contacts")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    find = subparsers.add_parser("find", help="Discover duplicate tuples for a profile")
    find.add_argument("profile", type=Path, help="Path to a JSON dedupe profile")
    find.add_argument(
        "--run-id",
        type=str,
        help="Add the results to an existing run instead of starting a new one",
    )

    show = subparsers.add_parser("show", help="List tuples of a discovery run")
    show.add_argument("run_id", type=str, help="Identifier printed by 'find'")
    show.add_argument("--count", type=int, default=20, help="Number of tuples to list")
    show.add_argument("--offset", type=int, default=0, help="Number of tuples to skip")
    show.add_argument(
        "--picker",
        dest="pickers",
        action="append",
        default=[],
        help="Main-record picker to apply (repeatable, first decisive pick wins)",
    )

    merge = subparsers.add_parser("merge", help="Merge a page of tuples of a discovery run")
    merge.add_argument("run_id", type=str, help="Identifier printed by 'find'")
    merge.add_argument("--profile", type=Path, help="Take resolvers and pickers from a profile")
    merge.add_argument("--count", type=int, default=20, help="Number of tuples to merge")
    merge.add_argument("--offset", type=int, default=0, help="Number of tuples to skip")
    merge.add_argument(
        "--resolver",
        dest="resolvers",
        action="append",
        default=[],
        help="Resolver to run before each merge (repeatable)",
    )
    merge.add_argument(
        "--picker",
        dest="pickers",
        action="append",
        default=[],
        help="Main-record picker to apply (repeatable)",
    )
    merge.add_argument(
        "--force",
        action="store_true",
        help="Merge despite resolver failures and conflicts (aggressive mode)",
    )
    merge.add_argument("--merge-log", type=Path, help="Append the merge audit log to this file")

    exclude = subparsers.add_parser("exclude", help="Mark a tuple as not being duplicates")
    exclude.add_argument("run_id", type=str, help="Identifier printed by 'find'")
    exclude.add_argument(
        "contact_id", type=int, help="Any member of the tuple, such as the id 'show' printed"
    )

    cleanup = subparsers.add_parser("cleanup", help="Drop stale discovery run tables")
    cleanup.add_argument(
        "--retention",
        type=str,
        help="Keep runs younger than this, e.g. '2 days' (defaults to config)",
    )
    cleanup.add_argument(
        "--keep",
        action="append",
        default=[],
        help="Run identifier to keep regardless of age (repeatable)",
    )

    return parser.parse_args(list(argv))


def _run_id(value: str) -> RunIdentifier:
    return RunIdentifier(value.strip().removeprefix("tmp_xdedupe_"))


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "find":
        profile = load_dedupe_profile(args.profile)
        result = find_duplicates(
            profile,
            run_id=_run_id(args.run_id) if args.run_id else None,
        )
        log.info(
            "Run %s: %s tuples covering %s contacts",
            result.run_id,
            result.tuple_count,
            result.contact_count,
        )
        print(result.run_id)  # noqa: T201
        return 0

    if args.command == "show":
        page = list_tuples(
            _run_id(args.run_id),
            count=args.count,
            offset=args.offset,
            pickers=tuple(args.pickers),
        )
        for main_id, other_ids in page.items():
            print(f"{main_id}: {', '.join(str(other) for other in other_ids)}")  # noqa: T201
        return 0

    if args.command == "merge":
        resolvers = list(args.resolvers)
        pickers = list(args.pickers)
        force_merge = args.force
        merge_log = args.merge_log
        if args.profile is not None:
            profile = load_dedupe_profile(args.profile)
            resolvers = resolvers or profile.resolvers
            pickers = pickers or profile.pickers
            force_merge = force_merge or profile.force_merge
            if merge_log is None and profile.merge_log:
                merge_log = Path(profile.merge_log)
        summary = merge_tuples(
            _run_id(args.run_id),
            count=args.count,
            offset=args.offset,
            resolvers=tuple(resolvers),
            pickers=tuple(pickers),
            force_merge=force_merge,
            merge_log=merge_log,
        )
        for message, occurrences in summary.errors.items():
            log.warning("%sx %s", occurrences, message)
        if summary.aborted:
            log.error("Merge aborted: %s", summary.aborted)
            return 1
        return 0

    if args.command == "exclude":
        added = exclude_tuple(_run_id(args.run_id), args.contact_id)
        log.info("Recorded %s dedupe exceptions", added)
        return 0

    if args.command == "cleanup":
        result = cleanup_runs(
            parse_retention(args.retention) if args.retention else None,
            keep=tuple(_run_id(run) for run in args.keep),
        )
        for table_name in result.dropped:
            print(table_name)  # noqa: T201
        return 0

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        exit_code = _dispatch(parsed_args)
    except (ValueError, ConfigurationError, UnknownStrategyError, MissingRunError):
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

"""Command-line entrypoint for conquest maintenance jobs."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from conquest.config import get_settings
from conquest.database import (
    count_rows,
    get_engine,
    get_session_factory,
    get_table_names,
    init_db,
)
from conquest.domain.context import as_utc, system_context
from conquest.factory import (
    create_conquest_service,
    create_execution_service,
    create_territory_service,
)
from conquest.models import Base
from conquest.results import run_operation

logger = logging.getLogger(__name__)


def _timestamp(value: str) -> datetime:
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}") from exc


def _cmd_init_db(args: argparse.Namespace) -> dict[str, Any]:
    engine = get_engine()
    init_db(engine)
    names = [name for name in get_table_names(engine) if name in Base.metadata.tables]
    return _with_session(
        lambda session: {
            "initialized": True,
            "tables": {name: count_rows(session, name) for name in names},
        }
    )


def _cmd_expire_protections(args: argparse.Namespace) -> dict[str, Any]:
    return _with_session(
        lambda session: create_territory_service(session).expire_protections(args.now)
    )


def _cmd_init_timeline(args: argparse.Namespace) -> dict[str, Any]:
    caller = system_context()
    return _with_session(
        lambda session: create_execution_service(session).initialize_timeline(
            args.start, caller=caller
        )
    )


def _cmd_overview(args: argparse.Namespace) -> dict[str, Any]:
    return _with_session(
        lambda session: create_conquest_service(session).get_conquest_overview(args.now)
    )


def _with_session(operation: Callable[[Session], Any]) -> dict[str, Any]:
    session = get_session_factory()()
    try:
        return run_operation(operation, session)
    finally:
        session.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="conquest", description="Maintenance jobs for the market-conquest engine"
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    init = subcommands.add_parser("init-db", help="Create missing tables and report row counts")
    init.set_defaults(handler=_cmd_init_db)

    expire = subcommands.add_parser(
        "expire-protections", help="Return lapsed territory protections to open"
    )
    expire.add_argument("--now", type=_timestamp, default=None, help="Override the clock")
    expire.set_defaults(handler=_cmd_expire_protections)

    timeline = subcommands.add_parser(
        "init-timeline", help="Seed the default market-entry milestones"
    )
    timeline.add_argument("--start", type=_timestamp, required=True, help="Campaign start date")
    timeline.set_defaults(handler=_cmd_init_timeline)

    overview = subcommands.add_parser("overview", help="Print the conquest overview as JSON")
    overview.add_argument("--now", type=_timestamp, default=None, help="Override the clock")
    overview.set_defaults(handler=_cmd_overview)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    result = args.handler(args)
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    if not result["success"]:
        logger.error("%s failed: %s", args.command, result["error"]["message"])
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

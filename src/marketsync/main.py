#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import sys
import threading
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING

import uvicorn
from dotenv import load_dotenv

from marketsync.adapters.sqlalchemy import Database
from marketsync.app import SWEEP_NAMES, build_scheduler, build_services, build_webhook_app
from marketsync.config import (
    ConfigurationError,
    configure_logging,
    get_database_config,
    get_log_level,
    get_settings,
)
from marketsync.domain.errors import MarketSyncError
from marketsync.domain.model import VoteType

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from marketsync.app import Services
    from marketsync.config import Settings

_stop = threading.Event()


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="marketsync",
        description="Vote aggregation, lifecycle automation and ledger indexing",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the scheduled sweeps and the webhook")
    serve.add_argument(
        "--no-webhook",
        action="store_true",
        help="Only run the sweeps; do not serve the inbound notification endpoint",
    )

    sweep = commands.add_parser("sweep", help="Run one sweep once and exit")
    sweep.add_argument("name", choices=SWEEP_NAMES)

    commands.add_parser("reconcile", help="Run the reconciliation sweep once and exit")
    commands.add_parser("init-db", help="Create the database schema and exit")

    for name, help_text in (
        ("activate", "Activate an approved market on the ledger"),
        ("cancel", "Cancel a proposed or approved market on the ledger"),
    ):
        admin = commands.add_parser(name, help=help_text)
        admin.add_argument("entity_id")

    vote = commands.add_parser("vote", help="Record one vote")
    vote.add_argument("entity_id")
    vote.add_argument("voter_id")
    vote.add_argument("vote_type", choices=[str(vote_type) for vote_type in VoteType])
    vote.add_argument("value", choices=["yes", "no"])

    tally = commands.add_parser("tally", help="Show the current tally of one voting round")
    tally.add_argument("entity_id")
    tally.add_argument("vote_type", choices=[str(vote_type) for vote_type in VoteType])

    return parser.parse_args(list(argv))


def _serve(services: Services, settings: Settings) -> None:
    signal(SIGINT, signal_handler)
    signal(SIGTERM, signal_handler)
    scheduler = build_scheduler(services, settings.sweeps)
    scheduler.start()
    try:
        if settings.webhook is not None:
            app = build_webhook_app(services, settings.webhook)
            uvicorn.run(app, host=settings.webhook.host, port=settings.webhook.port)
        else:
            _stop.wait()
    finally:
        scheduler.stop()


def _run(args: argparse.Namespace) -> None:
    if args.command == "init-db":
        database = Database(uri=get_database_config().uri)
        database.startup()
        database.dispose()
        print("Database schema ready")
        return

    with_webhook = args.command == "serve" and not args.no_webhook
    settings = get_settings(with_webhook=with_webhook)
    services = build_services(settings)
    try:
        match args.command:
            case "serve":
                _serve(services, settings)
            case "sweep":
                print(services.run_sweep(args.name))
            case "reconcile":
                print(services.run_sweep("reconciliation"))
            case "activate":
                print(services.monitor.activate(args.entity_id))
            case "cancel":
                print(services.monitor.cancel(args.entity_id))
            case "vote":
                tally = services.aggregator.submit_vote(
                    args.entity_id, args.voter_id, VoteType(args.vote_type), args.value == "yes"
                )
                print(f"yes={tally.yes} no={tally.no} voters={tally.voters}")
            case "tally":
                tally = services.aggregator.get_tally(args.entity_id, VoteType(args.vote_type))
                print(
                    f"yes={tally.yes} no={tally.no} voters={tally.voters} "
                    f"support={tally.percentage_bps}bps"
                )
    finally:
        services.close()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    try:
        configure_logging(level=get_log_level())
        args = _parse_args(argv if argv is not None else sys.argv[1:])
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        _run(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)
    except MarketSyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def signal_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Stop a running ``serve`` gracefully."""
    print("\nStopping")
    _stop.set()
    sys.exit(0)


if __name__ == "__main__":
    main()

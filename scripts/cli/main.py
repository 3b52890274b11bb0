"""CLI entry point: argument parsing, engine setup, command dispatch."""

import argparse
import sys
from dataclasses import dataclass

from sqlalchemy.orm import Session

from rental_kernel.config import LedgerConfig, load_config
from rental_kernel.db.engine import create_tables, get_session, init_engine_from_url
from rental_kernel.domain.amounts import CurrencyUnit
from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rental_kernel.exceptions import RentalKernelError
from rental_kernel.logging_config import configure_logging
from scripts.cli.util import enable_quiet_logging, restore_logging


@dataclass
class CliContext:
    """What every command handler receives besides its arguments."""

    session: Session
    clock: Clock
    unit: CurrencyUnit
    config: LedgerConfig


def _add_caller(p: argparse.ArgumentParser) -> None:
    p.add_argument("--caller", required=True, help="Identity making the call")


def _add_property(p: argparse.ArgumentParser) -> None:
    p.add_argument("--property", dest="property_id", required=True, help="Property id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scripts.cli",
        description="Operate a rental escrow ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python -m scripts.cli init --owner alice\n"
            "  python -m scripts.cli create --caller alice --property p1 --tenant bob \\\n"
            "      --rent 1 --deposit 2 --late-fee 0.1 --interval-days 30\n"
            "  python -m scripts.cli activate --caller bob --property p1\n"
            "  python -m scripts.cli status --property p1\n"
            "  python -m scripts.cli demo\n"
        ),
    )
    parser.add_argument("--config", type=str, default=None,
                        help="Path to a ledger YAML config (default: config/ledger.yaml)")
    parser.add_argument("--db-url", type=str, default=None,
                        help="Database URL (overrides the config file)")
    parser.add_argument("--at", type=int, default=None,
                        help="Evaluate the call at this UNIX timestamp instead of now")
    parser.add_argument("--verbose", action="store_true",
                        help="Write structured logs to stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Initialize the ledger with its owner")
    p.add_argument("--owner", default=None, help="Owner identity (default: config owner)")

    p = sub.add_parser("create", help="Create a pending rental (owner only)")
    _add_caller(p)
    _add_property(p)
    p.add_argument("--tenant", required=True)
    p.add_argument("--rent", required=True, help="Rent per interval, in major units")
    p.add_argument("--deposit", required=True, help="Deposit, in major units")
    p.add_argument("--late-fee", required=True, help="Late fee, in major units")
    interval = p.add_mutually_exclusive_group()
    interval.add_argument("--interval-days", type=int, default=30)
    interval.add_argument("--interval", type=int, default=None, help="Interval in seconds")

    p = sub.add_parser("activate", help="Activate a rental with rent plus deposit (tenant only)")
    _add_caller(p)
    _add_property(p)
    p.add_argument("--amount", default=None,
                   help="Attached payment in major units (default: the required amount)")

    p = sub.add_parser("pay", help="Pay one period of rent (tenant only)")
    _add_caller(p)
    _add_property(p)
    p.add_argument("--amount", default=None,
                   help="Attached payment in major units (default: the required amount)")

    p = sub.add_parser("end", help="End a rental and refund the deposit (owner only)")
    _add_caller(p)
    _add_property(p)

    p = sub.add_parser("pause", help="Set or clear the pause flag (owner only)")
    _add_caller(p)
    flag = p.add_mutually_exclusive_group(required=True)
    flag.add_argument("--on", dest="paused", action="store_true")
    flag.add_argument("--off", dest="paused", action="store_false")

    p = sub.add_parser("show", help="Show a rental record")
    _add_property(p)
    p.add_argument("--json", action="store_true", help="Output the record as JSON")

    p = sub.add_parser("status", help="Show time since start and due status")
    _add_property(p)

    p = sub.add_parser("deposit", help="Show a rental's deposit amount")
    _add_property(p)

    sub.add_parser("demo", help="Run a six-month simulation on an in-memory database")

    return parser


def main(argv: list[str] | None = None) -> int:
    from scripts.cli.commands import COMMANDS
    from scripts.cli.demo import run_demo

    args = build_parser().parse_args(argv)

    if args.command == "demo":
        return run_demo(verbose=args.verbose)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"  ERROR: Cannot load config: {exc}", file=sys.stderr)
        return 1

    configure_logging(level=config.logging_level)
    muted = [] if args.verbose else enable_quiet_logging()
    try:
        try:
            init_engine_from_url(args.db_url or config.database_url, echo=config.echo_sql)
            create_tables()
        except Exception as exc:
            print(f"  ERROR: Cannot open database: {exc}", file=sys.stderr)
            return 1

        clock = DeterministicClock.at_timestamp(args.at) if args.at is not None else SystemClock()
        session = get_session()
        ctx = CliContext(session=session, clock=clock, unit=config.currency_unit(), config=config)
        try:
            return COMMANDS[args.command](args, ctx)
        except RentalKernelError as exc:
            print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
            return 1
        except ValueError as exc:
            print(f"  ERROR: {exc}", file=sys.stderr)
            return 1
        finally:
            session.close()
    finally:
        restore_logging(muted)


if __name__ == "__main__":
    sys.exit(main())

"""Command line access to the ledger's reports.

Usage:
    hotel-ledger dashboard --date=2024-03-01
    hotel-ledger report --year=2024 --month=3
    hotel-ledger ledger --year=2024 --month=3
    hotel-ledger trajectory --year=2024
    hotel-ledger mix --year=2024 --month=3 --dimension=expense-category
    hotel-ledger seed
    hotel-ledger check-payroll [--repair]

Months are given 1-12 on the command line. Every command prints JSON and
works on the local snapshot only; nothing is sent to the remote store.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

import structlog

from hotel_ledger.aggregation import MixDimension
from hotel_ledger.config import bind_log_context, configure_logging, get_settings
from hotel_ledger.dates import today
from hotel_ledger.demo import seed_demo_data
from hotel_ledger.errors import LedgerError
from hotel_ledger.service import HotelLedger

logger = structlog.get_logger(__name__)


def _month(value: str) -> int:
    month = int(value)
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError("month must be between 1 and 12")
    return month


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hotel-ledger",
        description="Hotel back-office ledger reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    dashboard = sub.add_parser("dashboard", help="Daily metrics and the monthly window")
    dashboard.add_argument("--date", default=None, help="Day as YYYY-MM-DD (default: today)")

    for name, help_text in (
        ("report", "Monthly income, expenses, salaries and net profit"),
        ("ledger", "Itemized CR/DR entries for a month"),
        ("mix", "Category breakdown for a month"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--year", type=int, required=True)
        cmd.add_argument("--month", type=_month, required=True, help="1-12")
        if name == "mix":
            cmd.add_argument(
                "--dimension",
                choices=[d.value for d in MixDimension],
                default=MixDimension.INCOME_SOURCE.value,
            )

    trajectory = sub.add_parser("trajectory", help="Twelve monthly points for a year")
    trajectory.add_argument("--year", type=int, required=True)

    sub.add_parser("seed", help="Write the demo dataset to the local snapshot")

    check = sub.add_parser("check-payroll", help="List salary/expense mirror problems")
    check.add_argument("--repair", action="store_true", help="Fix what can be fixed")
    return parser


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def main(argv: list[str] | None = None) -> int:
    """Run one command; returns the process exit code."""
    configure_logging()
    args = build_parser().parse_args(argv)
    bind_log_context(command=args.command)
    settings = get_settings()

    try:
        async with HotelLedger.from_settings(settings, remote=False) as ledger:
            if args.command == "dashboard":
                _emit(ledger.dashboard(args.date).to_dict())
            elif args.command == "report":
                _emit(ledger.report(args.year, args.month - 1).to_dict())
            elif args.command == "ledger":
                _emit(ledger.ledger(args.year, args.month - 1).to_dict())
            elif args.command == "mix":
                _emit(ledger.mix(args.year, args.month - 1, args.dimension))
            elif args.command == "trajectory":
                _emit([point.to_dict() for point in ledger.trajectory(args.year)])
            elif args.command == "seed":
                if not ledger.store.is_empty():
                    logger.warning("seed_skipped", reason="store is not empty")
                    return 1
                seed_demo_data(ledger.store, today(settings.timezone))
                _emit({"seeded": True, "path": str(settings.snapshot_path)})
            elif args.command == "check-payroll":
                issues = ledger.check_payroll()
                if args.repair and issues:
                    await ledger.repair_payroll()
                _emit(
                    [
                        {
                            "kind": issue.kind.value,
                            "transactionId": issue.transaction_id,
                            "expenseId": issue.expense_id,
                        }
                        for issue in issues
                    ]
                )
    except LedgerError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return 1
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

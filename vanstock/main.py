"""Command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date

from .config import get_settings
from .monitoring import capture_exception, init_monitoring
from .services import HttpOrderSyncClient, ReconciliationService, daily_summaries, format_summary
from .storage import init_db
from .units import format_quantity

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )
    # Reduce noise from httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def cmd_init_db(args: argparse.Namespace) -> int:
    await init_db()
    print("Database ready")
    return 0


async def cmd_recalculate(args: argparse.Namespace) -> int:
    await init_db()
    service = ReconciliationService(order_sync=HttpOrderSyncClient.from_settings())
    stock_day = await service.get_stock_day(args.vehicle, args.date, args.operator)
    lines = await service.recalculate(stock_day.id)

    for line in lines:
        print(
            f"{line.product_id:<20} start={line.start_qty:g} ordered={line.ordered_qty:g} "
            f"returned={line.returned_qty:g} left={line.left_qty:g} {line.unit}"
        )
    print(f"{len(lines)} lines recalculated")
    return 0


async def cmd_summary(args: argparse.Namespace) -> int:
    await init_db()
    summaries = await daily_summaries(args.date)
    if not summaries:
        print(f"No stock days on {args.date.isoformat()}")
        return 0

    for summary in summaries:
        print(format_summary(summary))
        print()
    total_left = sum(s.totals.left for s in summaries)
    print(f"Total left across vans: {format_quantity(total_left)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vanstock", description="Van stock reconciliation")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Create database tables")
    p_init.set_defaults(handler=cmd_init_db)

    p_recalc = sub.add_parser("recalculate", help="Pull ordered quantities for a stock day")
    p_recalc.add_argument("--vehicle", required=True)
    p_recalc.add_argument("--operator", required=True)
    p_recalc.add_argument("--date", type=date.fromisoformat, default=date.today())
    p_recalc.set_defaults(handler=cmd_recalculate)

    p_summary = sub.add_parser("summary", help="Show every van's stock day for a date")
    p_summary.add_argument("--date", type=date.fromisoformat, default=date.today())
    p_summary.set_defaults(handler=cmd_summary)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    init_monitoring(settings)

    try:
        return asyncio.run(args.handler(args))
    except Exception as e:
        capture_exception(e, {"command": args.command})
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

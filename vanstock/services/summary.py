"""Daily overview of every van's stock day."""

from __future__ import annotations

import logging
from datetime import date

from ..models import DaySummary, StockDayStatus
from ..storage import days as day_store
from ..storage import lines as line_store
from ..units import format_quantity
from .merge_view import totals

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    StockDayStatus.OPEN: "Open",
    StockDayStatus.MORNING_COMMITTED: "Morning committed",
    StockDayStatus.CLOSING_VERIFIED: "Closing verified",
}


async def daily_summaries(stock_date: date | str) -> list[DaySummary]:
    """Summaries of all stock days on a date, ordered by vehicle and operator."""
    summaries = []
    for day in await day_store.list_stock_days_for_date(stock_date):
        lines = await line_store.list_lines(day.id)
        summaries.append(
            DaySummary(
                stock_day=day,
                totals=totals(lines),
                line_count=len(lines),
                products=[line.product_id for line in lines],
            )
        )
    logger.debug("Built %d daily summaries for %s", len(summaries), stock_date)
    return summaries


def format_summary(summary: DaySummary) -> str:
    """Format one day summary for display."""
    day = summary.stock_day
    t = summary.totals

    lines = [
        f"Vehicle {day.vehicle_id} / {day.operator_id} ({day.stock_date.isoformat()})",
        f"Status: {STATUS_LABELS[day.status]}",
        f"Start stock: {format_quantity(t.start)}",
        f"Ordered: {format_quantity(t.ordered)}",
        f"Returned: {format_quantity(t.returned)}",
        f"Left in vehicle: {format_quantity(t.left)}",
    ]
    if day.start_odometer is not None:
        odometer = f"Odometer: {day.start_odometer:g}"
        if day.end_odometer is not None:
            odometer += f" -> {day.end_odometer:g} ({day.distance:g} km)"
        lines.append(odometer)
    return "\n".join(lines)

"""Stock day storage and the transactional commit writes."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import aiosqlite

from ..errors import NotFoundError
from ..models import StockDay, StockDayStatus, StockLine, as_date
from ..monitoring import storage_retry
from .db import DB_PATH
from .lines import ensure_writable, refresh_left, upsert_on

logger = logging.getLogger(__name__)

_SELECT_DAYS = (
    "SELECT id, vehicle_id, stock_date, operator_id, status, start_odometer, end_odometer, verified_by "
    "FROM stock_days"
)


def _row_to_day(row: Any) -> StockDay:
    return StockDay(
        id=row[0],
        vehicle_id=row[1],
        stock_date=date.fromisoformat(row[2]),
        operator_id=row[3],
        status=StockDayStatus(row[4]),
        start_odometer=row[5],
        end_odometer=row[6],
        verified_by=row[7],
    )


def _draft_fields(line: StockLine) -> dict[str, Any]:
    # ordered_qty belongs to the order-sync path and is never taken from drafts
    return {
        "unit": line.unit,
        "product_name": line.product_name or None,
        "start_qty": line.start_qty,
        "returned_qty": line.returned_qty,
    }


@storage_retry
async def get_or_create_stock_day(
    vehicle_id: str, stock_date: date | str, operator_id: str
) -> StockDay:
    """Get the stock day for (vehicle, date, operator), creating it on first access."""
    iso = as_date(stock_date).isoformat()
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            "INSERT INTO stock_days(vehicle_id, stock_date, operator_id) VALUES(?, ?, ?) "
            "ON CONFLICT(vehicle_id, stock_date, operator_id) DO NOTHING",
            (vehicle_id, iso, operator_id),
        )
        created = cur.rowcount > 0
        await db.commit()

        cur = await db.execute(
            f"{_SELECT_DAYS} WHERE vehicle_id = ? AND stock_date = ? AND operator_id = ?",
            (vehicle_id, iso, operator_id),
        )
        row = await cur.fetchone()

    if created:
        logger.info(
            "Created stock day %s for vehicle %s on %s", row[0], vehicle_id, iso,
            extra={"operator_id": operator_id},
        )
    return _row_to_day(row)


async def get_stock_day(stock_day_id: int) -> StockDay:
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(f"{_SELECT_DAYS} WHERE id = ?", (stock_day_id,))
        row = await cur.fetchone()
    if not row:
        raise NotFoundError(f"Stock day {stock_day_id} not found")
    return _row_to_day(row)


async def find_stock_days(vehicle_id: str, stock_date: date | str) -> list[StockDay]:
    """All operators' stock days of a vehicle on one date."""
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            f"{_SELECT_DAYS} WHERE vehicle_id = ? AND stock_date = ? ORDER BY id",
            (vehicle_id, as_date(stock_date).isoformat()),
        )
        rows = await cur.fetchall()
        return [_row_to_day(r) for r in rows]


async def list_stock_days_before(vehicle_id: str, before: date | str) -> list[StockDay]:
    """Stock days of a vehicle strictly before a date, most recent first."""
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            f"{_SELECT_DAYS} WHERE vehicle_id = ? AND stock_date < ? ORDER BY stock_date DESC, id DESC",
            (vehicle_id, as_date(before).isoformat()),
        )
        rows = await cur.fetchall()
        return [_row_to_day(r) for r in rows]


async def list_stock_days_for_date(stock_date: date | str) -> list[StockDay]:
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            f"{_SELECT_DAYS} WHERE stock_date = ? ORDER BY vehicle_id, operator_id",
            (as_date(stock_date).isoformat(),),
        )
        rows = await cur.fetchall()
        return [_row_to_day(r) for r in rows]


@storage_retry
async def save_morning_commit(
    stock_day_id: int, start_odometer: float, lines: list[StockLine]
) -> StockDay:
    """Upsert draft lines, set the start odometer and advance to morning_committed.

    Runs in one transaction: either every line and the status change are
    written, or nothing is.
    """
    async with aiosqlite.connect(DB_PATH) as db:
        await ensure_writable(db, stock_day_id)
        for line in lines:
            await upsert_on(db, stock_day_id, line.product_id, _draft_fields(line))
        await refresh_left(db, stock_day_id)
        await db.execute(
            "UPDATE stock_days SET start_odometer = ?, status = ?, updated_at = CURRENT_TIMESTAMP "
            "WHERE id = ? AND status != ?",
            (
                start_odometer,
                StockDayStatus.MORNING_COMMITTED.value,
                stock_day_id,
                StockDayStatus.CLOSING_VERIFIED.value,
            ),
        )
        await db.commit()

    logger.info(
        "Morning commit saved",
        extra={"stock_day_id": stock_day_id, "lines": len(lines), "start_odometer": start_odometer},
    )
    return await get_stock_day(stock_day_id)


@storage_retry
async def save_closing_commit(
    stock_day_id: int,
    end_odometer: float,
    lines: list[StockLine],
    verified_by: str | None = None,
) -> StockDay:
    """Upsert draft lines, set the end odometer and lock the day. One transaction."""
    async with aiosqlite.connect(DB_PATH) as db:
        await ensure_writable(db, stock_day_id)
        for line in lines:
            await upsert_on(db, stock_day_id, line.product_id, _draft_fields(line))
        await refresh_left(db, stock_day_id)
        await db.execute(
            "UPDATE stock_days SET end_odometer = ?, verified_by = ?, status = ?, "
            "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (end_odometer, verified_by, StockDayStatus.CLOSING_VERIFIED.value, stock_day_id),
        )
        await db.commit()

    logger.info(
        "Closing commit saved",
        extra={"stock_day_id": stock_day_id, "lines": len(lines), "end_odometer": end_odometer},
    )
    return await get_stock_day(stock_day_id)

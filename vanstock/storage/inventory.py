"""Live inventory snapshot storage (fallback source for carry-forward)."""

from __future__ import annotations

import logging
from datetime import date

import aiosqlite

from ..models import DEFAULT_UNIT, LiveStockEntry, as_date
from ..monitoring import storage_retry
from .db import DB_PATH

logger = logging.getLogger(__name__)


@storage_retry
async def record_live_stock(
    vehicle_id: str,
    product_id: str,
    stock_date: date | str,
    current_stock: float,
    unit: str = DEFAULT_UNIT,
    morning_stock: float | None = None,
) -> None:
    """Upsert the live stock of one product in a van on a date."""
    if morning_stock is None:
        morning_stock = current_stock
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            "INSERT INTO live_inventory(vehicle_id, product_id, stock_date, unit, morning_stock, current_stock) "
            "VALUES(?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(vehicle_id, product_id, stock_date) DO UPDATE SET "
            "unit=excluded.unit, current_stock=excluded.current_stock, updated_at=CURRENT_TIMESTAMP",
            (vehicle_id, product_id, as_date(stock_date).isoformat(), unit, morning_stock, current_stock),
        )
        await db.commit()


class SqliteLiveInventory:
    """LiveInventorySnapshot backed by the live_inventory table."""

    async def latest_positive_stock(
        self, vehicle_id: str, before: date | str
    ) -> list[LiveStockEntry]:
        """Entries with positive stock before a date, most recent date first."""
        async with aiosqlite.connect(DB_PATH) as db:
            cur = await db.execute(
                "SELECT product_id, current_stock, unit, stock_date FROM live_inventory "
                "WHERE vehicle_id = ? AND stock_date < ? AND current_stock > 0 "
                "ORDER BY stock_date DESC, product_id",
                (vehicle_id, as_date(before).isoformat()),
            )
            rows = await cur.fetchall()

        return [
            LiveStockEntry(
                product_id=r[0],
                quantity=float(r[1]),
                unit=r[2] or DEFAULT_UNIT,
                stock_date=date.fromisoformat(r[3]),
            )
            for r in rows
        ]

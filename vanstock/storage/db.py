"""Database configuration and initialization."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from ..config import get_settings

logger = logging.getLogger(__name__)

DB_PATH = str(get_settings().db_path)


async def init_db() -> None:
    """Initialize all database tables."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(DB_PATH) as db:
        # One reconciliation record per vehicle, date and operator
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS stock_days (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                vehicle_id TEXT NOT NULL,
                stock_date TEXT NOT NULL,
                operator_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'open',
                start_odometer REAL,
                end_odometer REAL,
                verified_by TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (vehicle_id, stock_date, operator_id)
            );
            """
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_stock_days_vehicle ON stock_days(vehicle_id, stock_date)"
        )

        # Stock lines; left_qty is rewritten by every write path
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS stock_lines (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                stock_day_id INTEGER NOT NULL REFERENCES stock_days(id),
                product_id TEXT NOT NULL,
                product_name TEXT NOT NULL DEFAULT '',
                unit TEXT NOT NULL DEFAULT 'kg',
                start_qty REAL NOT NULL DEFAULT 0,
                ordered_qty REAL NOT NULL DEFAULT 0,
                returned_qty REAL NOT NULL DEFAULT 0,
                left_qty REAL NOT NULL DEFAULT 0,
                UNIQUE (stock_day_id, product_id)
            );
            """
        )

        # Live inventory snapshot, fallback source for carry-forward
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS live_inventory (
                vehicle_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                stock_date TEXT NOT NULL,
                unit TEXT NOT NULL DEFAULT 'kg',
                morning_stock REAL NOT NULL DEFAULT 0,
                current_stock REAL NOT NULL DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (vehicle_id, product_id, stock_date)
            );
            """
        )

        await db.commit()
    logger.debug("Database initialised at %s", DB_PATH)

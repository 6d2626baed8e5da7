"""Stock line storage.

At most one line exists per (stock day, product); every write goes through an
upsert on that key. Writes against a closing-verified day are rejected.
"""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from ..errors import LockedStateError, NotFoundError
from ..models import DEFAULT_UNIT, StockDayStatus, StockLine
from ..monitoring import storage_retry
from ..units import convert, normalize_unit
from .db import DB_PATH

logger = logging.getLogger(__name__)

LINE_FIELDS = ("unit", "product_name", "start_qty", "ordered_qty", "returned_qty")
QUANTITY_FIELDS = ("start_qty", "ordered_qty", "returned_qty")

_LINE_DEFAULTS: dict[str, Any] = {
    "unit": DEFAULT_UNIT,
    "product_name": "",
    "start_qty": 0.0,
    "ordered_qty": 0.0,
    "returned_qty": 0.0,
}

_SELECT_LINES = (
    "SELECT id, stock_day_id, product_id, product_name, unit, start_qty, ordered_qty, returned_qty "
    "FROM stock_lines"
)


def _row_to_line(row: Any) -> StockLine:
    return StockLine(
        id=row[0],
        stock_day_id=row[1],
        product_id=row[2],
        product_name=row[3] or "",
        unit=row[4] or DEFAULT_UNIT,
        start_qty=float(row[5] or 0),
        ordered_qty=float(row[6] or 0),
        returned_qty=float(row[7] or 0),
    )


def _validate_fields(product_id: str, fields: dict[str, Any]) -> None:
    if not product_id or not product_id.strip():
        raise ValueError("product_id is required")
    unknown = set(fields) - set(LINE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown stock line fields: {', '.join(sorted(unknown))}")
    for name in QUANTITY_FIELDS:
        if name in fields and fields[name] is not None and fields[name] < 0:
            raise ValueError(f"{name} must not be negative")


async def ensure_writable(db: aiosqlite.Connection, stock_day_id: int) -> StockDayStatus:
    """Return the day's status, raising if the day is missing or locked."""
    cur = await db.execute("SELECT status FROM stock_days WHERE id = ?", (stock_day_id,))
    row = await cur.fetchone()
    if not row:
        raise NotFoundError(f"Stock day {stock_day_id} not found")
    status = StockDayStatus(row[0])
    if status is StockDayStatus.CLOSING_VERIFIED:
        raise LockedStateError(stock_day_id)
    return status


async def refresh_left(db: aiosqlite.Connection, stock_day_id: int) -> None:
    await db.execute(
        "UPDATE stock_lines SET left_qty = start_qty - ordered_qty + returned_qty "
        "WHERE stock_day_id = ?",
        (stock_day_id,),
    )


async def upsert_on(
    db: aiosqlite.Connection,
    stock_day_id: int,
    product_id: str,
    fields: dict[str, Any],
) -> None:
    """Upsert one line on an open connection; caller commits."""
    fields = {k: v for k, v in fields.items() if v is not None}
    _validate_fields(product_id, fields)

    if "unit" in fields and "ordered_qty" not in fields:
        # ordered_qty is stored in the line's unit and follows a unit change
        cur = await db.execute(
            "SELECT unit, ordered_qty FROM stock_lines WHERE stock_day_id = ? AND product_id = ?",
            (stock_day_id, product_id.strip()),
        )
        row = await cur.fetchone()
        if row and normalize_unit(row[0]) != normalize_unit(fields["unit"]):
            fields["ordered_qty"] = convert(float(row[1] or 0), row[0], fields["unit"])

    values = {**_LINE_DEFAULTS, **fields}
    columns = ["stock_day_id", "product_id", *values]
    placeholders = ", ".join("?" * len(columns))
    if fields:
        conflict = "DO UPDATE SET " + ", ".join(f"{c}=excluded.{c}" for c in fields)
    else:
        conflict = "DO NOTHING"

    await db.execute(
        f"INSERT INTO stock_lines({', '.join(columns)}) VALUES({placeholders}) "
        f"ON CONFLICT(stock_day_id, product_id) {conflict}",
        (stock_day_id, product_id.strip(), *values.values()),
    )


@storage_retry
async def upsert_line(stock_day_id: int, product_id: str, **fields: Any) -> StockLine:
    """Insert or update the line for (stock_day_id, product_id)."""
    async with aiosqlite.connect(DB_PATH) as db:
        await ensure_writable(db, stock_day_id)
        await upsert_on(db, stock_day_id, product_id, fields)
        await refresh_left(db, stock_day_id)
        await db.commit()

        cur = await db.execute(
            f"{_SELECT_LINES} WHERE stock_day_id = ? AND product_id = ?",
            (stock_day_id, product_id.strip()),
        )
        row = await cur.fetchone()

    logger.debug(
        "Stock line upserted",
        extra={"stock_day_id": stock_day_id, "product_id": product_id, "fields": sorted(fields)},
    )
    return _row_to_line(row)


async def list_lines(stock_day_id: int) -> list[StockLine]:
    """Get all committed lines of a stock day."""
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            f"{_SELECT_LINES} WHERE stock_day_id = ? ORDER BY product_id",
            (stock_day_id,),
        )
        rows = await cur.fetchall()
        return [_row_to_line(r) for r in rows]


async def get_line(stock_day_id: int, product_id: str) -> StockLine:
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            f"{_SELECT_LINES} WHERE stock_day_id = ? AND product_id = ?",
            (stock_day_id, product_id),
        )
        row = await cur.fetchone()
    if not row:
        raise NotFoundError(f"No line for product {product_id} on stock day {stock_day_id}")
    return _row_to_line(row)


async def get_stored_left(stock_day_id: int) -> dict[str, float]:
    """Stored left_qty column by product, as written by the last write path."""
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute(
            "SELECT product_id, left_qty FROM stock_lines WHERE stock_day_id = ?",
            (stock_day_id,),
        )
        rows = await cur.fetchall()
        return {r[0]: float(r[1]) for r in rows}


@storage_retry
async def set_ordered_quantities(stock_day_id: int, quantities: dict[str, float]) -> int:
    """
    Set ordered_qty from canonical quantities keyed by product.

    The map is the authoritative total for the day: missing lines are created
    with zero start/returned quantities and lines absent from the map drop
    back to zero ordered. Values are set, not added, so re-applying the same
    map changes nothing.
    Returns the number of lines whose ordered quantity changed.
    """
    changed = 0
    async with aiosqlite.connect(DB_PATH) as db:
        await ensure_writable(db, stock_day_id)

        cur = await db.execute(
            "SELECT product_id, unit, ordered_qty FROM stock_lines WHERE stock_day_id = ?",
            (stock_day_id,),
        )
        existing = {r[0]: (r[1], float(r[2] or 0)) for r in await cur.fetchall()}

        targets: dict[str, float] = {}
        for product_id, canonical_qty in quantities.items():
            if canonical_qty is None or canonical_qty < 0:
                raise ValueError(f"Invalid ordered quantity for {product_id}: {canonical_qty}")
            key = (product_id or "").strip()
            targets[key] = targets.get(key, 0.0) + float(canonical_qty)
        for product_id in existing:
            targets.setdefault(product_id, 0.0)

        for product_id, canonical_qty in targets.items():
            unit, current = existing.get(product_id, (DEFAULT_UNIT, None))
            ordered = convert(canonical_qty, DEFAULT_UNIT, unit)
            if current is not None and abs(current - ordered) < 1e-9:
                continue
            await upsert_on(db, stock_day_id, product_id, {"ordered_qty": ordered})
            changed += 1

        await refresh_left(db, stock_day_id)
        await db.commit()

    logger.info(
        "Ordered quantities merged",
        extra={"stock_day_id": stock_day_id, "products": len(quantities), "changed": changed},
    )
    return changed


@storage_retry
async def recompute_left(stock_day_id: int) -> list[StockLine]:
    """Rewrite the stored left_qty of every line of a non-terminal day."""
    async with aiosqlite.connect(DB_PATH) as db:
        await ensure_writable(db, stock_day_id)
        await refresh_left(db, stock_day_id)
        await db.commit()
    return await list_lines(stock_day_id)

"""Backward search for a new day's opening quantities."""

from __future__ import annotations

import logging
from datetime import date
from typing import Protocol

from ..errors import NotFoundError
from ..models import CarryForwardCandidate, LiveStockEntry, StockDay, StockLine, as_date
from ..storage import days as day_store
from ..storage import lines as line_store
from ..storage.inventory import SqliteLiveInventory

logger = logging.getLogger(__name__)


class StockHistory(Protocol):
    """Read access to past stock days of a vehicle."""

    async def list_stock_days_before(self, vehicle_id: str, before: date) -> list[StockDay]: ...

    async def list_lines(self, stock_day_id: int) -> list[StockLine]: ...


class LiveInventorySnapshot(Protocol):
    """External live-inventory source, used only as a fallback."""

    async def latest_positive_stock(self, vehicle_id: str, before: date) -> list[LiveStockEntry]: ...


class SqliteStockHistory:
    """StockHistory over the local stock_days/stock_lines tables."""

    async def list_stock_days_before(self, vehicle_id: str, before: date) -> list[StockDay]:
        return await day_store.list_stock_days_before(vehicle_id, before)

    async def list_lines(self, stock_day_id: int) -> list[StockLine]:
        return await line_store.list_lines(stock_day_id)


def _carry_line(line: StockLine) -> StockLine:
    return StockLine(
        product_id=line.product_id,
        unit=line.unit,
        start_qty=line.left_qty,
        product_name=line.product_name,
    )


class CarryForwardResolver:
    """Find what is physically still in the van before a target date.

    Only the single most recent qualifying day is used; quantities are never
    aggregated across days.
    """

    def __init__(
        self,
        history: StockHistory | None = None,
        live_inventory: LiveInventorySnapshot | None = None,
    ):
        self._history = history or SqliteStockHistory()
        self._live_inventory = live_inventory or SqliteLiveInventory()

    async def resolve(self, vehicle_id: str, target_date: date | str) -> CarryForwardCandidate:
        """Return the carry-forward candidate, or raise NotFoundError if there is none."""
        target = as_date(target_date)

        candidate = await self._from_history(vehicle_id, target)
        if candidate is None:
            candidate = await self._from_live_inventory(vehicle_id, target)
        if candidate is None:
            logger.info("No prior stock found for vehicle %s before %s", vehicle_id, target)
            raise NotFoundError(f"No prior stock found for vehicle {vehicle_id} before {target}")

        logger.info(
            "Carry-forward resolved from %s",
            candidate.source,
            extra={
                "vehicle_id": vehicle_id,
                "source_date": str(candidate.source_date),
                "lines": len(candidate.lines),
            },
        )
        return candidate

    async def _from_history(self, vehicle_id: str, target: date) -> CarryForwardCandidate | None:
        for day in await self._history.list_stock_days_before(vehicle_id, target):
            if day.stock_date >= target:
                continue
            lines = [
                _carry_line(line)
                for line in await self._history.list_lines(day.id)
                if line.left_qty > 0
            ]
            if not lines:
                logger.debug("Stock day %s has nothing left, looking further back", day.id)
                continue

            odometer = day.end_odometer if day.end_odometer is not None else day.start_odometer
            return CarryForwardCandidate(
                lines=lines,
                source="history",
                source_date=day.stock_date,
                suggested_start_odometer=odometer,
            )
        return None

    async def _from_live_inventory(
        self, vehicle_id: str, target: date
    ) -> CarryForwardCandidate | None:
        entries = await self._live_inventory.latest_positive_stock(vehicle_id, target)
        entries = sorted(
            (e for e in entries if e.quantity > 0 and e.stock_date < target),
            key=lambda e: e.stock_date,
            reverse=True,
        )

        if not entries:
            return None

        # only the most recent snapshot date counts; older dates are never merged in
        source_date = entries[0].stock_date
        lines: dict[str, StockLine] = {}
        for entry in entries:
            if entry.stock_date != source_date:
                break
            if entry.product_id not in lines:
                lines[entry.product_id] = StockLine(
                    product_id=entry.product_id, unit=entry.unit, start_qty=entry.quantity
                )

        return CarryForwardCandidate(
            lines=list(lines.values()),
            source="live_inventory",
            source_date=source_date,
        )

"""Stock day lifecycle: open -> morning committed -> closing verified."""

from __future__ import annotations

import logging
from datetime import date

from ..errors import LockedStateError, Precondition, PreconditionError
from ..models import StockDay, StockDayStatus, StockLine, as_date
from ..monitoring import with_error_capture
from ..storage import days as day_store
from ..storage import lines as line_store
from .edit_set import EditSet
from .notifier import ChangeNotifier, StockChanged
from .order_sync import OrderSyncPort

logger = logging.getLogger(__name__)


def check_morning(
    day: StockDay, start_odometer: float | None, persisted: list[StockLine], drafts: list[StockLine]
) -> float:
    """Validate a morning commit. Returns the start odometer to store."""
    if day.is_locked:
        raise LockedStateError(day.id)

    odometer = start_odometer if start_odometer is not None else day.start_odometer
    if not odometer:
        raise PreconditionError(Precondition.MISSING_ODOMETER, "Start odometer reading is required")

    if not any(line.product_id for line in [*persisted, *drafts]):
        raise PreconditionError(
            Precondition.NO_LINE_ITEMS, "Add at least one product with valid details"
        )
    return odometer


def check_closing(day: StockDay, end_odometer: float | None, verified: bool) -> None:
    """Validate a closing commit."""
    if day.is_locked:
        raise LockedStateError(day.id)
    if day.status is StockDayStatus.OPEN:
        raise PreconditionError(
            Precondition.MORNING_NOT_COMMITTED, "Morning stock must be committed before closing"
        )
    if end_odometer is None or day.start_odometer is None:
        raise PreconditionError(Precondition.MISSING_ODOMETER, "End odometer reading is required")
    if end_odometer <= day.start_odometer:
        raise PreconditionError(
            Precondition.NON_INCREASING_ODOMETER,
            f"End odometer {end_odometer} must be greater than start odometer {day.start_odometer}",
        )
    if not verified:
        raise PreconditionError(
            Precondition.MISSING_VERIFICATION, "Stock left in vehicle has not been verified"
        )


class ReconciliationService:
    """Commits, derived quantities and order-sync merges for stock days."""

    def __init__(
        self,
        order_sync: OrderSyncPort | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self._order_sync = order_sync
        self.notifier = notifier or ChangeNotifier()

    async def get_stock_day(
        self, vehicle_id: str, stock_date: date | str, operator_id: str
    ) -> StockDay:
        return await day_store.get_or_create_stock_day(vehicle_id, stock_date, operator_id)

    async def list_lines(self, stock_day_id: int) -> list[StockLine]:
        return await line_store.list_lines(stock_day_id)

    async def upsert_line(
        self,
        stock_day_id: int,
        product_id: str,
        *,
        start_qty: float | None = None,
        returned_qty: float | None = None,
        unit: str | None = None,
        product_name: str | None = None,
    ) -> StockLine:
        """Operator write of one line. Ordered quantities are not accepted here."""
        return await line_store.upsert_line(
            stock_day_id,
            product_id,
            start_qty=start_qty,
            returned_qty=returned_qty,
            unit=unit,
            product_name=product_name,
        )

    async def commit_morning(
        self,
        stock_day_id: int,
        edit_set: EditSet | None = None,
        start_odometer: float | None = None,
    ) -> StockDay:
        """Persist the morning load-out.

        Allowed while open (and re-runnable while morning_committed to save
        further edits; the status never moves back).
        """
        day = await day_store.get_stock_day(stock_day_id)
        drafts = edit_set.lines() if edit_set is not None else []
        persisted = await line_store.list_lines(stock_day_id)
        odometer = check_morning(day, start_odometer, persisted, drafts)

        committed = await day_store.save_morning_commit(stock_day_id, odometer, drafts)
        if day.status is not committed.status:
            logger.info(
                "Stock day %s: %s -> %s", stock_day_id, day.status.value, committed.status.value
            )
        return committed

    async def commit_closing(
        self,
        stock_day_id: int,
        end_odometer: float | None,
        verified: bool,
        verified_by: str | None = None,
        edit_set: EditSet | None = None,
    ) -> StockDay:
        """Verify the closing count and lock the day for good."""
        day = await day_store.get_stock_day(stock_day_id)
        check_closing(day, end_odometer, verified)

        drafts = edit_set.lines() if edit_set is not None else []
        committed = await day_store.save_closing_commit(
            stock_day_id, end_odometer, drafts, verified_by=verified_by
        )
        logger.info(
            "Stock day %s: %s -> %s", stock_day_id, day.status.value, committed.status.value
        )
        return committed

    async def recompute(self, stock_day_id: int) -> list[StockLine]:
        """Re-derive left quantities. Idempotent; start/returned are never touched."""
        return await line_store.recompute_left(stock_day_id)

    async def apply_ordered_quantities(
        self, stock_day_id: int, quantities: dict[str, float]
    ) -> int:
        """Merge an authoritative ordered-quantity map into the day's lines."""
        return await line_store.set_ordered_quantities(stock_day_id, quantities)

    def _require_order_sync(self) -> OrderSyncPort:
        if self._order_sync is None:
            raise ValueError("No order sync source configured")
        return self._order_sync

    @with_error_capture
    async def sync_orders(self, vehicle_id: str, stock_date: date | str) -> int:
        """Handle a push notification that orders changed for a vehicle and date.

        Every open stock day of the vehicle on that date receives the ordered
        quantities; sessions are told to merge, never to reset.
        """
        port = self._require_order_sync()
        day_date = as_date(stock_date)
        stock_days = await day_store.find_stock_days(vehicle_id, day_date)
        if not stock_days:
            logger.debug("No stock day for vehicle %s on %s, ignoring order event", vehicle_id, day_date)
            return 0

        quantities = await port.ordered_quantities(vehicle_id, day_date)
        changed = 0
        for day in stock_days:
            if day.is_locked:
                logger.info("Stock day %s is closed, order event not applied", day.id)
                continue
            changed += await self.apply_ordered_quantities(day.id, quantities)

        await self.notifier.publish(StockChanged(vehicle_id, day_date, reset=False, source="order_sync"))
        return changed

    @with_error_capture
    async def recalculate(self, stock_day_id: int) -> list[StockLine]:
        """Manual recalculation: ask the order service to recompute, then merge its totals."""
        port = self._require_order_sync()
        day = await day_store.get_stock_day(stock_day_id)
        if day.is_locked:
            raise LockedStateError(stock_day_id)

        if not await port.trigger_recompute(day.vehicle_id, day.stock_date):
            logger.warning(
                "Order service recompute failed for vehicle %s on %s, using current totals",
                day.vehicle_id, day.stock_date,
            )
        quantities = await port.ordered_quantities(day.vehicle_id, day.stock_date)
        await self.apply_ordered_quantities(stock_day_id, quantities)
        lines = await line_store.recompute_left(stock_day_id)

        await self.notifier.publish(
            StockChanged(day.vehicle_id, day.stock_date, reset=False, source="recalculate")
        )
        return lines

"""Operator session over one stock day.

Holds the persisted lines as last loaded plus the unsaved EditSet, and reacts
to stock-changed events without clobbering pending edits.
"""

from __future__ import annotations

import logging
from datetime import date

from ..errors import NotFoundError
from ..models import CarryForwardCandidate, StockDay, StockLine, StockTotals
from .carry_forward import CarryForwardResolver
from .edit_set import EditSet
from .merge_view import combine, totals
from .notifier import StockChanged
from .reconciliation import ReconciliationService

logger = logging.getLogger(__name__)


class StockSession:
    """In-memory view of a stock day for the operator editing it."""

    def __init__(self, service: ReconciliationService, stock_day: StockDay):
        self._service = service
        self.stock_day = stock_day
        self.persisted: list[StockLine] = []
        self.edit_set = EditSet()
        self.suggested_start_odometer: float | None = None
        self._unsubscribe = service.notifier.subscribe(self.on_stock_changed)

    @classmethod
    async def open(
        cls,
        service: ReconciliationService,
        vehicle_id: str,
        stock_date: date | str,
        operator_id: str,
    ) -> StockSession:
        stock_day = await service.get_stock_day(vehicle_id, stock_date, operator_id)
        session = cls(service, stock_day)
        await session.refresh()
        return session

    def close_session(self) -> None:
        """Stop listening for events. Unsaved edits are dropped with the session."""
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def view(self) -> list[StockLine]:
        return combine(self.persisted, self.edit_set)

    def totals(self) -> StockTotals:
        return totals(self.view())

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def refresh(self) -> None:
        """Full reload of the stock day and its persisted lines."""
        self.stock_day = await self._service.get_stock_day(
            self.stock_day.vehicle_id, self.stock_day.stock_date, self.stock_day.operator_id
        )
        self.persisted = await self._service.list_lines(self.stock_day.id)

    async def load_carry_forward(
        self, resolver: CarryForwardResolver | None = None
    ) -> CarryForwardCandidate | None:
        """Seed the EditSet with yesterday's leftovers. Returns None when nothing was found."""
        resolver = resolver or CarryForwardResolver()
        try:
            candidate = await resolver.resolve(self.stock_day.vehicle_id, self.stock_day.stock_date)
        except NotFoundError:
            return None

        self.edit_set.load(candidate.lines)
        if candidate.suggested_start_odometer is not None:
            self.suggested_start_odometer = candidate.suggested_start_odometer
        return candidate

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _editable_draft(self, product_id: str) -> None:
        # A persisted line is edited through a draft seeded from it
        if product_id in self.edit_set:
            return
        for line in self.persisted:
            if line.product_id == product_id:
                self.edit_set.put(line)
                return

    def set_start_qty(self, product_id: str, qty: float, unit: str | None = None) -> StockLine:
        self._editable_draft(product_id)
        return self.edit_set.set_start_qty(product_id, qty, unit)

    def set_returned_qty(self, product_id: str, qty: float, unit: str | None = None) -> StockLine:
        self._editable_draft(product_id)
        return self.edit_set.set_returned_qty(product_id, qty, unit)

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    async def save(self, start_odometer: float | None = None) -> StockDay:
        """Morning commit of the EditSet; clears it and reloads on success."""
        if start_odometer is None and self.stock_day.start_odometer is None:
            start_odometer = self.suggested_start_odometer
        self.stock_day = await self._service.commit_morning(
            self.stock_day.id, self.edit_set, start_odometer
        )
        self.edit_set.clear()
        await self.refresh()
        return self.stock_day

    async def verify_closing(
        self, end_odometer: float, verified: bool, verified_by: str | None = None
    ) -> StockDay:
        """Closing commit, persisting pending returned quantities with it."""
        self.stock_day = await self._service.commit_closing(
            self.stock_day.id,
            end_odometer,
            verified,
            verified_by=verified_by,
            edit_set=self.edit_set,
        )
        self.edit_set.clear()
        await self.refresh()
        return self.stock_day

    async def recalculate(self, reset: bool = False) -> None:
        """Manual recalculation followed by a full reload; `reset` also drops unsaved edits."""
        await self._service.recalculate(self.stock_day.id)
        if reset:
            self.edit_set.clear()
        await self.refresh()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _concerns(self, event: StockChanged) -> bool:
        return (
            event.vehicle_id == self.stock_day.vehicle_id
            and event.stock_date == self.stock_day.stock_date
        )

    async def on_stock_changed(self, event: StockChanged) -> None:
        if not self._concerns(event):
            return

        if event.reset:
            logger.info("Stock day %s reset by %s event", self.stock_day.id, event.source)
            self.edit_set.clear()
            await self.refresh()
            return

        fresh = {line.product_id: line for line in await self._service.list_lines(self.stock_day.id)}
        known = set()
        for line in self.persisted:
            known.add(line.product_id)
            if line.product_id in fresh:
                line.ordered_qty = fresh[line.product_id].ordered_qty
        self.persisted.extend(line for pid, line in fresh.items() if pid not in known)
        logger.debug(
            "Merged ordered quantities into session",
            extra={"stock_day_id": self.stock_day.id, "pending_edits": len(self.edit_set)},
        )

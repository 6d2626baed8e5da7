"""Unsaved, session-local stock line drafts."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from ..models import DEFAULT_UNIT, StockLine
from ..units import convert, normalize_unit


class EditSet:
    """Drafts keyed by product id. Never persisted; cleared on save.

    Drafts never carry an ordered quantity: that field belongs to the
    order-sync path.
    """

    def __init__(self, lines: Iterable[StockLine] = ()):
        self._drafts: dict[str, StockLine] = {}
        for line in lines:
            self.put(line)

    def __len__(self) -> int:
        return len(self._drafts)

    def __iter__(self) -> Iterator[StockLine]:
        return iter(self._drafts.values())

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._drafts

    def get(self, product_id: str) -> StockLine | None:
        return self._drafts.get(product_id)

    def lines(self) -> list[StockLine]:
        return list(self._drafts.values())

    def put(self, line: StockLine) -> StockLine:
        """Add or replace the draft for a product."""
        product_id = (line.product_id or "").strip()
        if not product_id:
            raise ValueError("product_id is required")
        _check_qty("start_qty", line.start_qty)
        _check_qty("returned_qty", line.returned_qty)
        draft = StockLine(
            product_id=product_id,
            unit=line.unit or DEFAULT_UNIT,
            start_qty=float(line.start_qty),
            returned_qty=float(line.returned_qty),
            product_name=line.product_name,
        )
        self._drafts[product_id] = draft
        return draft

    def set_start_qty(
        self, product_id: str, qty: float, unit: str | None = None, product_name: str = ""
    ) -> StockLine:
        draft = self._draft_for(product_id, unit, product_name)
        _check_qty("start_qty", qty)
        draft.start_qty = float(qty)
        return draft

    def set_returned_qty(
        self, product_id: str, qty: float, unit: str | None = None, product_name: str = ""
    ) -> StockLine:
        draft = self._draft_for(product_id, unit, product_name)
        _check_qty("returned_qty", qty)
        draft.returned_qty = float(qty)
        return draft

    def load(self, lines: Iterable[StockLine], replace: bool = False) -> int:
        """Load drafts (e.g. a carry-forward candidate). Returns the number loaded."""
        if replace:
            self.clear()
        count = 0
        for line in lines:
            self.put(line)
            count += 1
        return count

    def remove(self, product_id: str) -> bool:
        return self._drafts.pop(product_id, None) is not None

    def clear(self) -> None:
        self._drafts.clear()

    def _draft_for(self, product_id: str, unit: str | None, product_name: str) -> StockLine:
        existing = self._drafts.get(product_id)
        if existing is None:
            return self.put(
                StockLine(product_id=product_id, unit=unit or DEFAULT_UNIT, product_name=product_name)
            )
        if unit and normalize_unit(unit) != normalize_unit(existing.unit):
            # quantities already on the draft keep their amount in the new unit
            existing.start_qty = convert(existing.start_qty, existing.unit, unit)
            existing.returned_qty = convert(existing.returned_qty, existing.unit, unit)
            existing.unit = unit
        if product_name:
            existing.product_name = product_name
        return existing


def _check_qty(name: str, qty: float) -> None:
    if qty is None or qty < 0:
        raise ValueError(f"{name} must be a non-negative number")

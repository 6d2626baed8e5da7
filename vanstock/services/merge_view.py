"""Combined view of persisted lines and unsaved drafts."""

from __future__ import annotations

from collections.abc import Iterable

from ..models import StockLine, StockTotals
from ..units import to_canonical


def combine(persisted: Iterable[StockLine], draft: Iterable[StockLine]) -> list[StockLine]:
    """
    Merge persisted lines with drafts, keyed by product id.

    Persisted lines win on collision; a draft only shows for products that
    have nothing persisted yet (e.g. a loaded carry-forward candidate).
    """
    combined: dict[str, StockLine] = {}
    for line in persisted:
        combined[line.product_id] = line
    for line in draft:
        if line.product_id not in combined:
            combined[line.product_id] = line
    return list(combined.values())


def totals(combined: Iterable[StockLine]) -> StockTotals:
    """Canonical sums of a combined view. Never pass persisted or draft alone."""
    result = StockTotals()
    for line in combined:
        result.start += to_canonical(line.start_qty, line.unit)
        result.ordered += to_canonical(line.ordered_qty, line.unit)
        result.returned += to_canonical(line.returned_qty, line.unit)
        result.left += to_canonical(line.left_qty, line.unit)
    return result

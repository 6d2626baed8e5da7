"""Data models for van stock reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal

DEFAULT_UNIT = "kg"

CarryForwardSource = Literal["history", "live_inventory"]


class StockDayStatus(str, Enum):
    """Lifecycle of a stock day. Only ever moves forward."""

    OPEN = "open"
    MORNING_COMMITTED = "morning_committed"
    CLOSING_VERIFIED = "closing_verified"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    StockDayStatus.OPEN: 0,
    StockDayStatus.MORNING_COMMITTED: 1,
    StockDayStatus.CLOSING_VERIFIED: 2,
}


def as_date(value: date | str) -> date:
    """Accept a date or an ISO string."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def compute_left_qty(start_qty: float, ordered_qty: float, returned_qty: float) -> float:
    return start_qty - ordered_qty + returned_qty


@dataclass
class StockDay:
    """Reconciliation record for one vehicle, date and operator."""

    id: int
    vehicle_id: str
    stock_date: date
    operator_id: str
    status: StockDayStatus = StockDayStatus.OPEN
    start_odometer: float | None = None
    end_odometer: float | None = None
    verified_by: str | None = None

    @property
    def is_locked(self) -> bool:
        return self.status is StockDayStatus.CLOSING_VERIFIED

    @property
    def distance(self) -> float | None:
        if self.start_odometer is None or self.end_odometer is None:
            return None
        return self.end_odometer - self.start_odometer


@dataclass
class StockLine:
    """Per-product quantities of a stock day (or a draft of one)."""

    product_id: str
    unit: str = DEFAULT_UNIT
    start_qty: float = 0.0
    ordered_qty: float = 0.0
    returned_qty: float = 0.0
    product_name: str = ""
    id: int | None = None
    stock_day_id: int | None = None

    @property
    def left_qty(self) -> float:
        return compute_left_qty(self.start_qty, self.ordered_qty, self.returned_qty)


@dataclass
class LiveStockEntry:
    """Row of the live inventory snapshot."""

    product_id: str
    quantity: float
    unit: str
    stock_date: date


@dataclass
class CarryForwardCandidate:
    """Opening quantities found by the backward search."""

    lines: list[StockLine]
    source: CarryForwardSource
    source_date: date | None = None
    suggested_start_odometer: float | None = None


@dataclass
class StockTotals:
    """Sums of a combined view, in canonical units."""

    start: float = 0.0
    ordered: float = 0.0
    returned: float = 0.0
    left: float = 0.0


@dataclass
class DaySummary:
    """One van's stock day as shown on the daily overview."""

    stock_day: StockDay
    totals: StockTotals
    line_count: int = 0
    products: list[str] = field(default_factory=list)

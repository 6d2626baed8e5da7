"""Reconciliation errors. All of them are recoverable at the call site."""

from __future__ import annotations

from enum import Enum


class Precondition(str, Enum):
    """Commit preconditions that can fail."""

    MISSING_ODOMETER = "missing_odometer"
    NON_INCREASING_ODOMETER = "non_increasing_odometer"
    MISSING_VERIFICATION = "missing_verification"
    NO_LINE_ITEMS = "no_line_items"
    MORNING_NOT_COMMITTED = "morning_not_committed"


class VanStockError(Exception):
    """Base class for reconciliation errors."""


class PreconditionError(VanStockError):
    """A commit precondition failed; nothing was written."""

    def __init__(self, condition: Precondition, message: str = ""):
        self.condition = condition
        super().__init__(message or condition.value)


class LockedStateError(VanStockError):
    """Write attempted against a closing-verified stock day."""

    def __init__(self, stock_day_id: int):
        self.stock_day_id = stock_day_id
        super().__init__(f"Stock day {stock_day_id} is closed and verified")


class NotFoundError(VanStockError):
    """No stock day, line or prior stock for the given keys."""

"""Storage package for SQLite-backed data.

This package provides modular storage for:
- db.py: Database configuration and initialization
- days.py: Stock days and the morning/closing commit transactions
- lines.py: Stock lines (one per stock day and product)
- inventory.py: Live inventory snapshot
"""

from .days import (
    find_stock_days,
    get_or_create_stock_day,
    get_stock_day,
    list_stock_days_before,
    list_stock_days_for_date,
    save_closing_commit,
    save_morning_commit,
)
from .db import DB_PATH, init_db
from .inventory import SqliteLiveInventory, record_live_stock
from .lines import (
    LINE_FIELDS,
    get_line,
    get_stored_left,
    list_lines,
    recompute_left,
    set_ordered_quantities,
    upsert_line,
)

__all__ = [
    # Database
    "DB_PATH",
    "init_db",
    # Stock days
    "get_or_create_stock_day",
    "get_stock_day",
    "find_stock_days",
    "list_stock_days_before",
    "list_stock_days_for_date",
    "save_morning_commit",
    "save_closing_commit",
    # Stock lines
    "LINE_FIELDS",
    "upsert_line",
    "list_lines",
    "get_line",
    "get_stored_left",
    "set_ordered_quantities",
    "recompute_left",
    # Live inventory
    "SqliteLiveInventory",
    "record_live_stock",
]

"""Services package."""

from .carry_forward import CarryForwardResolver, SqliteStockHistory
from .edit_set import EditSet
from .notifier import ChangeNotifier, StockChanged
from .order_sync import HttpOrderSyncClient, OrderLine, OrderSyncPort, aggregate_order_lines
from .reconciliation import ReconciliationService
from .session import StockSession
from .summary import daily_summaries, format_summary

__all__ = [
    "CarryForwardResolver",
    "ChangeNotifier",
    "EditSet",
    "HttpOrderSyncClient",
    "OrderLine",
    "OrderSyncPort",
    "ReconciliationService",
    "SqliteStockHistory",
    "StockChanged",
    "StockSession",
    "aggregate_order_lines",
    "daily_summaries",
    "format_summary",
]

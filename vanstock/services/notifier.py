"""Stock-changed notifications for active sessions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date

from ..monitoring import capture_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockChanged:
    """Stock of a vehicle on a date changed outside the session.

    `reset` asks subscribers to drop their unsaved edits and reload; without
    it only persisted ordered quantities are refreshed.
    """

    vehicle_id: str
    stock_date: date
    reset: bool = False
    source: str = "order_sync"


Subscriber = Callable[[StockChanged], Awaitable[None]]


class ChangeNotifier:
    """In-process channel; each publish is delivered at most once per subscriber."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: StockChanged) -> int:
        """Deliver an event to every subscriber. Returns the number of successful deliveries."""
        delivered = 0
        for callback in list(self._subscribers):
            try:
                await callback(event)
                delivered += 1
            except Exception as e:
                capture_exception(
                    e,
                    {
                        "vehicle_id": event.vehicle_id,
                        "stock_date": event.stock_date.isoformat(),
                        "source": event.source,
                    },
                )
        logger.debug(
            "Stock change published",
            extra={"vehicle_id": event.vehicle_id, "reset": event.reset, "delivered": delivered},
        )
        return delivered

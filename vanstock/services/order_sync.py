"""Order sync port: where ordered quantities come from.

The order-fulfilment domain owns the authoritative numbers. This module
defines the contract, a reference aggregation of order lines and an HTTP
client for the order service.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import httpx

from ..config import get_settings
from ..models import as_date
from ..monitoring import http_retry
from ..units import to_canonical

logger = logging.getLogger(__name__)

VARIANT_MARKER = "_variant_"


class OrderSyncPort(Protocol):
    """Source of ordered quantities for a vehicle's route on a date."""

    async def ordered_quantities(self, vehicle_id: str, stock_date: date) -> dict[str, float]:
        """Canonical ordered quantity per product id."""
        ...

    async def trigger_recompute(self, vehicle_id: str, stock_date: date) -> bool:
        """Ask the order service to recompute its totals."""
        ...


@dataclass
class OrderLine:
    """One line of a placed order."""

    order_id: str
    product_id: str
    quantity: float
    unit: str = "piece"
    status: str = "confirmed"


def stock_product_id(product_id: str) -> str:
    """Map a variant product id ("<parent>_variant_<id>") to the id stock lines use."""
    if product_id and VARIANT_MARKER in product_id:
        return product_id.split(VARIANT_MARKER, 1)[1]
    return product_id


def aggregate_order_lines(
    lines: Iterable[OrderLine],
    statuses: Iterable[str] | None = None,
) -> dict[str, float]:
    """Sum order-line quantities per product in canonical units.

    Reference aggregation for OrderSyncPort implementations that work from raw
    order lines: the order service behind HttpOrderSyncClient is expected to
    return the same totals. Only orders in `statuses` (default: the configured
    order statuses) count, and variant ids collapse onto their stock product.
    """
    if statuses is None:
        statuses = get_settings().order_status_list()
    allowed = {s.lower() for s in statuses}
    totals: dict[str, float] = {}
    for line in lines:
        if line.status.lower() not in allowed:
            continue
        product_id = stock_product_id(line.product_id)
        totals[product_id] = totals.get(product_id, 0.0) + to_canonical(line.quantity, line.unit)
    return totals


class OrderSyncError(Exception):
    """Order service returned an unusable response."""


# Default timeout for order service requests
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class HttpOrderSyncClient:
    """Async client for the order service."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout if isinstance(timeout, httpx.Timeout) else httpx.Timeout(timeout)
        self._transport = transport

    @classmethod
    def from_settings(cls) -> HttpOrderSyncClient:
        settings = get_settings()
        if not settings.order_sync_enabled():
            raise ValueError("ORDER_SYNC_URL is not configured")
        return cls(
            settings.order_sync_url,
            api_key=settings.order_sync_api_key,
            timeout=settings.order_sync_timeout,
        )

    def _headers(self) -> dict[str, str]:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    @http_retry
    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.request(
                method, url, params=params, json=json_data, headers=self._headers()
            )
            response.raise_for_status()
            return response.json()

    async def ordered_quantities(self, vehicle_id: str, stock_date: date | str) -> dict[str, float]:
        iso = as_date(stock_date).isoformat()
        data = await self._request(
            "GET", f"vehicles/{vehicle_id}/ordered-quantities", params={"date": iso}
        )

        raw = data.get("quantities") if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            raise OrderSyncError(f"Malformed ordered-quantities response for {vehicle_id} on {iso}")

        quantities: dict[str, float] = {}
        for product_id, qty in raw.items():
            try:
                value = float(qty)
            except (TypeError, ValueError) as e:
                raise OrderSyncError(f"Bad quantity for {product_id}: {qty!r}") from e
            key = stock_product_id(product_id)
            quantities[key] = quantities.get(key, 0.0) + value

        logger.debug(
            "Fetched ordered quantities for vehicle %s on %s: %d products",
            vehicle_id, iso, len(quantities),
        )
        return quantities

    async def trigger_recompute(self, vehicle_id: str, stock_date: date | str) -> bool:
        iso = as_date(stock_date).isoformat()
        try:
            data = await self._request(
                "POST", f"vehicles/{vehicle_id}/recalculate", json_data={"date": iso}
            )
        except httpx.HTTPStatusError as e:
            logger.error("Order service rejected recompute for %s on %s: %s", vehicle_id, iso, e)
            return False
        return bool(data.get("ok", False)) if isinstance(data, dict) else False

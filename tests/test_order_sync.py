"""Tests for order-line aggregation and the order service client."""

import json
from datetime import date

import httpx
import pytest

from vanstock.services.order_sync import (
    HttpOrderSyncClient,
    OrderLine,
    OrderSyncError,
    aggregate_order_lines,
    stock_product_id,
)


class TestAggregateOrderLines:
    """Tests for aggregate_order_lines()."""

    def test_sums_per_product_in_canonical_units(self):
        lines = [
            OrderLine("o1", "P1", 2, unit="kg"),
            OrderLine("o2", "P1", 500, unit="g"),
            OrderLine("o3", "P2", 3, unit="piece", status="pending"),
        ]

        assert aggregate_order_lines(lines) == {"P1": pytest.approx(2.5), "P2": 3}

    def test_cancelled_orders_do_not_count(self):
        lines = [
            OrderLine("o1", "P1", 2, status="confirmed"),
            OrderLine("o2", "P1", 5, status="cancelled"),
            OrderLine("o3", "P1", 1, status="Delivered"),
        ]

        assert aggregate_order_lines(lines) == {"P1": 3}

    def test_custom_statuses(self):
        lines = [OrderLine("o1", "P1", 2, status="pending")]
        assert aggregate_order_lines(lines, statuses=["confirmed"]) == {}

    def test_variant_ids_map_to_stock_product(self):
        lines = [
            OrderLine("o1", "PARENT_variant_P7", 1),
            OrderLine("o2", "P7", 2),
        ]
        assert aggregate_order_lines(lines) == {"P7": 3}

    def test_stock_product_id(self):
        assert stock_product_id("A_variant_B") == "B"
        assert stock_product_id("B") == "B"
        assert stock_product_id("") == ""


def _client(handler, api_key="secret") -> HttpOrderSyncClient:
    return HttpOrderSyncClient(
        "https://orders.example/api/",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


class TestHttpOrderSyncClient:
    """Tests for HttpOrderSyncClient against a mock transport."""

    @pytest.mark.asyncio
    async def test_ordered_quantities(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"quantities": {"P1": "2.5", "X_variant_P2": 1, "P2": 1}}
            )

        quantities = await _client(handler).ordered_quantities("VAN-01", date(2026, 3, 10))

        assert quantities == {"P1": 2.5, "P2": 2}
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/api/vehicles/VAN-01/ordered-quantities"
        assert request.url.params["date"] == "2026-03-10"
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"quantities": {}})

        assert await _client(handler, api_key=None).ordered_quantities("VAN-01", "2026-03-10") == {}
        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"items": []},
            {"quantities": [1, 2]},
            {"quantities": {"P1": "lots"}},
            [],
        ],
    )
    async def test_malformed_response(self, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        with pytest.raises(OrderSyncError):
            await _client(handler).ordered_quantities("VAN-01", date(2026, 3, 10))

    @pytest.mark.asyncio
    async def test_trigger_recompute(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            assert request.method == "POST"
            assert request.url.path == "/api/vehicles/VAN-01/recalculate"
            return httpx.Response(200, json={"ok": True})

        assert await _client(handler).trigger_recompute("VAN-01", date(2026, 3, 10)) is True
        assert bodies == [{"date": "2026-03-10"}]

    @pytest.mark.asyncio
    async def test_trigger_recompute_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "boom"})

        assert await _client(handler).trigger_recompute("VAN-01", date(2026, 3, 10)) is False

    def test_from_settings_requires_url(self, monkeypatch):
        from vanstock.config import get_settings

        monkeypatch.setenv("ORDER_SYNC_URL", "")
        get_settings.cache_clear()
        try:
            with pytest.raises(ValueError):
                HttpOrderSyncClient.from_settings()
        finally:
            get_settings.cache_clear()

"""Tests for the carry-forward backward search."""

from datetime import date

import pytest

from vanstock.errors import NotFoundError
from vanstock.models import LiveStockEntry, StockDay, StockLine
from vanstock.services.carry_forward import CarryForwardResolver
from vanstock.storage import days, inventory, lines


class MockHistory:
    """Synthetic stock history: [(StockDay, [StockLine])]."""

    def __init__(self, history):
        self._history = history
        self.lines_requested = []

    async def list_stock_days_before(self, vehicle_id, before):
        found = [d for d, _ in self._history if d.vehicle_id == vehicle_id and d.stock_date < before]
        return sorted(found, key=lambda d: d.stock_date, reverse=True)

    async def list_lines(self, stock_day_id):
        self.lines_requested.append(stock_day_id)
        for day, day_lines in self._history:
            if day.id == stock_day_id:
                return day_lines
        return []


class MockLiveInventory:
    def __init__(self, entries=None):
        self._entries = entries or []

    async def latest_positive_stock(self, vehicle_id, before):
        return list(self._entries)


def _day(day_id, d, start=None, end=None):
    return StockDay(
        id=day_id, vehicle_id="VAN-01", stock_date=d, operator_id="op-1",
        start_odometer=start, end_odometer=end,
    )


class TestCarryForwardResolver:
    """Tests for CarryForwardResolver with synthetic sources."""

    @pytest.mark.asyncio
    async def test_uses_most_recent_qualifying_day_only(self):
        """Day 1 has nothing left, day 2 has 12 units, day 3 is the target."""
        day1 = _day(1, date(2026, 3, 1), start=100, end=140)
        day2 = _day(2, date(2026, 3, 2), start=140, end=190)
        history = MockHistory([
            (day1, [StockLine(product_id="P1", start_qty=10, ordered_qty=10)]),
            (day2, [
                StockLine(product_id="P1", start_qty=20, ordered_qty=8),
                StockLine(product_id="P2", start_qty=5, ordered_qty=5),
            ]),
        ])
        resolver = CarryForwardResolver(history, MockLiveInventory())

        candidate = await resolver.resolve("VAN-01", date(2026, 3, 3))

        assert candidate.source == "history"
        assert candidate.source_date == date(2026, 3, 2)
        assert len(candidate.lines) == 1
        line = candidate.lines[0]
        assert line.product_id == "P1"
        assert line.start_qty == 12
        assert line.ordered_qty == 0
        assert line.returned_qty == 0
        assert candidate.suggested_start_odometer == 190
        # early exit: day 1 was never read
        assert history.lines_requested == [2]

    @pytest.mark.asyncio
    async def test_skips_empty_days_and_does_not_merge(self):
        day1 = _day(1, date(2026, 3, 1), start=100)
        day2 = _day(2, date(2026, 3, 2), start=150)
        history = MockHistory([
            (day1, [StockLine(product_id="P9", start_qty=4)]),
            (day2, [StockLine(product_id="P1", start_qty=3, ordered_qty=3)]),
        ])
        resolver = CarryForwardResolver(history, MockLiveInventory())

        candidate = await resolver.resolve("VAN-01", date(2026, 3, 3))

        assert [l.product_id for l in candidate.lines] == ["P9"]
        assert candidate.lines[0].start_qty == 4
        # no end odometer: fall back to the start reading
        assert candidate.suggested_start_odometer == 100

    @pytest.mark.asyncio
    async def test_returned_stock_counts_as_left(self):
        day1 = _day(1, date(2026, 3, 1))
        history = MockHistory([
            (day1, [StockLine(product_id="P1", start_qty=5, ordered_qty=5, returned_qty=2)]),
        ])
        candidate = await CarryForwardResolver(history, MockLiveInventory()).resolve(
            "VAN-01", date(2026, 3, 2)
        )
        assert candidate.lines[0].start_qty == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_live_inventory(self):
        history = MockHistory([
            (_day(1, date(2026, 3, 1)), [StockLine(product_id="P1", start_qty=1, ordered_qty=1)]),
        ])
        live = MockLiveInventory([
            LiveStockEntry("P1", 3, "kg", date(2026, 2, 27)),
            LiveStockEntry("P1", 7, "kg", date(2026, 2, 28)),
            LiveStockEntry("P2", 500, "g", date(2026, 2, 28)),
            LiveStockEntry("P3", 0, "kg", date(2026, 2, 28)),
        ])

        candidate = await CarryForwardResolver(history, live).resolve("VAN-01", date(2026, 3, 2))

        assert candidate.source == "live_inventory"
        assert candidate.source_date == date(2026, 2, 28)
        assert candidate.suggested_start_odometer is None
        by_product = {l.product_id: l for l in candidate.lines}
        assert set(by_product) == {"P1", "P2"}
        assert by_product["P1"].start_qty == 7
        assert by_product["P2"].unit == "g"

    @pytest.mark.asyncio
    async def test_live_inventory_uses_newest_date_only(self):
        live = MockLiveInventory([
            LiveStockEntry("OLD", 4, "kg", date(2026, 3, 5)),
            LiveStockEntry("NEW", 7, "kg", date(2026, 3, 9)),
        ])

        candidate = await CarryForwardResolver(MockHistory([]), live).resolve("VAN-01", date(2026, 3, 10))

        assert candidate.source_date == date(2026, 3, 9)
        assert [(l.product_id, l.start_qty) for l in candidate.lines] == [("NEW", 7)]

    @pytest.mark.asyncio
    async def test_nothing_found(self):
        resolver = CarryForwardResolver(MockHistory([]), MockLiveInventory())
        with pytest.raises(NotFoundError):
            await resolver.resolve("VAN-01", date(2026, 3, 2))


@pytest.mark.asyncio
async def test_resolver_over_sqlite_history(database, vehicle_id, operator_id) -> None:
    """Default resolver reads the local tables."""
    d1 = await days.get_or_create_stock_day(vehicle_id, date(2026, 3, 1), operator_id)
    await lines.upsert_line(d1.id, "P1", start_qty=10)
    await lines.set_ordered_quantities(d1.id, {"P1": 10})

    d2 = await days.get_or_create_stock_day(vehicle_id, date(2026, 3, 2), "op-2")
    await days.save_morning_commit(d2.id, 200, [StockLine(product_id="P1", start_qty=20)])
    await lines.set_ordered_quantities(d2.id, {"P1": 8})
    await days.save_closing_commit(d2.id, 260, [])

    candidate = await CarryForwardResolver().resolve(vehicle_id, date(2026, 3, 3))

    assert candidate.source == "history"
    assert [(l.product_id, l.start_qty) for l in candidate.lines] == [("P1", 12)]
    assert candidate.suggested_start_odometer == 260


@pytest.mark.asyncio
async def test_resolver_over_sqlite_live_inventory(database, vehicle_id) -> None:
    await inventory.record_live_stock(vehicle_id, "P1", date(2026, 3, 1), 4)
    await inventory.record_live_stock(vehicle_id, "P2", date(2026, 3, 1), 0)
    await inventory.record_live_stock("OTHER", "P3", date(2026, 3, 1), 9)

    candidate = await CarryForwardResolver().resolve(vehicle_id, date(2026, 3, 2))

    assert candidate.source == "live_inventory"
    assert [(l.product_id, l.start_qty) for l in candidate.lines] == [("P1", 4)]

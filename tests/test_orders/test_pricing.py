"""
Tests for the order cost calculator.

Prices come from a mocked store so each test states exactly which
catalog entries exist.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from carsline.services.orders.pricing import CostBreakdown, OrderCostCalculator, to_money


@pytest.fixture
def store() -> AsyncMock:
    store = AsyncMock()
    store.get_service_type_price.return_value = Decimal("500.00")
    store.get_extra_service_prices.return_value = {
        1: Decimal("150.00"),
        2: Decimal("89.90"),
    }
    return store


@pytest.fixture
def calculator() -> OrderCostCalculator:
    return OrderCostCalculator()


class TestOrderCostCalculator:
    """Test cost calculation."""

    @pytest.mark.asyncio
    async def test_base_plus_extras(self, calculator, store):
        breakdown = await calculator.calculate(store, 1, [1, 2])

        assert breakdown.base_price == Decimal("500.00")
        assert breakdown.extra_prices == {1: Decimal("150.00"), 2: Decimal("89.90")}
        assert breakdown.total == Decimal("739.90")

    @pytest.mark.asyncio
    async def test_no_service_type_and_no_extras_is_zero(self, calculator, store):
        breakdown = await calculator.calculate(store)

        assert breakdown.total == Decimal("0.00")
        store.get_service_type_price.assert_not_awaited()
        store.get_extra_service_prices.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_service_type_counts_as_zero(self, calculator, store):
        store.get_service_type_price.return_value = None

        breakdown = await calculator.calculate(store, 999, [1])

        assert breakdown.base_price == Decimal("0.00")
        assert breakdown.total == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_unknown_extras_are_ignored(self, calculator, store):
        breakdown = await calculator.calculate(store, 1, [1, 404])

        assert list(breakdown.extra_prices) == [1]
        assert breakdown.total == Decimal("650.00")

    @pytest.mark.asyncio
    async def test_duplicate_extras_are_priced_once(self, calculator, store):
        breakdown = await calculator.calculate(store, None, [2, 2, 1, 2])

        store.get_extra_service_prices.assert_awaited_once_with([2, 1])
        assert list(breakdown.extra_prices) == [2, 1]
        assert breakdown.total == Decimal("239.90")


class TestMoney:
    def test_to_money_rounds_half_up(self):
        assert to_money(Decimal("10.005")) == Decimal("10.01")
        assert to_money(Decimal("10.004")) == Decimal("10.00")

    def test_none_is_zero(self):
        assert to_money(None) == Decimal("0.00")

    def test_breakdown_total_is_quantized(self):
        breakdown = CostBreakdown(
            base_price=Decimal("0.10"),
            extra_prices={1: Decimal("0.20")},
        )
        assert breakdown.total == Decimal("0.30")
        assert str(breakdown.total) == "0.30"

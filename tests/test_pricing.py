import math
from decimal import Decimal

import pytest

from app.errors import TransientNetworkError
from app.orchestration.pricing import (
    DurationPricing,
    FeeCalculator,
    FlatRatePricing,
    calculate_amount,
    format_amount,
    pricing_strategy,
)
from tests.fakes import FakePriceOracle


def test_target_cost_of_three_dollars_at_two_dollars_is_one_and_a_half():
    assert calculate_amount(3.0, 2.0) == "1.5"


@pytest.mark.parametrize("duration", [5, 6, 7, 8])
@pytest.mark.parametrize("price", [0.37, 1.0, 2.0, 13.5])
def test_duration_pricing_rounds_to_two_decimals(duration, price):
    strategy = DurationPricing(usd_per_second=0.1)

    amount = calculate_amount(strategy.usd_cost(duration), price)

    value = float(amount)
    assert math.isfinite(value)
    assert value > 0
    assert value == pytest.approx(round(0.1 * duration / price, 2), abs=0.0101)
    assert Decimal(amount) == Decimal(amount).quantize(Decimal("0.01"))


def test_tiny_amount_is_raised_to_minimum():
    assert calculate_amount(0.01, 5000.0) == "0.01"


@pytest.mark.parametrize("price", [0, -1.0, float("nan"), float("inf")])
def test_invalid_price_is_rejected(price):
    with pytest.raises(ValueError):
        calculate_amount(0.5, price)


def test_format_amount_drops_trailing_zeros():
    assert format_amount(Decimal("1.50")) == "1.5"
    assert format_amount(Decimal("2.00")) == "2"
    assert format_amount(Decimal("0.25")) == "0.25"


def test_pricing_strategy_selection():
    assert isinstance(pricing_strategy(None, 0.5), FlatRatePricing)
    assert isinstance(pricing_strategy(0.1, 0.5), DurationPricing)

    with pytest.raises(ValueError):
        FlatRatePricing(0)
    with pytest.raises(ValueError):
        DurationPricing(-0.1)


@pytest.mark.asyncio
async def test_quote_uses_spot_price():
    oracle = FakePriceOracle(2.0)
    calculator = FeeCalculator(oracle, FlatRatePricing(3.0), "lyx", "0.5")

    quote = await calculator.quote(5)

    assert quote.amount == "1.5"
    assert quote.price == 2.0
    assert quote.strategy == "flat_rate"
    assert not quote.used_fallback
    assert oracle.calls == ["lyx"]


@pytest.mark.asyncio
async def test_price_api_down_falls_back_to_default_amount():
    oracle = FakePriceOracle(error=TransientNetworkError("Price lookup failed"))
    calculator = FeeCalculator(oracle, FlatRatePricing(0.5), "lyx", "0.5")

    quote = await calculator.quote(5)

    assert quote.amount == "0.5"
    assert quote.used_fallback
    assert quote.price == 0.0


@pytest.mark.asyncio
@pytest.mark.parametrize("price", [0.0, float("nan")])
async def test_unusable_price_falls_back_to_default_amount(price):
    calculator = FeeCalculator(FakePriceOracle(price), DurationPricing(0.1), "lyx", "0.5")

    quote = await calculator.quote(8)

    assert quote.amount == "0.5"
    assert quote.used_fallback

import logging
import math
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol

from app.models.payments import PaymentQuote

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Smallest amount ever charged, so a quote is always positive
MIN_PAYMENT_AMOUNT = Decimal("0.01")
CENT = Decimal("0.01")


class PriceOracle(Protocol):
    async def get_price(self, token: str) -> float:
        """Spot price of ``token`` in USD."""
        ...


class PricingStrategy(ABC):
    """Decides how many USD one generation costs."""

    name: str = "abstract"

    @abstractmethod
    def usd_cost(self, duration_seconds: int) -> float:
        pass


class FlatRatePricing(PricingStrategy):
    """Same USD price for every generation."""

    name = "flat_rate"

    def __init__(self, target_usd: float):
        if target_usd <= 0:
            raise ValueError("target_usd must be positive")
        self.target_usd = target_usd

    def usd_cost(self, duration_seconds: int) -> float:
        return self.target_usd


class DurationPricing(PricingStrategy):
    """USD price proportional to the requested clip length."""

    name = "duration"

    def __init__(self, usd_per_second: float):
        if usd_per_second <= 0:
            raise ValueError("usd_per_second must be positive")
        self.usd_per_second = usd_per_second

    def usd_cost(self, duration_seconds: int) -> float:
        return self.usd_per_second * duration_seconds


def pricing_strategy(
    usd_per_second: Optional[float], target_usd: float
) -> PricingStrategy:
    """Duration pricing when a per-second rate is configured, flat rate otherwise."""
    if usd_per_second:
        return DurationPricing(usd_per_second)
    return FlatRatePricing(target_usd)


def format_amount(amount: Decimal) -> str:
    """Shortest decimal rendering: 1.50 -> "1.5", 2.00 -> "2"."""
    text = f"{amount:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def calculate_amount(usd_cost: float, price: float) -> str:
    """
    Convert a USD cost into a native token amount.

    Args:
        usd_cost: Cost of the generation in USD
        price: Spot price of the native token in USD

    Returns:
        Amount rounded to 2 decimal places, never below ``MIN_PAYMENT_AMOUNT``

    Raises:
        ValueError: If the price is not a positive finite number
    """
    if not isinstance(price, (int, float)) or not math.isfinite(price) or price <= 0:
        raise ValueError(f"Invalid token price: {price}")

    amount = Decimal(repr(usd_cost / price)).quantize(CENT, rounding=ROUND_HALF_UP)
    return format_amount(max(amount, MIN_PAYMENT_AMOUNT))


class FeeCalculator:
    """Quotes the fee in native token using a price oracle and a pricing strategy."""

    def __init__(
        self,
        price_oracle: PriceOracle,
        strategy: PricingStrategy,
        token: str,
        default_amount: str,
    ):
        self.price_oracle = price_oracle
        self.strategy = strategy
        self.token = token
        self.default_amount = default_amount

    async def quote(self, duration_seconds: int) -> PaymentQuote:
        """Price failures are never fatal: the default amount is charged instead."""
        try:
            price = await self.price_oracle.get_price(self.token)
            amount = calculate_amount(self.strategy.usd_cost(duration_seconds), price)
        except Exception as e:
            logger.warning(
                f"Failed to price {self.token.upper()}, using default amount "
                f"{self.default_amount}: {str(e)}"
            )
            return PaymentQuote(
                amount=self.default_amount,
                price=0.0,
                strategy="default",
                used_fallback=True,
            )

        logger.info(
            f"Current {self.token.upper()} price: ${price}, payment amount: {amount}"
        )
        return PaymentQuote(amount=amount, price=price, strategy=self.strategy.name)

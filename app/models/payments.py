"""
Payment Data Models

This module contains models related to fee quotes, submitted transactions and
the normalised chain data used to verify them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.shared import ApiBaseModel


class PriceQuote(ApiBaseModel):
    """Spot price of a token in USD, as returned by GET /price/{token}."""

    price: float = Field(..., description="Price in USD")
    symbol: Optional[str] = None
    last_updated: Optional[str] = None


class PaymentQuote(BaseModel):
    """Amount of native token to charge for one generation."""

    amount: str = Field(..., description="Decimal amount in native token units")
    price: float = Field(0.0, description="Spot price used, 0 when unknown")
    strategy: str = Field(..., description="Pricing strategy that produced the amount")
    used_fallback: bool = Field(
        False, description="Whether the default amount was used"
    )


class PendingTransaction(BaseModel):
    """A submitted fee transfer awaiting verification."""

    hash: str = Field(..., description="Transaction hash")
    amount: str = Field(..., description="Expected amount in native token units")
    price: float = Field(0.0, description="Spot price at submission time")
    submitted_at: datetime = Field(default_factory=datetime.utcnow)


class ChainReceipt(BaseModel):
    """Normalised transaction receipt."""

    transaction_hash: str
    success: bool
    block_number: Optional[int] = None


class ChainTransaction(BaseModel):
    """Normalised transaction details."""

    transaction_hash: str
    sender: Optional[str] = None
    to: Optional[str] = None
    value_wei: int = 0

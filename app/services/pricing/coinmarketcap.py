import asyncio
import logging
from traceback import format_exc
from typing import Dict, Optional

import requests

from app.errors import ConfigurationError, TransientNetworkError
from app.models.payments import PriceQuote
from config import COINMARKETCAP_API_KEY

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class UnknownTokenError(LookupError):
    pass


class CoinMarketCapService:
    """Token spot prices in USD from the CoinMarketCap quotes API."""

    API_URL = "https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest"
    TIMEOUT = 15  # seconds

    # Token symbol -> CoinMarketCap slug
    TOKEN_SLUGS: Dict[str, str] = {
        "lyx": "lukso-network",
    }

    def __init__(self, api_key: Optional[str] = COINMARKETCAP_API_KEY):
        self.api_key = api_key

    def _fetch_quotes(self, slug: str) -> dict:
        response = requests.get(
            self.API_URL,
            params={"slug": slug, "convert": "USD"},
            headers={"X-CMC_PRO_API_KEY": self.api_key, "Accept": "application/json"},
            timeout=self.TIMEOUT,
        )
        response.raise_for_status()
        return response.json()

    async def get_price(self, token: str) -> PriceQuote:
        """
        Get the spot price of a token.

        Args:
            token: Token symbol, case-insensitive

        Returns:
            PriceQuote with price, symbol and last update time

        Raises:
            UnknownTokenError: If the token has no known slug
            ConfigurationError: If no API key is configured
            TransientNetworkError: If CoinMarketCap failed or answered unexpectedly
        """
        slug = self.TOKEN_SLUGS.get(token.lower())
        if slug is None:
            raise UnknownTokenError(f"Unsupported token: {token}")
        if not self.api_key:
            raise ConfigurationError("CoinMarketCap API key is not configured")

        try:
            body = await asyncio.to_thread(self._fetch_quotes, slug)
        except requests.RequestException as e:
            logger.error(f"Error fetching {token.upper()} price: {str(e)}\n{format_exc()}")
            raise TransientNetworkError(f"Failed to fetch {token.upper()} price: {str(e)}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not data:
            raise TransientNetworkError("Invalid response from CoinMarketCap API")

        # Keyed by CoinMarketCap ID, a slug maps to exactly one entry
        token_data = data[next(iter(data))]
        usd = (token_data.get("quote") or {}).get("USD") if token_data else None
        if not usd or usd.get("price") is None:
            raise TransientNetworkError(
                f"{token.upper()} price data not found in API response"
            )

        return PriceQuote(
            price=usd["price"],
            symbol=token_data.get("symbol"),
            last_updated=usd.get("last_updated"),
        )

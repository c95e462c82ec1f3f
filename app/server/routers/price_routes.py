import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.errors import WorkflowError
from app.models.payments import PriceQuote
from app.server.dependencies import get_price_service
from app.services.pricing.coinmarketcap import CoinMarketCapService, UnknownTokenError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for token prices
price_router = APIRouter()


@price_router.get("/{token}", response_model=PriceQuote)
async def get_price(
    token: str, service: CoinMarketCapService = Depends(get_price_service)
) -> PriceQuote:
    """Current USD price of a token."""
    try:
        return await service.get_price(token)
    except UnknownTokenError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WorkflowError as e:
        logger.error(f"Error fetching {token.upper()} price: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        )

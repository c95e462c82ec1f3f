from functools import lru_cache

from app.services.content.pinata import PinataService
from app.services.generation.common import GenerationRegistry, VideoGenerationService
from app.services.generation.veo import VeoVideoService
from app.services.pricing.coinmarketcap import CoinMarketCapService
from app.services.storage import VideoStorage

# Process-wide singletons, overridable in tests via app.dependency_overrides


@lru_cache
def get_video_storage() -> VideoStorage:
    return VideoStorage()


@lru_cache
def get_generation_registry() -> GenerationRegistry:
    return GenerationRegistry()


@lru_cache
def get_pinata_service() -> PinataService:
    return PinataService()


@lru_cache
def get_generation_service() -> VideoGenerationService:
    return VeoVideoService(pinata=get_pinata_service(), storage=get_video_storage())


@lru_cache
def get_price_service() -> CoinMarketCapService:
    return CoinMarketCapService()

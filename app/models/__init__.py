"""
Models Package

This package contains the data models organized by domain:
- videos.py: Video artifact and generation request/response models
- tasks.py: Generation job status models
- payments.py: Price quote, pending transaction and chain data models
- content.py: IPFS pin and metadata models
- shared.py: Common base model and enums
"""

# Import all models for easy access
from app.models.content import (
    ContentUploadResponse,
    MetadataStoreRequest,
    MetadataStoreResponse,
    PinResult,
    StoredMetadata,
)
from app.models.payments import (
    ChainReceipt,
    ChainTransaction,
    PaymentQuote,
    PendingTransaction,
    PriceQuote,
)
from app.models.shared import (
    ApiBaseModel,
    AspectRatio,
    GenerationState,
    GenerationType,
    PaymentState,
    WorkflowStep,
)
from app.models.tasks import GenerationJob
from app.models.videos import (
    GenerateVideoRequest,
    GenerateVideoResponse,
    Video,
    VideoCreate,
    VideoListResponse,
)

__all__ = [
    # Content models
    "ContentUploadResponse",
    "MetadataStoreRequest",
    "MetadataStoreResponse",
    "PinResult",
    "StoredMetadata",
    # Payment models
    "ChainReceipt",
    "ChainTransaction",
    "PaymentQuote",
    "PendingTransaction",
    "PriceQuote",
    # Shared models
    "ApiBaseModel",
    "AspectRatio",
    "GenerationState",
    "GenerationType",
    "PaymentState",
    "WorkflowStep",
    # Task models
    "GenerationJob",
    # Video models
    "GenerateVideoRequest",
    "GenerateVideoResponse",
    "Video",
    "VideoCreate",
    "VideoListResponse",
]

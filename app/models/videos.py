"""
Video Data Models

This module contains the video artifact model and the request/response
schemas of the video generation endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, model_validator

from app.models.shared import ApiBaseModel, AspectRatio, GenerationType


class GenerateVideoRequest(ApiBaseModel):
    """Request body of POST /videos/generate."""

    prompt: str = Field(..., min_length=2, max_length=500, description="Video prompt")
    aspect_ratio: AspectRatio = Field(..., description="Output aspect ratio")
    generation_type: GenerationType = Field(..., description="text or image")
    duration_seconds: int = Field(5, ge=5, le=8, description="Clip length in seconds")
    image_base64: Optional[str] = Field(
        None, description="Base64 image payload for image-conditioned generation"
    )
    wallet_address: Optional[str] = Field(
        None, description="Address of the paying account"
    )

    @model_validator(mode="after")
    def _require_image_for_image_generation(self) -> "GenerateVideoRequest":
        if self.generation_type == GenerationType.IMAGE and not self.image_base64:
            raise ValueError("imageBase64 is required for image generation")
        return self

    def to_request_body(self) -> Dict[str, Any]:
        """Body sent to the API; the image payload only travels for image mode."""
        body = self.to_wire()
        if self.generation_type != GenerationType.IMAGE:
            body.pop("imageBase64", None)
        if body.get("walletAddress") is None:
            body.pop("walletAddress", None)
        return body


class GenerateVideoResponse(ApiBaseModel):
    message: str
    generation_id: str


class VideoCreate(ApiBaseModel):
    """Fields required to store a new video."""

    prompt: str
    aspect_ratio: str
    ipfs_cid: str
    gateway_url: str
    duration: Optional[str] = None
    wallet_address: Optional[str] = None
    generation_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Video(ApiBaseModel):
    """Generated video artifact. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Storage-assigned identifier")
    prompt: str
    aspect_ratio: str
    ipfs_cid: str = Field(..., description="Content identifier on IPFS")
    gateway_url: str = Field(..., description="Public gateway URL of the video")
    duration: Optional[str] = None
    created_at: datetime
    wallet_address: Optional[str] = None
    generation_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VideoListResponse(ApiBaseModel):
    data: List[Video]

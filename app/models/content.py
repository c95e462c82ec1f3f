"""
Content Data Models

This module contains models for pinned content and the metadata records
stored alongside generated videos.
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.models.shared import ApiBaseModel


class PinResult(BaseModel):
    """Result of pinning a file on IPFS."""

    cid: str
    gateway_url: str
    pinata_url: str


class ContentUploadResponse(ApiBaseModel):
    cid: str
    gateway_url: str
    pinata_url: Optional[str] = None
    original_name: Optional[str] = None
    size: int = 0
    mimetype: Optional[str] = None


class MetadataStoreRequest(ApiBaseModel):
    cid: str = Field(..., min_length=1, description="IPFS CID of the video")
    gateway_url: str = Field(..., min_length=1, description="Gateway URL of the video")
    prompt: str = Field(..., min_length=1, description="Prompt the video was generated from")


class StoredMetadata(ApiBaseModel):
    cid: str
    gateway_url: str
    timestamp: str
    content_type: str = "video/mp4"
    title: str


class MetadataStoreResponse(ApiBaseModel):
    message: str
    stored_metadata: StoredMetadata

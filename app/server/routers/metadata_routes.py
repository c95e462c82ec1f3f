import asyncio
import logging
from datetime import datetime
from traceback import format_exc
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.models.content import MetadataStoreRequest, MetadataStoreResponse, StoredMetadata
from app.server.dependencies import get_pinata_service
from app.server.validation import validate_body
from app.services.content.pinata import PinataService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for on-profile metadata
metadata_router = APIRouter()

TITLE_PROMPT_LENGTH = 30


def video_title(prompt: str) -> str:
    suffix = "..." if len(prompt) > TITLE_PROMPT_LENGTH else ""
    return f"AI-Generated Video: {prompt[:TITLE_PROMPT_LENGTH]}{suffix}"


@metadata_router.post("/store", response_model=MetadataStoreResponse)
async def store_metadata(
    body: Any = Body(None),
    pinata: PinataService = Depends(get_pinata_service),
) -> MetadataStoreResponse:
    """Record metadata for a pinned video, after checking the CID can be served."""
    request = validate_body(MetadataStoreRequest, body)

    try:
        exists = await asyncio.to_thread(pinata.content_exists, request.cid)
    except Exception as e:
        logger.error(f"Metadata storage error: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to store metadata: {str(e)}",
        )

    if not exists:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Content not found on IPFS. Please ensure it has been properly uploaded.",
        )

    logger.info(f"Storing metadata for video with CID: {request.cid}")
    return MetadataStoreResponse(
        message="Metadata stored successfully in Universal Profile",
        stored_metadata=StoredMetadata(
            cid=request.cid,
            gateway_url=request.gateway_url,
            timestamp=datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            title=video_title(request.prompt),
        ),
    )

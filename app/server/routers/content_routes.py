import asyncio
import json
import logging
import time
from io import BytesIO
from traceback import format_exc
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from PIL import Image, UnidentifiedImageError
from starlette.background import BackgroundTask

from app.errors import ConfigurationError, ContentError
from app.models.content import ContentUploadResponse
from app.server.dependencies import get_pinata_service
from app.services.content.pinata import PinataService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for IPFS content
content_router = APIRouter()

MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MB
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _parse_metadata(metadata: Optional[str]) -> dict:
    if not metadata:
        return {}
    try:
        parsed = json.loads(metadata)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid metadata JSON: {str(e)}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


@content_router.post("/upload", response_model=ContentUploadResponse)
async def upload_content(
    file: Optional[UploadFile] = File(None),
    metadata: Optional[str] = Form(None),
    pinata: PinataService = Depends(get_pinata_service),
) -> ContentUploadResponse:
    """Pin an uploaded image on IPFS."""
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded"
        )

    data = await file.read(MAX_UPLOAD_SIZE + 1)
    if len(data) > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File too large. Maximum size is 5MB",
        )

    mimetype = file.content_type or ""
    if not mimetype.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed",
        )

    try:
        Image.open(BytesIO(data)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Uploaded file is not a valid image: {str(e)}",
        )

    parsed_metadata = _parse_metadata(metadata)
    filename = (
        parsed_metadata.get("name") or file.filename or f"file-{int(time.time() * 1000)}"
    )
    logger.info(f"File uploaded for IPFS: {file.filename} ({len(data)} bytes)")

    try:
        pin = await asyncio.to_thread(pinata.pin_file, BytesIO(data), filename, mimetype)
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        )
    except ContentError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except Exception as e:
        logger.error(f"IPFS upload error: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload to IPFS: {str(e)}",
        )

    return ContentUploadResponse(
        cid=pin.cid,
        gateway_url=pin.gateway_url,
        pinata_url=pin.pinata_url,
        original_name=file.filename,
        size=len(data),
        mimetype=mimetype,
    )


@content_router.get("/download")
def download_content(
    cid: Optional[str] = Query(None, description="IPFS CID"),
    pinata: PinataService = Depends(get_pinata_service),
) -> StreamingResponse:
    """Stream pinned content through the gateway."""
    if not cid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing IPFS CID"
        )

    logger.info(f"Downloading from IPFS: {cid}")
    try:
        upstream = pinata.open_content(cid)
    except ContentError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    headers = {}
    if upstream.headers.get("content-length"):
        headers["Content-Length"] = upstream.headers["content-length"]

    return StreamingResponse(
        upstream.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE),
        media_type=upstream.headers.get("content-type", "application/octet-stream"),
        headers=headers,
        background=BackgroundTask(upstream.close),
    )

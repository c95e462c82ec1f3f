import logging
from traceback import format_exc
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query, status

from app.models.tasks import GenerationJob
from app.models.videos import (
    GenerateVideoRequest,
    GenerateVideoResponse,
    Video,
    VideoListResponse,
)
from app.server.dependencies import (
    get_generation_registry,
    get_generation_service,
    get_video_storage,
)
from app.server.validation import validate_body
from app.services.generation.common import (
    GenerationRegistry,
    VideoGenerationService,
    run_generation,
)
from app.services.storage import VideoStorage

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for video generation and retrieval
video_router = APIRouter()


@video_router.post(
    "/generate",
    response_model=GenerateVideoResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_video(
    background_tasks: BackgroundTasks,
    body: Any = Body(None),
    registry: GenerationRegistry = Depends(get_generation_registry),
    service: VideoGenerationService = Depends(get_generation_service),
) -> GenerateVideoResponse:
    """Start a generation job and return its ID without waiting for the video."""
    request = validate_body(GenerateVideoRequest, body)

    try:
        generation_id = registry.create()
        background_tasks.add_task(
            run_generation, service, registry, generation_id, request
        )
    except Exception as e:
        logger.error(f"Error starting video generation: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate video: {str(e)}",
        )

    logger.info(
        f"Video generation {generation_id} started ({request.generation_type.value}, "
        f"{request.aspect_ratio.value}, {request.duration_seconds}s)"
    )
    return GenerateVideoResponse(
        message="Video generation started", generation_id=generation_id
    )


@video_router.get("/status", response_model=GenerationJob)
async def get_generation_status(
    id: Optional[str] = Query(None, description="Generation ID"),
    registry: GenerationRegistry = Depends(get_generation_registry),
) -> GenerationJob:
    if not id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing generation ID"
        )

    job = registry.get(id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found"
        )
    return job


@video_router.get("", response_model=VideoListResponse)
async def list_videos(
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    limit: int = Query(VideoStorage.DEFAULT_LIST_LIMIT, ge=1, le=100),
    storage: VideoStorage = Depends(get_video_storage),
) -> VideoListResponse:
    """List stored videos, newest first."""
    videos = await storage.list_videos(wallet_address=wallet_address, limit=limit)
    return VideoListResponse(data=videos)


@video_router.get("/{video_id}", response_model=Video)
async def get_video(
    video_id: int, storage: VideoStorage = Depends(get_video_storage)
) -> Video:
    video = await storage.get_video(video_id)
    if video is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Video not found"
        )
    return video

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Optional

from app.models.tasks import STAGE_ERROR, STAGE_PROMPT, GenerationJob
from app.models.videos import GenerateVideoRequest, Video

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

INITIAL_STATUS = "Initializing generation process"

# Receives (status, stage_index, complete, video) from a running job
StatusCallback = Callable[[str, int, bool, Optional[Video]], None]


class VideoGenerationService(ABC):
    """Abstract base class for video generation backends."""

    @abstractmethod
    def generate_video(
        self, request: GenerateVideoRequest, on_status: StatusCallback
    ) -> Video:
        """
        Generate, pin and store a video, reporting progress through ``on_status``.

        Blocking; the API runs it as a background task.
        """
        pass


class GenerationRegistry:
    """
    Status of every generation job started by this process, keyed by generation ID.

    Jobs only ever replace their own entry, and entries are never removed.
    """

    def __init__(self):
        self._jobs: Dict[str, GenerationJob] = {}
        self._lock = threading.Lock()

    def create(self) -> str:
        generation_id = str(uuid.uuid4())
        self.update(generation_id, INITIAL_STATUS, STAGE_PROMPT)
        return generation_id

    def get(self, generation_id: str) -> Optional[GenerationJob]:
        return self._jobs.get(generation_id)

    def update(
        self,
        generation_id: str,
        status: str,
        stage_index: int,
        complete: bool = False,
        video: Optional[Video] = None,
    ) -> GenerationJob:
        job = GenerationJob(
            status=status,
            stage_index=stage_index,
            complete=complete,
            started_at=datetime.utcnow(),
            video=video,
        )
        with self._lock:
            self._jobs[generation_id] = job
        return job

    def fail(self, generation_id: str, message: str) -> GenerationJob:
        return self.update(generation_id, f"Error: {message}", STAGE_ERROR, complete=True)

    def status_callback(self, generation_id: str) -> StatusCallback:
        def on_status(
            status: str, stage_index: int, complete: bool, video: Optional[Video]
        ) -> None:
            self.update(generation_id, status, stage_index, complete, video)

        return on_status


def run_generation(
    service: VideoGenerationService,
    registry: GenerationRegistry,
    generation_id: str,
    request: GenerateVideoRequest,
) -> None:
    """Background task body: any failure ends up in the registry, never in the caller."""
    try:
        service.generate_video(request, registry.status_callback(generation_id))
    except Exception as e:
        logger.error(f"Async video generation error for {generation_id}: {str(e)}")
        registry.fail(generation_id, str(e) or "Unknown error")

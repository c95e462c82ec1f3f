import base64
import binascii
import logging
import os
import time
import uuid
from io import BytesIO
from traceback import format_exc
from typing import Optional

import requests
from google import genai
from google.genai import types
from PIL import Image, UnidentifiedImageError

from app.errors import GenerationConfigurationError, GenerationFailedError
from app.models.shared import GenerationType
from app.models.tasks import (
    STAGE_COMPLETE,
    STAGE_FRAMES,
    STAGE_PROMPT,
    STAGE_RENDERING,
    STAGE_UPLOADING,
)
from app.models.videos import GenerateVideoRequest, Video, VideoCreate
from app.services.content.pinata import PinataService
from app.services.generation.common import StatusCallback, VideoGenerationService
from app.services.storage import VideoStorage
from config import GOOGLE_API_KEY, UPLOADS_DIR, VEO_MODEL

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VeoVideoService(VideoGenerationService):
    """Google Veo implementation of the video generation service."""

    POLL_INTERVAL = 10  # seconds between operation checks
    MAX_POLLS = 60
    DOWNLOAD_TIMEOUT = 120
    PERSON_GENERATION = "allow_adult"
    SOURCE = "Google Veo AI"

    def __init__(
        self,
        pinata: PinataService,
        storage: VideoStorage,
        api_key: Optional[str] = GOOGLE_API_KEY,
        model: str = VEO_MODEL,
        uploads_dir: str = UPLOADS_DIR,
    ):
        self.pinata = pinata
        self.storage = storage
        self.api_key = api_key
        self.model = model
        self.uploads_dir = uploads_dir
        self._client = None

    def _get_client(self) -> genai.Client:
        """Get or create the GenAI client."""
        if self._client is None:
            if not self.api_key:
                raise GenerationConfigurationError("GOOGLE_API_KEY is not configured")
            logger.info(f"Initializing GenAI client for model: {self.model}")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def _decode_image(image_base64: str) -> types.Image:
        """
        Decode a base64 (or data URL) image payload for image-conditioned generation.

        Raises:
            GenerationFailedError: If the payload is not a readable image
        """
        if image_base64.startswith("data:") and "," in image_base64:
            image_base64 = image_base64.split(",", 1)[1]

        try:
            image_bytes = base64.b64decode(image_base64, validate=True)
            image = Image.open(BytesIO(image_bytes))
            image.verify()
        except (binascii.Error, UnidentifiedImageError, ValueError) as e:
            raise GenerationFailedError(f"Invalid image payload: {str(e)}") from e

        mime_type = Image.MIME.get(image.format, "image/png")
        return types.Image(image_bytes=image_bytes, mime_type=mime_type)

    def _start_operation(self, request: GenerateVideoRequest):
        config = types.GenerateVideosConfig(
            person_generation=self.PERSON_GENERATION,
            aspect_ratio=request.aspect_ratio.value,
            number_of_videos=1,
            duration_seconds=request.duration_seconds,
        )
        kwargs = {"model": self.model, "prompt": request.prompt, "config": config}
        if request.generation_type == GenerationType.IMAGE:
            kwargs["image"] = self._decode_image(request.image_base64)

        return self._get_client().models.generate_videos(**kwargs)

    def _wait_for_operation(self, operation):
        polls = 0
        while not operation.done:
            if polls >= self.MAX_POLLS:
                raise GenerationFailedError(
                    f"Veo did not finish within {self.MAX_POLLS * self.POLL_INTERVAL} seconds"
                )
            time.sleep(self.POLL_INTERVAL)
            polls += 1
            operation = self._get_client().operations.get(operation)
        return operation

    @staticmethod
    def _video_uri(operation) -> str:
        if operation.error:
            raise GenerationFailedError(f"Veo generation failed: {operation.error}")

        response = operation.response
        if not response or not response.generated_videos:
            raise GenerationFailedError("No videos were generated")

        generated_video = response.generated_videos[0]
        if not generated_video.video or not generated_video.video.uri:
            raise GenerationFailedError("Video URI is missing")
        return generated_video.video.uri

    def _download(self, uri: str) -> str:
        """Download the generated video into the uploads directory."""
        os.makedirs(self.uploads_dir, exist_ok=True)
        video_path = os.path.join(self.uploads_dir, f"video-{uuid.uuid4()}.mp4")

        try:
            with requests.get(
                uri,
                params={"key": self.api_key},
                stream=True,
                timeout=self.DOWNLOAD_TIMEOUT,
            ) as response:
                response.raise_for_status()
                with open(video_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=1024 * 1024):
                        f.write(chunk)
        except requests.RequestException as e:
            logger.error(f"Error downloading video: {str(e)}\n{format_exc()}")
            raise GenerationFailedError(f"Failed to download video: {str(e)}") from e

        return video_path

    def generate_video(
        self, request: GenerateVideoRequest, on_status: StatusCallback
    ) -> Video:
        """
        Generate a video with Veo, pin it on IPFS and store the record.

        Args:
            request: Validated generation parameters
            on_status: Progress callback

        Returns:
            Video: The stored video

        Raises:
            GenerationConfigurationError: If the API key is missing
            GenerationFailedError: If Veo, the download or the upload failed
        """
        on_status("Processing prompt and initializing generation", STAGE_PROMPT, False, None)
        operation = self._start_operation(request)

        on_status("Generating frames", STAGE_FRAMES, False, None)
        operation = self._wait_for_operation(operation)

        on_status("Rendering video", STAGE_RENDERING, False, None)
        video_path = self._download(self._video_uri(operation))

        try:
            on_status("Uploading to IPFS", STAGE_UPLOADING, False, None)
            timestamp = int(time.time() * 1000)
            pin = self.pinata.pin_path(video_path, f"generated-video-{timestamp}.mp4")

            video = self.storage.create_video_sync(
                VideoCreate(
                    prompt=request.prompt,
                    aspect_ratio=request.aspect_ratio.value,
                    ipfs_cid=pin.cid,
                    gateway_url=pin.gateway_url,
                    duration=f"{request.duration_seconds}.0 seconds",
                    wallet_address=request.wallet_address,
                    generation_type=request.generation_type.value,
                    metadata={
                        "source": self.SOURCE,
                        "model": self.model,
                        "ipfs": True,
                        "duration": request.duration_seconds,
                        "timestamp": timestamp,
                    },
                )
            )
        finally:
            # Only the pinned copy is kept
            if os.path.exists(video_path):
                os.remove(video_path)

        on_status("Generation complete", STAGE_COMPLETE, True, video)
        logger.info(f"Video {video.id} available at {video.gateway_url}")
        return video

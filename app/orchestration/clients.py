import asyncio
import logging
from typing import Optional

import requests

from app.errors import (
    ContentError,
    GenerationFailedError,
    GenerationNotFoundError,
    GenerationRequestError,
    TransientNetworkError,
)
from app.models.content import MetadataStoreRequest, MetadataStoreResponse
from app.models.payments import PriceQuote
from app.models.tasks import GenerationJob
from app.models.videos import GenerateVideoRequest, GenerateVideoResponse

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VideoApiClient:
    """HTTP client for the video generation API, used by the workflow session."""

    TIMEOUT = 30  # seconds
    DOWNLOAD_CHUNK_SIZE = 1024 * 1024

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method, f"{self.base_url}{path}", timeout=self.TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            raise TransientNetworkError(f"Video API unreachable: {str(e)}") from e

    async def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"

        if isinstance(body, dict):
            message = body.get("message") or body.get("detail")
            errors = body.get("errors")
            if message and errors:
                return f"{message}: {errors}"
            if message:
                return str(message)
        return str(body)

    async def submit_generation(self, params: GenerateVideoRequest) -> str:
        """
        Start a generation job.

        Returns:
            str: Generation ID to poll

        Raises:
            GenerationRequestError: The API rejected the parameters (HTTP 400)
            GenerationFailedError: Any other error response
        """
        response = await self._call(
            "POST", "/videos/generate", json=params.to_request_body()
        )
        if response.status_code == 400:
            raise GenerationRequestError(self._error_message(response))
        if response.status_code >= 400:
            raise GenerationFailedError(
                f"Failed to start video generation: {self._error_message(response)}"
            )
        return GenerateVideoResponse.model_validate(response.json()).generation_id

    async def get_status(self, generation_id: str) -> GenerationJob:
        response = await self._call(
            "GET", "/videos/status", params={"id": generation_id}
        )
        if response.status_code == 404:
            raise GenerationNotFoundError(f"Generation {generation_id} not found")
        if response.status_code >= 400:
            raise GenerationFailedError(
                f"Failed to check generation status: {self._error_message(response)}"
            )
        # pydantic's ValidationError and JSON decode errors are both ValueErrors
        try:
            return GenerationJob.model_validate(response.json())
        except ValueError as e:
            raise GenerationFailedError(
                f"Malformed generation status response: {str(e)}"
            ) from e

    async def get_price(self, token: str) -> float:
        """Spot price in USD; lets the client act as the fee calculator's price oracle."""
        response = await self._call("GET", f"/price/{token}")
        if response.status_code >= 400:
            raise TransientNetworkError(
                f"Price lookup failed: {self._error_message(response)}"
            )
        return PriceQuote.model_validate(response.json()).price

    def _download(self, cid: str, path: str) -> int:
        size = 0
        with self._request(
            "GET", "/content/download", params={"cid": cid}, stream=True
        ) as response:
            if response.status_code >= 400:
                raise ContentError(
                    f"Failed to download {cid}: {self._error_message(response)}"
                )
            with open(path, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
                    size += len(chunk)
        return size

    async def download_content(self, cid: str, path: str) -> str:
        """Save pinned content to ``path`` and return the path."""
        size = await asyncio.to_thread(self._download, cid, path)
        logger.info(f"Downloaded {cid} to {path} ({size} bytes)")
        return path

    async def store_metadata(self, request: MetadataStoreRequest) -> MetadataStoreResponse:
        response = await self._call("POST", "/metadata/store", json=request.to_wire())
        if response.status_code >= 400:
            raise ContentError(
                f"Failed to store metadata: {self._error_message(response)}"
            )
        return MetadataStoreResponse.model_validate(response.json())

import logging
from functools import partial
from traceback import format_exc
from typing import Optional, Protocol

from app.errors import (
    GenerationConfigurationError,
    GenerationFailedError,
    GenerationTimeoutError,
    InvalidTransitionError,
    PollingCancelledError,
    PollingExhaustedError,
    TransientNetworkError,
    WorkflowError,
)
from app.models.shared import GenerationState
from app.models.tasks import GenerationJob
from app.models.videos import GenerateVideoRequest, Video
from app.orchestration.scheduling import CancellationToken, PollingTask
from app.orchestration.workflow import WorkflowState

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VideoApi(Protocol):
    async def submit_generation(self, params: GenerateVideoRequest) -> str: ...

    async def get_status(self, generation_id: str) -> GenerationJob: ...


class GenerationOrchestrator:
    """
    Submits a paid generation request and polls its status until a video exists.

    State machine:
        not_started -> submitted -> polling -> complete | errored
    """

    POLL_INTERVAL = 5  # seconds
    MAX_ATTEMPTS = 120  # 10 minutes at the default interval

    def __init__(
        self,
        api: VideoApi,
        workflow: WorkflowState,
        poll_interval: float = POLL_INTERVAL,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.api = api
        self.workflow = workflow
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

        self.state = GenerationState.NOT_STARTED
        self.generation_id: Optional[str] = None
        self.error: Optional[str] = None
        self._polling: Optional[PollingTask] = None

    def _fail(self, message: str) -> None:
        self.state = GenerationState.ERRORED
        self.error = message
        # Backend job errors already carry the prefix
        text = message if message.startswith("Error:") else f"Error: {message}"
        self.workflow.fail_processing(text)
        logger.error(f"Video generation failed: {message}")

    async def start(self) -> str:
        """
        Submit the workflow's generation parameters.

        Returns:
            str: Generation ID assigned by the API

        Raises:
            GenerationConfigurationError: If parameters are missing or the
                payment has not been completed
            GenerationRequestError: If the API rejected the request
        """
        if self.state != GenerationState.NOT_STARTED:
            raise InvalidTransitionError("A video generation is already in progress")

        params = self.workflow.generation_params
        if params is None:
            raise GenerationConfigurationError("Missing generation parameters")
        if not self.workflow.payment_complete:
            raise GenerationConfigurationError(
                "Payment must be completed before generating a video"
            )

        logger.info(
            f"Starting {params.generation_type.value} video generation: {params.prompt[:50]}"
        )
        try:
            generation_id = await self.api.submit_generation(params)
        except WorkflowError as e:
            self._fail(str(e))
            raise

        self.generation_id = generation_id
        self.state = GenerationState.SUBMITTED
        self.workflow.start_processing(generation_id)
        logger.info(f"Generation started with ID: {generation_id}")
        return generation_id

    async def poll_once(
        self, attempt: int = 0, token: Optional[CancellationToken] = None
    ) -> Optional[Video]:
        """
        Fetch the job status once and mirror it onto the workflow.

        Args:
            attempt: Attempt number, used in logs
            token: Token of the polling loop this check belongs to

        Returns:
            Video once the job completed, None while it is still running
        """
        generation_id = self.generation_id
        try:
            job = await self.api.get_status(generation_id)
        except TransientNetworkError as e:
            logger.warning(f"Status check {attempt} for {generation_id} failed: {str(e)}")
            return None

        # The user may have moved on while the request was outstanding
        if token is not None and token.cancelled:
            return None

        if job.stage_index != self.workflow.processing_status.stage_index:
            logger.info(f"Generation {self.generation_id}: {job.status} (stage {job.stage_index})")
        self.workflow.update_processing_status(job.status, job.stage_index)

        if job.failed:
            raise GenerationFailedError(job.status)
        if not job.complete:
            return None
        return job.video

    async def wait(self) -> Video:
        """
        Poll until the video is ready and hand it to the workflow.

        Raises:
            GenerationFailedError: The job errored, is unknown, or timed out
            PollingCancelledError: ``cancel`` was called while waiting
        """
        if self.state != GenerationState.SUBMITTED:
            raise InvalidTransitionError("No submitted generation to wait for")

        self.state = GenerationState.POLLING
        token = CancellationToken()
        polling = PollingTask(
            partial(self.poll_once, token=token),
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            name=f"generation-{self.generation_id}",
            token=token,
        )
        self._polling = polling
        try:
            video = await polling.wait()
        except PollingCancelledError:
            raise
        except PollingExhaustedError as e:
            timeout = GenerationTimeoutError(
                f"Video generation did not finish after {e.attempts} status checks"
            )
            self._fail(str(timeout))
            raise timeout from e
        except WorkflowError as e:
            # A status check that was in flight when the user moved on
            if token.cancelled:
                logger.info(f"Dropping result of cancelled status check: {str(e)}")
                raise PollingCancelledError("Polling was cancelled") from e
            self._fail(str(e))
            raise
        except Exception as e:
            if token.cancelled:
                raise PollingCancelledError("Polling was cancelled") from e
            logger.error(f"Error polling generation status: {str(e)}\n{format_exc()}")
            self._fail(str(e))
            raise GenerationFailedError(f"Failed to check generation status: {str(e)}") from e

        self.state = GenerationState.COMPLETE
        if self.workflow.complete_generation(video):
            logger.info(f"Generation {self.generation_id} complete: {video.gateway_url}")
        return video

    async def run(self) -> Video:
        """Submit and wait in one go."""
        await self.start()
        return await self.wait()

    def cancel(self) -> None:
        if self._polling is not None:
            self._polling.cancel()

    def reset(self) -> None:
        self.cancel()
        self._polling = None
        self.state = GenerationState.NOT_STARTED
        self.generation_id = None
        self.error = None

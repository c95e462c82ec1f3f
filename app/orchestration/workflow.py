"""
Workflow State

Single source of truth for the active workflow step and the gating flags.
The payment and generation orchestrators mutate it through the methods
below; user actions (connect, new video) do the same.
"""

import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from app.errors import InvalidTransitionError
from app.models.shared import WorkflowStep
from app.models.videos import GenerateVideoRequest, Video

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_PROCESSING_TEXT = "Creating your amazing video. This typically takes 1 minute."

STEP_ORDER = [
    WorkflowStep.CONNECT,
    WorkflowStep.PROMPT,
    WorkflowStep.PAYMENT,
    WorkflowStep.PROCESSING,
    WorkflowStep.RESULT,
]


class ProcessingStage(BaseModel):
    """Cosmetic progress milestone shown while a video is generated."""

    id: str
    label: str
    percentage: int


PROCESSING_STAGES = [
    ProcessingStage(id="prompt", label="Processing prompt", percentage=25),
    ProcessingStage(id="frames", label="Generating frames", percentage=50),
    ProcessingStage(id="rendering", label="Rendering video", percentage=75),
    ProcessingStage(id="uploading", label="Uploading to IPFS", percentage=100),
]


def progress_for_stage(stage_index: int) -> int:
    """Progress bar percentage for a stage index reported by the backend."""
    if stage_index < 0:
        return 0
    if stage_index >= len(PROCESSING_STAGES):
        return 100
    return PROCESSING_STAGES[stage_index].percentage


class ProcessingStatus(BaseModel):
    text: str = DEFAULT_PROCESSING_TEXT
    stage_index: int = 0

    @property
    def stage(self) -> Optional[ProcessingStage]:
        if 0 <= self.stage_index < len(PROCESSING_STAGES):
            return PROCESSING_STAGES[self.stage_index]
        return None

    @property
    def progress(self) -> int:
        return progress_for_stage(self.stage_index)


class WorkflowState(BaseModel):
    """State of one user session. Never persisted."""

    model_config = ConfigDict(validate_assignment=True)

    step: WorkflowStep = WorkflowStep.CONNECT
    wallet_connected: bool = False
    payment_complete: bool = False
    is_processing: bool = False
    has_result: bool = False
    allowed_accounts: List[str] = Field(default_factory=list)
    context_accounts: List[str] = Field(default_factory=list)
    generation_params: Optional[GenerateVideoRequest] = None
    generation_id: Optional[str] = None
    processing_status: ProcessingStatus = Field(default_factory=ProcessingStatus)
    video_result: Optional[Video] = None

    def _check_gate(self, step: WorkflowStep) -> None:
        if step == WorkflowStep.PROMPT and not self.wallet_connected:
            raise InvalidTransitionError("Connect a wallet first")
        if step == WorkflowStep.PAYMENT and self.generation_params is None:
            raise InvalidTransitionError("Generation parameters are missing")
        if step == WorkflowStep.PROCESSING and not self.payment_complete:
            raise InvalidTransitionError("Payment has not been completed")
        if step == WorkflowStep.RESULT and not self.has_result:
            raise InvalidTransitionError("No video has been generated yet")

    def set_step(self, step: WorkflowStep) -> None:
        """Move forward in the workflow. Going back is only possible via reset_to_prompt."""
        if STEP_ORDER.index(step) < STEP_ORDER.index(self.step):
            raise InvalidTransitionError(
                f"Cannot go back from {self.step.value} to {step.value}"
            )
        self._check_gate(step)
        if step != self.step:
            logger.info(f"Workflow step: {self.step.value} -> {step.value}")
        self.step = step

    def connect_wallet(
        self, accounts: Sequence[str], context_accounts: Sequence[str] = ()
    ) -> None:
        if not accounts:
            raise InvalidTransitionError("No accounts available")
        self.allowed_accounts = list(accounts)
        self.context_accounts = list(context_accounts)
        self.wallet_connected = True
        if self.step == WorkflowStep.CONNECT:
            self.set_step(WorkflowStep.PROMPT)

    def set_generation_params(self, params: GenerateVideoRequest) -> None:
        logger.info(f"Setting generation params: {params.prompt[:50]}")
        self.generation_params = params

    def complete_payment(self) -> None:
        self.payment_complete = True

    def start_processing(self, generation_id: str) -> None:
        if not self.payment_complete:
            raise InvalidTransitionError("Payment has not been completed")
        self.generation_id = generation_id
        self.is_processing = True
        self.processing_status = ProcessingStatus()
        self.set_step(WorkflowStep.PROCESSING)

    def update_processing_status(self, text: str, stage_index: int) -> None:
        self.processing_status = ProcessingStatus(text=text, stage_index=stage_index)

    def complete_generation(self, video: Video) -> bool:
        """Store the result and show it. Returns False if a result was already stored."""
        if self.has_result:
            return False
        self.video_result = video
        self.has_result = True
        self.is_processing = False
        self.set_step(WorkflowStep.RESULT)
        return True

    def fail_processing(self, message: str) -> None:
        self.is_processing = False
        self.processing_status = ProcessingStatus(
            text=message, stage_index=self.processing_status.stage_index
        )

    def reset_to_prompt(self) -> None:
        """Start a new video. Wallet connection and the last prompt are kept."""
        self.generation_id = None
        self.video_result = None
        self.has_result = False
        self.payment_complete = False
        self.is_processing = False
        self.processing_status = ProcessingStatus()
        self.step = WorkflowStep.PROMPT if self.wallet_connected else WorkflowStep.CONNECT

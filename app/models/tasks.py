"""
Task Data Models

This module contains models related to background generation jobs.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from app.models.shared import ApiBaseModel
from app.models.videos import Video

# Stage indices reported by the generation backend
STAGE_PROMPT = 0
STAGE_FRAMES = 1
STAGE_RENDERING = 2
STAGE_UPLOADING = 3
STAGE_COMPLETE = 4
STAGE_ERROR = -1


class GenerationJob(ApiBaseModel):
    """Status record of one generation job, keyed by generation ID."""

    status: str = Field(..., description="Human readable status text")
    stage_index: int = Field(..., description="Progress stage, -1 on error")
    complete: bool = Field(False, description="Whether the job reached a terminal state")
    started_at: datetime = Field(..., description="When this status was reported")
    video: Optional[Video] = Field(None, description="Result artifact once complete")

    @property
    def failed(self) -> bool:
        return self.complete and self.video is None

"""
Shared Data Models

This module contains shared Pydantic base classes and enums that are used
across the API schemas and the workflow orchestration layer.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiBaseModel(BaseModel):
    """Base model for everything that crosses the HTTP boundary."""

    model_config = ConfigDict(
        # Wire format is camelCase, Python attributes are snake_case
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Validate assignments
        validate_assignment=True,
    )

    def to_wire(self) -> dict:
        """Serialise using the camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True)


# Enums
class GenerationType(str, Enum):
    """Generation mode enumeration."""

    TEXT = "text"
    IMAGE = "image"  # Image-conditioned generation


class AspectRatio(str, Enum):
    """Supported video aspect ratios."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class WorkflowStep(str, Enum):
    """User-facing workflow step enumeration."""

    CONNECT = "connect"
    PROMPT = "prompt"
    PAYMENT = "payment"
    PROCESSING = "processing"
    RESULT = "result"


class PaymentState(str, Enum):
    """Payment orchestrator state enumeration."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"  # Recoverable via manual verify
    FAILED = "failed"


class GenerationState(str, Enum):
    """Generation orchestrator state enumeration."""

    NOT_STARTED = "not_started"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETE = "complete"
    ERRORED = "errored"

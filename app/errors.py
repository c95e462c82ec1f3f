"""
Workflow Errors

Every failure the workflow can surface to the user. The class decides whether
the failure is retried: only ``TransactionPendingError`` is retried by
polling, and ``TransientNetworkError`` is recovered locally with a fallback.
"""


class WorkflowError(Exception):
    """Base class for workflow failures."""

    retryable = False


# Configuration errors: fatal, never retried
class ConfigurationError(WorkflowError):
    pass


class GenerationConfigurationError(ConfigurationError):
    pass


# Transient network errors: recovered locally with a fallback value
class TransientNetworkError(WorkflowError):
    retryable = True


# Blockchain state errors: retried by confirmation polling
class TransactionPendingError(WorkflowError):
    retryable = True


# Validation errors: terminal for the transaction
class PaymentValidationError(WorkflowError):
    pass


class PaymentSubmissionError(WorkflowError):
    pass


# Backend job errors: terminal, the user restarts the workflow
class GenerationFailedError(WorkflowError):
    pass


class GenerationRequestError(GenerationFailedError):
    """The API rejected the generation request."""


class GenerationNotFoundError(GenerationFailedError):
    """The API does not know the generation ID."""


class GenerationTimeoutError(GenerationFailedError):
    pass


class InvalidTransitionError(WorkflowError):
    """A state machine was asked for a transition it does not allow."""


# Scheduler
class PollingCancelledError(WorkflowError):
    pass


class PollingExhaustedError(WorkflowError):
    def __init__(self, attempts: int):
        super().__init__(f"No result after {attempts} attempts")
        self.attempts = attempts


# Pinning and content errors
class ContentError(WorkflowError):
    pass

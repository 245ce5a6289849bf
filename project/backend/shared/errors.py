"""
Error classes for the ad variant pipeline.

Every error raised by shared code or a module derives from PipelineError so
the API layer and the worker can map them in one place.
"""

from typing import Optional, Union
from uuid import UUID


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    code: str = "PIPELINE_ERROR"

    def __init__(
        self,
        message: str,
        job_id: Optional[Union[UUID, str]] = None,
        code: Optional[str] = None
    ):
        """
        Initialize pipeline error.

        Args:
            message: Human-readable error message
            job_id: Optional id of the analysis or render job that failed
            code: Optional machine-readable code (defaults to the class code)
        """
        super().__init__(message)
        self.message = message
        self.job_id = job_id
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ConfigError(PipelineError):
    """Raised when configuration is missing or invalid."""

    code = "CONFIG_ERROR"


class ValidationError(PipelineError):
    """Raised when input validation fails."""

    code = "VALIDATION_ERROR"


class RetryableError(PipelineError):
    """Raised for transient failures (network, store, rate limits)."""

    code = "RETRYABLE_ERROR"


class RateLimitError(RetryableError):
    """Raised when an upstream API rate limits us."""

    code = "RATE_LIMITED"


class WorkflowTransitionError(PipelineError):
    """Raised when a workflow stage is entered without its precondition."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        target_state: Optional[str] = None,
        job_id: Optional[Union[UUID, str]] = None
    ):
        super().__init__(message, job_id=job_id)
        self.current_state = current_state
        self.target_state = target_state


class AnalysisTimeoutError(PipelineError):
    """Raised when analysis polling exhausts its attempts."""

    code = "ANALYSIS_TIMEOUT"


class UpstreamServiceError(PipelineError):
    """Raised when an external collaborator rejects a request or fails."""

    code = "UPSTREAM_ERROR"


class GenerationError(UpstreamServiceError):
    """An LLM call failed permanently."""

    code = "GENERATION_FAILED"


class TranscriptionFailedError(UpstreamServiceError):
    """Transcription produced no usable transcript."""

    code = "TRANSCRIPTION_FAILED"


class UnstructuredContentError(UpstreamServiceError):
    """Structure generation detected zero sections."""

    code = "UNSTRUCTURED_CONTENT"


class TTSFailedError(UpstreamServiceError):
    """Voice-over synthesis failed."""

    code = "TTS_FAILED"


class RenderSubmissionError(UpstreamServiceError):
    """The render service (or the queue in front of it) rejected a job."""

    code = "RENDER_SUBMISSION_FAILED"


class RenderFailedError(UpstreamServiceError):
    """A submitted render finished in a failed state or never finished."""

    code = "RENDER_FAILED"

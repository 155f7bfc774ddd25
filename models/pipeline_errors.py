"""Error taxonomy for the capture, enhance, analyze and persist pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every failure the pipeline surfaces to callers."""

    retryable = False
    default_message = "Analysis failed. Please try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class PreconditionError(PipelineError):
    """Session state does not allow the requested operation. Detected before any I/O."""


class CapacityExceeded(PreconditionError):
    default_message = "Maximum 5 photos allowed."


class NoImages(PreconditionError):
    default_message = "Add at least one photo before analyzing."


class MissingCredential(PreconditionError):
    default_message = "Please set your OpenAI API key in Settings first."


class EnhancementPending(PreconditionError):
    default_message = "Some photos are still being enhanced. Please wait a moment."


class AnalysisInProgress(PreconditionError):
    default_message = "An analysis is already running for this session."


class InvalidTransition(PreconditionError):
    default_message = "Operation is not allowed at this stage."


class SelectionUnavailable(PreconditionError):
    default_message = "Enhanced version is not available for this photo."


class InferenceError(PipelineError):
    """Failure reported by the inference gateway."""


class InvalidCredential(InferenceError):
    retryable = True
    default_message = "Invalid API key"


class TransportFailure(InferenceError):
    retryable = True
    default_message = "Could not reach the analysis service."


class MalformedResponse(InferenceError):
    default_message = "Failed to parse AI response"


class EmptyRequest(InferenceError):
    default_message = "At least one image and API key are required"


class AnalysisFailed(PipelineError):
    """Unexpected exception raised while building or persisting a draft."""

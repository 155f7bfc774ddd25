"""HTTP status codes for pipeline errors."""

from models.pipeline_errors import (
    AnalysisFailed,
    EmptyRequest,
    InvalidCredential,
    MalformedResponse,
    MissingCredential,
    PipelineError,
    PreconditionError,
    TransportFailure,
)

_STATUS_BY_ERROR = (
    (MissingCredential, 400),
    (PreconditionError, 409),
    (InvalidCredential, 401),
    (EmptyRequest, 400),
    (TransportFailure, 502),
    (MalformedResponse, 422),
    (AnalysisFailed, 500),
)


def status_for(exc: PipelineError) -> int:
    """Return the HTTP status for a pipeline error (first matching class wins)."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500

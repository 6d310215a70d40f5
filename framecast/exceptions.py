"""Custom exceptions for framecast.

Every error carries a machine-readable code from
``framecast.constants.error_codes`` so callers can decide whether to retry.
"""

from typing import Any

from framecast.constants.error_codes import get_error_spec


class FramecastError(Exception):
    """Base exception for all framecast errors."""

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return get_error_spec(self.code).get("retryable", False)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable error payload."""
        spec = get_error_spec(self.code)
        return {
            "code": self.code,
            "message": self.message,
            "retryable": spec.get("retryable", False),
            "suggested_action": spec.get("suggested_action"),
            "details": self.details,
        }


# =============================================================================
# Request / asset errors
# =============================================================================


class RequestValidationError(FramecastError):
    """Composition request is malformed or missing required fields."""

    code = "VALIDATION_ERROR"
    message = "Invalid composition request"


class AssetError(FramecastError):
    """An asset could not be decoded or written to working storage."""

    code = "ASSET_ERROR"
    message = "Failed to materialize asset"


# =============================================================================
# Render errors
# =============================================================================


class CompilationError(FramecastError):
    """The compiled filter graph is inconsistent (a logic defect)."""

    code = "COMPILATION_ERROR"
    message = "Filter graph compilation failed"


class ExecutionError(FramecastError):
    """The external engine exited with a non-zero status."""

    code = "EXECUTION_ERROR"
    message = "External engine failed"

    def __init__(self, message: str | None = None, *, returncode: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.returncode = returncode


# =============================================================================
# Upstream / batch errors
# =============================================================================


class UpstreamRequestError(FramecastError):
    """Upstream request failed with a non-retryable error."""

    code = "UPSTREAM_REQUEST_FAILED"
    message = "Upstream request failed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class TransientUpstreamError(FramecastError):
    """Upstream request kept failing transiently until retries ran out."""

    code = "UPSTREAM_TRANSIENT"
    message = "Upstream request failed after retries"

    def __init__(self, message: str | None = None, *, attempts: int = 0, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class BatchError(FramecastError):
    """One or more items of a bounded batch failed."""

    code = "BATCH_FAILED"
    message = "Batch operation failed"

    def __init__(self, errors: list[BaseException], message: str | None = None):
        self.errors = errors
        summary = "; ".join(str(e) for e in errors)
        super().__init__(
            message or f"{len(errors)} item(s) failed: {summary}",
            details={"failed": len(errors)},
        )


# =============================================================================
# Job errors
# =============================================================================


class JobNotFoundError(FramecastError):
    """Job id is not known to the job store."""

    code = "JOB_NOT_FOUND"
    message = "Job not found"


class InvalidJobTransitionError(FramecastError):
    """Requested state change is not allowed (e.g. leaving a terminal state)."""

    code = "INVALID_JOB_TRANSITION"
    message = "Invalid job state transition"

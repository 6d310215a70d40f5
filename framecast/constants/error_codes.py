"""Error codes registry.

Single source of truth for every error code the package raises, whether a
caller may retry it, and what it should do next.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_action: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Request errors (never retryable)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_action": "fix_request",
    },
    "ASSET_ERROR": {
        "retryable": False,
        "suggested_action": "check_asset_source",
    },
    # ==========================================================================
    # Render errors
    # ==========================================================================
    "COMPILATION_ERROR": {
        "retryable": False,
        "suggested_action": "report_bug",
    },
    "EXECUTION_ERROR": {
        "retryable": False,
        "suggested_action": "inspect_engine_output",
    },
    # ==========================================================================
    # Upstream errors
    # ==========================================================================
    "UPSTREAM_TRANSIENT": {
        "retryable": True,
        "suggested_action": "retry_later",
    },
    "UPSTREAM_REQUEST_FAILED": {
        "retryable": False,
        "suggested_action": "check_asset_source",
    },
    "BATCH_FAILED": {
        "retryable": False,
        "suggested_action": "inspect_item_errors",
    },
    # ==========================================================================
    # Job errors
    # ==========================================================================
    "JOB_NOT_FOUND": {
        "retryable": False,
        "suggested_action": "list_jobs",
    },
    "INVALID_JOB_TRANSITION": {
        "retryable": False,
        "suggested_action": "refresh_status",
    },
    "INTERNAL_ERROR": {
        "retryable": True,
        "suggested_action": "retry_later",
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested action
    """
    return ERROR_CODES.get(code, {"retryable": False})


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    spec = get_error_spec(code)
    return spec.get("retryable", False)

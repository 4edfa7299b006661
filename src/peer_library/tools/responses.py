"""Response helpers shared by the MCP tool handlers."""

import logging
from typing import Any

from ..errors import (
    DatabaseError,
    DuplicateError,
    ExternalServiceError,
    InvalidStateError,
    LibraryError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

ERROR_LABELS: dict[type[LibraryError], str] = {
    NotFoundError: "Not found",
    InvalidStateError: "Invalid state",
    DuplicateError: "Already exists",
    ExternalServiceError: "Peer unavailable",
    DatabaseError: "Database error",
}


def format_error_response(error_type: str, details: str) -> dict[str, Any]:
    """Format error responses consistently across all tools."""
    return {"isError": True, "content": [{"type": "text", "text": f"{error_type}: {details}"}]}


def format_library_error(tool: str, error: LibraryError) -> dict[str, Any]:
    label = next(
        (text for cls, text in ERROR_LABELS.items() if isinstance(error, cls)), "Operation failed"
    )
    if isinstance(error, DatabaseError):
        logger.error("%s failed: %s", tool, error)
    else:
        logger.info("%s failed (%s): %s", tool, label.lower(), error)
    return format_error_response(label, str(error))


def format_success(message: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": message}], "data": data}


def log_operation(operation: str, **kwargs: Any) -> None:
    """Log operation details for audit trail."""
    logger.info(
        "Operation: %s | Details: %s", operation, " | ".join(f"{k}={v}" for k, v in kwargs.items())
    )

"""
Error types of the prospect intel pipeline and their HTTP mapping.

Services raise AppError subclasses (or let library errors propagate);
routers turn whatever escapes into an HTTPException with handle_exception,
so internal messages never reach the client for unexpected failures.
"""

import logging
from typing import Optional, Dict, Any
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class ErrorCodes:
    """Machine-readable codes returned in the ``error`` field of a response."""
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SCAN_FAILED = "SCAN_FAILED"
    DATABASE_ERROR = "DATABASE_ERROR"


class AppError(Exception):
    """Pipeline error carrying its own code and HTTP status."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCodes.INTERNAL_ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class SourceNotFoundError(AppError):
    """The prospect_sources row backing a scan does not exist for this user."""

    def __init__(self, source_id: str):
        super().__init__(
            f"Source not found: {source_id}",
            code=ErrorCodes.NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"source_id": source_id},
        )


class InvalidSourceError(AppError):
    """A scan was requested with an unknown source type or a malformed payload."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            code=ErrorCodes.VALIDATION_ERROR,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


# Generic responses for errors that are not AppErrors: (status, code, message)
_UNAVAILABLE = (
    status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCodes.SERVICE_UNAVAILABLE,
    "Service temporarily unavailable. Please try again.",
)
_BAD_INPUT = (
    status.HTTP_400_BAD_REQUEST,
    ErrorCodes.VALIDATION_ERROR,
    "Invalid request data. Please check your input.",
)
_SCAN_FAILED = (
    status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCodes.SCAN_FAILED,
    "The scan could not be processed. Please try again.",
)
_INTERNAL = (
    status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCodes.INTERNAL_ERROR,
    "An unexpected error occurred. Please try again.",
)


def _classify(error: Exception, operation: str) -> tuple:
    message = str(error).lower()
    if "connection" in message or "timeout" in message or isinstance(error, TimeoutError):
        return _UNAVAILABLE
    if type(error).__name__ in ("ValidationError", "ValueError", "TypeError"):
        return _BAD_INPUT
    if operation.startswith("scan"):
        return _SCAN_FAILED
    return _INTERNAL


def handle_exception(
    error: Exception,
    operation: str,
    *,
    user_id: Optional[str] = None,
    resource_id: Optional[str] = None,
) -> HTTPException:
    """
    Log an error raised while serving ``operation`` and build the HTTPException
    to raise in its place.

    Usage:
        try:
            scan_id = await service.start_scan(...)
        except HTTPException:
            raise
        except Exception as e:
            raise handle_exception(e, "scan_start", user_id=user_id)
    """
    if isinstance(error, HTTPException):
        return error

    context = {"operation": operation, "error_type": type(error).__name__}
    if user_id:
        context["user_id"] = user_id
    if resource_id:
        context["resource_id"] = resource_id

    if isinstance(error, AppError):
        # Expected failures: the message is safe to return
        logger.warning(f"[API] {operation} rejected: {error.message}", extra=context)
        return HTTPException(
            status_code=error.status_code,
            detail={"error": error.code, "message": error.message, "details": error.details},
        )

    logger.error(f"[API] {operation} failed: {error}", extra=context, exc_info=True)
    status_code, code, message = _classify(error, operation)
    return HTTPException(status_code=status_code, detail={"error": code, "message": message})


def raise_not_found(resource: str, resource_id: Optional[str] = None) -> None:
    """Raise a 404 for a resource the caller does not own or that does not exist."""
    if resource_id:
        logger.info(f"[API] {resource} not found: {resource_id}")
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": ErrorCodes.NOT_FOUND, "message": f"{resource} not found"},
    )

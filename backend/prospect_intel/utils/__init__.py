"""
Utility modules for the Prospect Intel backend.
"""

from .errors import (
    handle_exception,
    raise_not_found,
    AppError,
    ErrorCodes,
    SourceNotFoundError,
    InvalidSourceError,
)

__all__ = [
    "handle_exception",
    "raise_not_found",
    "AppError",
    "ErrorCodes",
    "SourceNotFoundError",
    "InvalidSourceError",
]

"""
Utilities module: exceptions and API schemas.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    InternalError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "InternalError",
]

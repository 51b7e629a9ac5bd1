"""ClearDesk configuration.

This package contains:
- settings: Environment variables and configuration
- errors: Custom exceptions and error codes
"""

from config.settings import settings
from config.errors import (
    ClearDeskError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    ExtractionError,
    PersistenceError,
)

__all__ = [
    "settings",
    "ClearDeskError",
    "ErrorCode",
    "ValidationError",
    "NotFoundError",
    "ExtractionError",
    "PersistenceError",
]

"""ClearDesk error handling.

Custom exceptions and error codes for the blueprint-to-estimate pipeline.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_SCHEMA = "INVALID_SCHEMA"
    INVALID_STATE = "INVALID_STATE"

    # Not Found Errors (2xxx)
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    BLUEPRINT_NOT_FOUND = "BLUEPRINT_NOT_FOUND"
    ESTIMATE_NOT_FOUND = "ESTIMATE_NOT_FOUND"
    COMPANY_NOT_FOUND = "COMPANY_NOT_FOUND"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"

    # Extraction Errors (3xxx)
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    EMPTY_DOCUMENT = "EMPTY_DOCUMENT"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Firestore / Storage Errors (5xxx)
    FIRESTORE_ERROR = "FIRESTORE_ERROR"
    FIRESTORE_WRITE_FAILED = "FIRESTORE_WRITE_FAILED"
    STORAGE_ERROR = "STORAGE_ERROR"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ClearDeskError(Exception):
    """Base exception for ClearDesk errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize ClearDeskError.

        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(ClearDeskError):
    """Validation-specific error (bad input or illegal state transition)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict] = None,
        code: str = ErrorCode.VALIDATION_ERROR
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class NotFoundError(ClearDeskError):
    """A referenced entity is absent where it is required."""

    def __init__(
        self,
        entity: str,
        entity_id: str,
        code: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code or f"{entity.upper()}_NOT_FOUND",
            message=f"{entity.capitalize()} not found: {entity_id}",
            details={**(details or {}), "entity": entity, "id": entity_id}
        )
        self.entity = entity
        self.entity_id = entity_id


class ExtractionError(ClearDeskError):
    """Source document is empty or cannot be read."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.EXTRACTION_FAILED,
        details: Optional[Dict] = None
    ):
        super().__init__(code=code, message=message, details=details)


class PersistenceError(ClearDeskError):
    """Store read or write failure."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.FIRESTORE_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(code=code, message=message, details=details)

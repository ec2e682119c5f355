"""
Error taxonomy for the Mutual Aid service.

Every failure the service knows how to describe is an ``AppError`` carrying the
HTTP status it maps to. The API layer converts these into JSON responses; any
other exception is treated as unclassified and surfaced as a generic 500.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors whose status and message are safe to show clients."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "error", "message": self.message}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class ValidationError(AppError):
    """Payload failed validation; ``errors`` lists every violated field."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: List[FieldError], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["errors"] = [asdict(error) for error in self.errors]
        return body

    def summary(self) -> str:
        """All field messages joined into one line."""
        return "; ".join(f"{error.field}: {error.message}" for error in self.errors)


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class RequestTimeoutError(AppError):
    status_code = 408
    default_message = "Request timeout"


class ConflictError(AppError):
    status_code = 409
    default_message = "Record already exists"


class PayloadTooLargeError(AppError):
    status_code = 413
    default_message = "Request body too large"


class RateLimitedError(AppError):
    status_code = 429
    default_message = "Too many requests. Please try again later."


class InternalError(AppError):
    status_code = 500


class ServiceUnavailableError(AppError):
    status_code = 503
    default_message = "Geocoding service is currently unavailable. Please try again later."


# --- Geocoding ---

class InvalidAddressError(AppError):
    status_code = 400
    default_message = "Invalid address format"


class InvalidCoordinatesError(AppError):
    status_code = 500
    default_message = "Received invalid coordinates from geocoding service"


# --- Storage ---

class StoreError(AppError):
    """Unclassified storage failure. Storage-specific detail is never exposed."""

    status_code = 500
    default_message = "Database error occurred"


class DuplicateViolationError(StoreError, ConflictError):
    status_code = 409
    default_message = "Record already exists"


class DataTooLongError(StoreError):
    status_code = 400
    default_message = "Data too long for one or more fields"


class ReferenceViolationError(StoreError):
    status_code = 400
    default_message = "Referenced record does not exist"


class InvalidStatusTransitionError(ConflictError):
    default_message = "Only pending submissions can be verified or rejected"


# --- Bulk intake ---

class NoValidRowsError(AppError):
    status_code = 400
    default_message = "No valid submissions found"

    def __init__(self, failed_submissions: List[Any], message: Optional[str] = None):
        self.failed_submissions = list(failed_submissions)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["failedSubmissions"] = [row.to_dict() for row in self.failed_submissions]
        return body

"""
Input Validator component for the Mutual Aid service.

Turns untyped request payloads into validated DTOs. Validation is pure: it
performs no I/O and never mutates its input, so the bulk intake path can run it
row by row. A failure reports every violated field, not just the first.
"""
import logging
from typing import Any, Dict, List, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mutual_aid.core.errors import FieldError, ValidationError
from mutual_aid.models.dtos import (
    LoginRequest,
    RegisterRequest,
    StatusUpdateRequest,
    SubmissionCreate,
)
from mutual_aid.models.enums import ResourceType

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_RESOURCE_TYPES = ", ".join(r.value for r in ResourceType)

# Friendlier wording for the constraint failures users hit most often.
_MESSAGES: Dict[Tuple[str, str], str] = {
    ("address", "missing"): "Address is required",
    ("address", "string_too_short"): "Address is required",
    ("address", "string_too_long"): "Address must be less than 255 characters",
    ("zip_code", "missing"): "ZIP code is required",
    ("zip_code", "string_pattern_mismatch"): "Invalid ZIP code format. Must be 5 digits or 5+4 format",
    ("resource_type", "missing"): "Resource type is required",
    ("resource_type", "enum"): f"Invalid resource type. Must be one of: {_RESOURCE_TYPES}",
    ("description", "missing"): "Description is required",
    ("description", "string_too_short"): "Description is required",
    ("description", "string_too_long"): "Description must be less than 1000 characters",
    ("contact_info", "string_too_long"): "Contact info must be less than 255 characters",
    ("username", "missing"): "Username is required",
    ("username", "string_too_short"): "Username must be between 3 and 30 characters",
    ("username", "string_too_long"): "Username must be between 3 and 30 characters",
    ("username", "string_pattern_mismatch"): "Username can only contain letters, numbers, underscores and dashes",
    ("email", "missing"): "Email is required",
    ("password", "missing"): "Password is required",
    ("password", "string_too_short"): "Password must be at least 8 characters long",
    ("status", "missing"): "Status is required",
    ("status", "enum"): "Invalid status",
}


def _field_errors(exc: PydanticValidationError) -> List[FieldError]:
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "body"
        ctx = err.get("ctx") or {}
        if err["type"] == "value_error" and "error" in ctx:
            message = str(ctx["error"])
        elif field == "email" and err["type"] == "value_error":
            message = "Invalid email format"
        else:
            message = _MESSAGES.get((field, err["type"]), err["msg"])
        errors.append(FieldError(field=field, message=message))
    return errors


def validate_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """
    Validate an untyped payload against a DTO.

    Args:
        model: The pydantic model describing the expected shape.
        payload: Anything JSON decoding can produce.

    Returns:
        A model instance satisfying every constraint.

    Raises:
        ValidationError: Listing every violated field.
    """
    if not isinstance(payload, dict):
        raise ValidationError([FieldError(field="body", message="Request body must be a JSON object")])
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        errors = _field_errors(e)
        logger.debug(f"{model.__name__} validation failed with {len(errors)} error(s)")
        raise ValidationError(errors) from None


def validate_submission(payload: Any) -> SubmissionCreate:
    return validate_payload(SubmissionCreate, payload)


def validate_registration(payload: Any) -> RegisterRequest:
    return validate_payload(RegisterRequest, payload)


def validate_login(payload: Any) -> LoginRequest:
    return validate_payload(LoginRequest, payload)


def validate_status_update(payload: Any) -> StatusUpdateRequest:
    return validate_payload(StatusUpdateRequest, payload)

"""
Models package for the Mutual Aid service.

This package contains SQLAlchemy ORM models, shared enums and Pydantic DTOs.
"""

# Ensure all ORM models are registered with the Base metadata when this package is imported.
from . import base
from . import submission_orm
from . import user_orm

from .base import Base
from .enums import REVIEWER_ROLES, ResourceType, SubmissionStatus, UserRole
from .submission_orm import SubmissionORM
from .user_orm import UserORM

from .dtos import (
    BulkIntakeResponse,
    GeocodeResult,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RowFailureDTO,
    StatusUpdateRequest,
    SubmissionCreate,
    SubmissionDTO,
    UserDTO,
)

__all__ = [
    # Base
    "Base",
    # Enums
    "REVIEWER_ROLES",
    "ResourceType",
    "SubmissionStatus",
    "UserRole",
    # ORMs
    "SubmissionORM",
    "UserORM",
    # DTOs
    "BulkIntakeResponse",
    "GeocodeResult",
    "LoginRequest",
    "LoginResponse",
    "RegisterRequest",
    "RowFailureDTO",
    "StatusUpdateRequest",
    "SubmissionCreate",
    "SubmissionDTO",
    "UserDTO",
]

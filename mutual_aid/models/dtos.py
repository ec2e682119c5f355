"""
Pydantic Data Transfer Objects (DTOs) for the Mutual Aid service.

Request models carry the field constraints enforced by the input validator;
response models mirror the ORM rows returned by the API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator
from typing_extensions import Annotated

from .enums import ResourceType, SubmissionStatus, UserRole

ZIP_CODE_PATTERN = r"^[0-9]{5}(-[0-9]{4})?$"
USERNAME_PATTERN = r"^[A-Za-z0-9_-]+$"

Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
ZipCode = Annotated[str, StringConstraints(strip_whitespace=True, pattern=ZIP_CODE_PATTERN)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]
ContactInfo = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]
Username = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
]
NonEmpty = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class SubmissionCreate(BaseModel):
    """A validated resource submission, ready for geocoding and persistence."""
    address: Address
    zip_code: ZipCode
    resource_type: ResourceType
    description: Description
    contact_info: Optional[ContactInfo] = None

    @field_validator("contact_info")
    @classmethod
    def blank_contact_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class StatusUpdateRequest(BaseModel):
    status: SubmissionStatus

    @field_validator("status")
    @classmethod
    def must_be_review_outcome(cls, v: SubmissionStatus) -> SubmissionStatus:
        if v == SubmissionStatus.PENDING:
            raise ValueError("Status must be one of: verified, rejected")
        return v


class LoginRequest(BaseModel):
    username: NonEmpty
    password: Annotated[str, StringConstraints(min_length=1)]


class RegisterRequest(BaseModel):
    username: Username
    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=8)]

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        if not (any(c.islower() for c in v) and any(c.isupper() for c in v) and any(c.isdigit() for c in v)):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v


class GeocodeResult(BaseModel):
    """Coordinates returned by the geocoder. Out-of-range values fail validation."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class SubmissionDTO(BaseModel):
    """
    DTO for submissions returned by the API.

    Mirrors SubmissionORM.
    """
    id: int
    address: str
    zip_code: str
    resource_type: ResourceType
    description: str
    contact_info: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: SubmissionStatus
    submitted_at: datetime
    verified_at: Optional[datetime] = None
    submitted_by: Optional[int] = None

    model_config = {"from_attributes": True}


class UserDTO(BaseModel):
    id: int
    username: str
    email: str
    role: UserRole

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    token: str
    user: UserDTO


class RowFailureDTO(BaseModel):
    index: int
    address: str
    reason: str


class BulkIntakeResponse(BaseModel):
    message: str = "Bulk submissions processed"
    successful: int
    failed: int
    failedSubmissions: List[RowFailureDTO]

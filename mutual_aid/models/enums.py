"""Fixed vocabularies shared by the ORM models, DTOs and validators."""
from enum import Enum


class ResourceType(str, Enum):
    FOOD_BANK = "food_bank"
    CLOTHING = "clothing"
    SHELTER = "shelter"
    MEDICAL = "medical"
    OTHER = "other"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class UserRole(str, Enum):
    CONTRIBUTOR = "contributor"
    COORDINATOR = "coordinator"
    ADMIN = "admin"


# Roles allowed to review submissions.
REVIEWER_ROLES = frozenset({UserRole.COORDINATOR, UserRole.ADMIN})

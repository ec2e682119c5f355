"""
SQLAlchemy ORM model for the 'submissions' table.
"""
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from .base import Base
from .enums import ResourceType, SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionORM(Base):
    """
    SQLAlchemy ORM model representing a resource location submitted for review.

    Attributes:
        id (int): Primary key, auto-incrementing.
        address (str): Free-text street address.
        zip_code (str): Five digit or ZIP+4 postal code.
        resource_type (str): One of the ResourceType values.
        description (str): Free-text description of the resource.
        contact_info (str, optional): How to reach the resource.
        latitude (float, optional): Populated by geocoding.
        longitude (float, optional): Populated by geocoding.
        status (str): pending, verified or rejected.
        submitted_at (datetime): When the submission was received.
        verified_at (datetime, optional): Set only when status becomes verified.
        submitted_by (int, optional): The submitting user, if authenticated.
    """
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(255), nullable=False)
    zip_code = Column(String(10), nullable=False)
    resource_type = Column(String(20), nullable=False)
    description = Column(String(1000), nullable=False)
    contact_info = Column(String(255), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING.value)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    verified_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "resource_type IN (%s)" % ", ".join(f"'{r.value}'" for r in ResourceType),
            name="ck_submissions_resource_type",
        ),
        CheckConstraint(
            "status IN (%s)" % ", ".join(f"'{s.value}'" for s in SubmissionStatus),
            name="ck_submissions_status",
        ),
        Index("idx_submissions_status_submitted_at", "status", "submitted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubmissionORM(id={self.id}, zip_code='{self.zip_code}', "
            f"resource_type='{self.resource_type}', status='{self.status}')>"
        )

"""
Submission Store component for the Mutual Aid service.

Persists and queries submission records. Every statement is built from
SQLAlchemy expressions so values always travel as bound parameters. Storage
failures are translated into the closed error taxonomy in
``mutual_aid.core.errors`` so callers never see driver-specific detail.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mutual_aid.core.errors import (
    DataTooLongError,
    DuplicateViolationError,
    InvalidStatusTransitionError,
    NotFoundError,
    ReferenceViolationError,
    StoreError,
)
from mutual_aid.models import SubmissionORM
from mutual_aid.models.dtos import GeocodeResult, SubmissionCreate
from mutual_aid.models.enums import SubmissionStatus

logger = logging.getLogger(__name__)

# SQLSTATE classes reported by PostgreSQL drivers.
_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"
_STRING_DATA_RIGHT_TRUNCATION = "22001"


def _sqlstate(exc: SQLAlchemyError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def translate_storage_error(exc: SQLAlchemyError) -> StoreError:
    """
    Map a storage exception onto the store error taxonomy.

    SQLSTATE codes are preferred; drivers that do not expose one (SQLite) are
    classified from their message.
    """
    code = _sqlstate(exc)
    message = str(getattr(exc, "orig", exc)).lower()

    if code == _UNIQUE_VIOLATION or "unique constraint" in message or "duplicate" in message:
        return DuplicateViolationError()
    if code == _FOREIGN_KEY_VIOLATION or "foreign key" in message:
        return ReferenceViolationError()
    if code == _STRING_DATA_RIGHT_TRUNCATION or "too long" in message:
        return DataTooLongError()
    return StoreError()


class SubmissionStore:
    """
    Data access for submissions, bound to one request-scoped session.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self, action: str) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Database error during {action}: {e}", exc_info=True)
            await self.session.rollback()
            raise translate_storage_error(e) from None

    async def create(
        self,
        data: SubmissionCreate,
        submitted_by: Optional[int] = None,
        location: Optional[GeocodeResult] = None,
    ) -> int:
        """
        Insert a pending submission.

        Args:
            data: Validated submission fields.
            submitted_by: Id of the authenticated submitter, if any.
            location: Geocoded coordinates, if resolved.

        Returns:
            The new submission id.
        """
        submission = SubmissionORM(
            address=data.address,
            zip_code=data.zip_code,
            resource_type=data.resource_type.value,
            description=data.description,
            contact_info=data.contact_info,
            status=SubmissionStatus.PENDING.value,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            submitted_by=submitted_by,
            submitted_at=datetime.now(timezone.utc),
        )
        self.session.add(submission)
        await self._flush("submission insert")
        logger.info(f"Created submission {submission.id} ({submission.resource_type}, {submission.zip_code})")
        return submission.id

    async def create_many(self, rows: Sequence[SubmissionCreate], submitted_by: Optional[int] = None) -> int:
        """
        Insert many pending submissions in one batched statement.

        Either every row is written or none is.

        Returns:
            Number of rows inserted.
        """
        if not rows:
            return 0
        now = datetime.now(timezone.utc)
        values = [
            {
                "address": row.address,
                "zip_code": row.zip_code,
                "resource_type": row.resource_type.value,
                "description": row.description,
                "contact_info": row.contact_info,
                "status": SubmissionStatus.PENDING.value,
                "submitted_by": submitted_by,
                "submitted_at": now,
            }
            for row in rows
        ]
        try:
            await self.session.execute(insert(SubmissionORM), values)
        except SQLAlchemyError as e:
            logger.error(f"Database error during batched insert of {len(values)} submissions: {e}", exc_info=True)
            await self.session.rollback()
            raise translate_storage_error(e) from None
        logger.info(f"Inserted {len(values)} submissions in one batch")
        return len(values)

    async def get(self, submission_id: int) -> Optional[SubmissionORM]:
        try:
            result = await self.session.execute(
                select(SubmissionORM).where(SubmissionORM.id == submission_id)
            )
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching submission {submission_id}: {e}", exc_info=True)
            raise translate_storage_error(e) from None
        return result.scalars().first()

    async def list_by_status(self, status: SubmissionStatus) -> List[SubmissionORM]:
        """
        Return every submission with the given status.

        Pending submissions come newest first for the review queue; everything
        else is ordered by id so repeated reads are identical.
        """
        query = select(SubmissionORM).where(SubmissionORM.status == SubmissionStatus(status).value)
        if status == SubmissionStatus.PENDING:
            query = query.order_by(SubmissionORM.submitted_at.desc(), SubmissionORM.id.desc())
        else:
            query = query.order_by(SubmissionORM.id.asc())
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error listing {status} submissions: {e}", exc_info=True)
            raise translate_storage_error(e) from None
        return list(result.scalars().all())

    async def update_status(self, submission_id: int, new_status: SubmissionStatus) -> SubmissionORM:
        """
        Move a pending submission to verified or rejected.

        ``verified_at`` is set when the new status is verified and cleared
        otherwise. Status updates are last-write-wins.

        Raises:
            NotFoundError: No submission has this id; nothing is written.
            InvalidStatusTransitionError: The submission is no longer pending.
        """
        new_status = SubmissionStatus(new_status)
        existing = await self.get(submission_id)
        if existing is None:
            raise NotFoundError("Submission not found")

        if existing.status != SubmissionStatus.PENDING.value:
            raise InvalidStatusTransitionError(
                f"Submission is already {existing.status}; only pending submissions can be reviewed"
            )

        verified_at = datetime.now(timezone.utc) if new_status == SubmissionStatus.VERIFIED else None
        try:
            await self.session.execute(
                update(SubmissionORM)
                .where(SubmissionORM.id == submission_id)
                .values(status=new_status.value, verified_at=verified_at)
            )
        except SQLAlchemyError as e:
            logger.error(f"Database error updating submission {submission_id}: {e}", exc_info=True)
            await self.session.rollback()
            raise translate_storage_error(e) from None

        await self.session.refresh(existing)
        logger.info(f"Submission {submission_id} status changed to {new_status.value}")
        return existing

"""
Submission API endpoints.

Public visitors can list verified resources and submit new ones; coordinators
and admins review the pending queue and upload batches.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Path, status

from mutual_aid.api.dependencies import (
    get_bulk_processor,
    get_geocoder,
    get_json_body,
    get_optional_user,
    get_submission_store,
    require_reviewer,
)
from mutual_aid.core.bulk_intake import BulkIntakeProcessor
from mutual_aid.core.errors import FieldError, InvalidAddressError, ValidationError
from mutual_aid.core.security import TokenClaims
from mutual_aid.core.submission_store import SubmissionStore
from mutual_aid.core.validator import validate_status_update, validate_submission
from mutual_aid.integrations.geocoder import GeocodingClient
from mutual_aid.models.dtos import BulkIntakeResponse, RowFailureDTO, SubmissionDTO
from mutual_aid.models.enums import SubmissionStatus

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[SubmissionDTO])
async def list_verified_submissions(
    store: SubmissionStore = Depends(get_submission_store),
) -> List[SubmissionDTO]:
    """Public directory: every verified submission, ordered by id."""
    submissions = await store.list_by_status(SubmissionStatus.VERIFIED)
    return [SubmissionDTO.model_validate(s) for s in submissions]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_submission(
    payload: Any = Depends(get_json_body),
    user: Optional[TokenClaims] = Depends(get_optional_user),
    geocoder: GeocodingClient = Depends(get_geocoder),
    store: SubmissionStore = Depends(get_submission_store),
) -> dict:
    """
    Accept a new resource submission for review.

    The address is geocoded before anything is stored; an address the
    geocoder cannot place is rejected with 400.
    """
    data = validate_submission(payload)

    location = await geocoder.geocode(data.address, data.zip_code)
    if location is None:
        raise InvalidAddressError("Could not geocode address. Please verify the address is correct.")

    submission_id = await store.create(
        data,
        submitted_by=user.user_id if user else None,
        location=location,
    )
    return {"message": "Submission received and pending verification", "id": submission_id}


@router.get("/pending", response_model=List[SubmissionDTO])
async def list_pending_submissions(
    reviewer: TokenClaims = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_submission_store),
) -> List[SubmissionDTO]:
    """Review queue, newest first."""
    submissions = await store.list_by_status(SubmissionStatus.PENDING)
    logger.debug(f"Reviewer {reviewer.user_id} fetched {len(submissions)} pending submissions")
    return [SubmissionDTO.model_validate(s) for s in submissions]


@router.patch("/{submission_id}")
async def update_submission_status(
    submission_id: int = Path(..., ge=1),
    payload: Any = Depends(get_json_body),
    reviewer: TokenClaims = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_submission_store),
) -> dict:
    """Verify or reject a pending submission."""
    update = validate_status_update(payload)
    submission = await store.update_status(submission_id, update.status)
    logger.info(f"Reviewer {reviewer.user_id} set submission {submission_id} to {submission.status}")
    return {"message": "Submission status updated", "status": submission.status}


@router.post("/bulk", status_code=status.HTTP_201_CREATED, response_model=BulkIntakeResponse)
async def bulk_create_submissions(
    payload: Any = Depends(get_json_body),
    reviewer: TokenClaims = Depends(require_reviewer),
    processor: BulkIntakeProcessor = Depends(get_bulk_processor),
) -> BulkIntakeResponse:
    """
    Upload many submissions at once.

    Invalid rows are reported individually and do not block the valid ones.
    """
    if not isinstance(payload, list) or not payload:
        raise ValidationError([FieldError(field="body", message="Request body must be a non-empty array")])

    result = await processor.process(payload, submitted_by=reviewer.user_id)
    return BulkIntakeResponse(
        successful=result.successful,
        failed=result.failed,
        failedSubmissions=[RowFailureDTO(**failure.to_dict()) for failure in result.failed_submissions],
    )

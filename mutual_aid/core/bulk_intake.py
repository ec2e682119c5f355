"""
Bulk Intake Processor component for the Mutual Aid service.

Validates each row of a batch on its own, so one bad row never aborts the
batch, then writes every valid row with a single batched insert. Validation is
per row but persistence is all-or-nothing: if the batched insert fails, the
valid rows are not saved either and the caller gets a StoreError.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from mutual_aid.core.errors import NoValidRowsError, StoreError, ValidationError
from mutual_aid.core.submission_store import SubmissionStore
from mutual_aid.core.validator import validate_submission
from mutual_aid.models.dtos import SubmissionCreate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowFailure:
    index: int
    address: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "address": self.address, "reason": self.reason}


@dataclass
class BulkIntakeResult:
    successful: int
    failed: int
    failed_submissions: List[RowFailure] = field(default_factory=list)


def _row_address(row: Any) -> str:
    if isinstance(row, dict) and isinstance(row.get("address"), str) and row["address"].strip():
        return row["address"].strip()
    return "N/A"


class BulkIntakeProcessor:
    """
    Handles batch submission intake with per-row error isolation.
    """

    def __init__(self, store: SubmissionStore):
        self.store = store

    def partition(self, rows: Sequence[Any]) -> Tuple[List[SubmissionCreate], List[RowFailure]]:
        """
        Split rows into validated submissions and tagged failures, keeping order.
        """
        succeeded: List[SubmissionCreate] = []
        failed: List[RowFailure] = []
        for index, row in enumerate(rows):
            try:
                succeeded.append(validate_submission(row))
            except ValidationError as e:
                failed.append(RowFailure(index=index, address=_row_address(row), reason=e.summary()))
        return succeeded, failed

    async def process(self, rows: Sequence[Any], submitted_by: Optional[int] = None) -> BulkIntakeResult:
        """
        Validate and persist a batch of raw submission rows.

        Args:
            rows: Raw row payloads in upload order.
            submitted_by: Id of the coordinator performing the upload.

        Returns:
            BulkIntakeResult with counts and the failure list.

        Raises:
            NoValidRowsError: No row passed validation; carries the failures.
            StoreError: The batched insert failed; nothing was saved.
        """
        logger.info(f"Processing bulk intake of {len(rows)} rows")
        succeeded, failed = self.partition(rows)

        if not succeeded:
            logger.warning(f"Bulk intake rejected: all {len(failed)} rows failed validation")
            raise NoValidRowsError(failed)

        try:
            await self.store.create_many(succeeded, submitted_by=submitted_by)
        except StoreError as e:
            logger.error(
                f"Batched insert of {len(succeeded)} validated rows failed ({e.message}); no rows were saved"
            )
            raise StoreError("Failed to save successful submissions to database") from None

        logger.info(f"Bulk intake complete: {len(succeeded)} saved, {len(failed)} failed")
        return BulkIntakeResult(successful=len(succeeded), failed=len(failed), failed_submissions=failed)

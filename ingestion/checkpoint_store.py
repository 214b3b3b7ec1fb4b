"""
Checkpoint persistence for pagination runs.

One row per source keeps the serialized resume state of the pagination
iterator together with run statistics. A run that fails keeps the last saved
state, so the next run resumes there. A run that completes clears the state,
so the next run starts from the first page.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import CheckpointError
from ingestion.pagination.state import PaginationIteratorState, state_from_json, state_to_json
from models.base import CheckpointStatus
from models.checkpoint import PaginationCheckpoint
import logging

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


class CheckpointStore:
    """
    Read and write pagination checkpoints.

    Every write commits immediately. Database errors are rolled back and
    raised as CheckpointError.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def get(self, source_name: str) -> Optional[PaginationCheckpoint]:
        """Retrieve the checkpoint row for a source"""
        try:
            result = self.db.execute(
                select(PaginationCheckpoint).where(PaginationCheckpoint.source_name == source_name)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise CheckpointError(
                f"Failed to read checkpoint for {source_name}",
                context={"source_name": source_name, "operation": "read"},
                original_exception=e
            )

    def load(self, source_name: str) -> Optional[PaginationIteratorState]:
        """Resume state of the last unfinished run, None to start from the first page"""
        checkpoint = self.get(source_name)
        if checkpoint is None or not checkpoint.state_json:
            return None

        state = state_from_json(checkpoint.state_json)
        logger.info(f"Loaded checkpoint for {source_name}: {state}")
        return state

    def start_run(self, source_name: str, pagination_type: str) -> PaginationCheckpoint:
        """Create the row on first use and mark a new run as running"""
        checkpoint = self.get(source_name)

        if checkpoint is None:
            checkpoint = PaginationCheckpoint(
                source_name=source_name,
                pagination_type=pagination_type,
                total_runs=0,
                total_records_processed=0,
            )
            self.db.add(checkpoint)

        checkpoint.pagination_type = pagination_type
        checkpoint.status = CheckpointStatus.RUNNING
        checkpoint.last_run_at = _utcnow()
        checkpoint.total_runs = (checkpoint.total_runs or 0) + 1
        checkpoint.last_records_processed = 0
        checkpoint.pages_processed = 0
        checkpoint.error_message = None

        self._commit(source_name)
        return checkpoint

    def save(
        self,
        source_name: str,
        state: Optional[PaginationIteratorState],
        records_processed: int = 0,
        pages_processed: int = 0
    ) -> PaginationCheckpoint:
        """
        Store the resume state of a running source.

        Args:
            records_processed: Records handled since the previous save
            pages_processed: Pages fetched so far in this run
        """
        checkpoint = self._require(source_name)
        checkpoint.state_json = state_to_json(state) if state is not None else None
        checkpoint.total_records_processed = (checkpoint.total_records_processed or 0) + records_processed
        checkpoint.last_records_processed = (checkpoint.last_records_processed or 0) + records_processed
        checkpoint.pages_processed = pages_processed

        self._commit(source_name)
        return checkpoint

    def mark_success(self, source_name: str, partial: bool = False) -> PaginationCheckpoint:
        """Finish a run. The state is cleared so the next run starts over."""
        checkpoint = self._require(source_name)
        checkpoint.state_json = None
        checkpoint.status = CheckpointStatus.PARTIAL if partial else CheckpointStatus.SUCCESS
        checkpoint.last_success_at = _utcnow()

        self._commit(source_name)
        return checkpoint

    def mark_failed(self, source_name: str, error_message: str) -> PaginationCheckpoint:
        """Finish a run with an error, keeping the last saved state"""
        checkpoint = self._require(source_name)
        checkpoint.status = CheckpointStatus.FAILED
        checkpoint.last_failure_at = _utcnow()
        checkpoint.error_message = error_message

        self._commit(source_name)
        return checkpoint

    def clear(self, source_name: str):
        """Forget a source, the next run starts from the first page"""
        checkpoint = self.get(source_name)
        if checkpoint is None:
            return
        self.db.delete(checkpoint)
        self._commit(source_name)
        logger.info(f"Cleared checkpoint for {source_name}")

    def _require(self, source_name: str) -> PaginationCheckpoint:
        checkpoint = self.get(source_name)
        if checkpoint is None:
            raise CheckpointError(
                f"No checkpoint for {source_name}, start_run() was not called",
                context={"source_name": source_name, "operation": "write"}
            )
        return checkpoint

    def _commit(self, source_name: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CheckpointError(
                f"Failed to write checkpoint for {source_name}",
                context={"source_name": source_name, "operation": "write"},
                original_exception=e
            )

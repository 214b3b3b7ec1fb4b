from sqlalchemy import Column, Integer, String, Enum, DateTime, Text, Index, BigInteger
from datetime import datetime, timezone
from models.base import Base, CheckpointStatus


def _utcnow():
    return datetime.now(timezone.utc)


class PaginationCheckpoint(Base):
    """
    Tracks pagination resume state per source.

    Purpose:
    - Resume a stopped run from the last consumed page
    - Avoid refetching pages that were already processed
    - Track run statistics per source

    Design:
    - One row per source
    - state_json stores the serialized pagination iterator state
      (page url for url driven pagination, index for index pagination)
    """
    __tablename__ = "pagination_checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Source identification
    source_name = Column(String(100), nullable=False)
    pagination_type = Column(String(50), nullable=False)

    # Checkpoint data
    state_json = Column(Text, nullable=True)

    # Statistics
    last_run_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_success_at = Column(DateTime(timezone=True), nullable=True)
    last_failure_at = Column(DateTime(timezone=True), nullable=True)

    total_runs = Column(Integer, default=0)
    total_records_processed = Column(BigInteger, default=0)
    last_records_processed = Column(Integer, default=0)
    pages_processed = Column(Integer, default=0)

    # Status
    status = Column(Enum(CheckpointStatus), default=CheckpointStatus.PENDING, nullable=False)
    error_message = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # Constraints
    __table_args__ = (
        Index("idx_checkpoint_source", "source_name", unique=True),
    )

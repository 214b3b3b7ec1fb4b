"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (PageFormat, PaginationType, ...)
    checkpoint: Pagination checkpoints for resume-on-failure

Usage:
    from models.checkpoint import PaginationCheckpoint
    from models.base import CheckpointStatus, PaginationType
"""

__all__ = [
    "base",
    "checkpoint",
]

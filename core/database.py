"""
Database session management for checkpoint storage with SQLAlchemy
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Create engine
engine = create_engine(
    settings.CHECKPOINT_DATABASE_URL,
    echo=False,
    future=True
)

# Create session factory
session_maker = sessionmaker(
    engine,
    class_=Session,
    expire_on_commit=False,
    autoflush=False
)


def init_db():
    """Create checkpoint tables if they don't exist"""
    from models.base import Base
    import models.checkpoint  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Checkpoint tables ready")

"""
Pytest configuration and fixtures
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from models.base import Base
from models.checkpoint import PaginationCheckpoint  # noqa: F401 (registers the table)
from ingestion.retry import RetryScheduler
from schemas.record_schema import RecordSchema
from schemas.source_config import HttpSourceConfig
from tests.helpers import BASE_URL, USER_SCHEMA, FakeClock, FakeTransport


@pytest.fixture
def user_schema():
    """Output schema with two required and two nullable fields"""
    return RecordSchema.from_json(USER_SCHEMA)


@pytest.fixture
def make_config():
    """Factory for source configurations, json pages of users by default"""
    def _make_config(**overrides):
        properties = {"url": BASE_URL, "schema": USER_SCHEMA}
        properties.update(overrides)
        return HttpSourceConfig(**properties)
    return _make_config


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def scheduler(fake_clock):
    """Retry scheduler that never really waits"""
    return RetryScheduler(sleep=fake_clock.sleep, clock=fake_clock.clock)


@pytest.fixture(scope="function")
def db_session():
    """In-memory SQLite session with all tables created"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    with session_factory() as session:
        yield session
        session.rollback()

    Base.metadata.drop_all(engine)
    engine.dispose()

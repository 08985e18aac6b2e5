"""
Pytest fixtures for the attendance DTR test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- In-memory SQLite sessions for ORM/repository tests
- In-memory collaborators (fakes live in tests/factories.py)
"""

import json
import logging
from collections.abc import Generator
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from attendance_kernel.db.base import Base
from attendance_kernel.db.engine import (
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from attendance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from attendance_modules.dtr.config import DtrConfig
from attendance_modules.dtr.repository import StaticAssignmentSource
from attendance_modules.dtr.schedule_resolver import ScheduleResolver
from attendance_modules.dtr.service import DtrCalculationService
from tests.factories import InMemoryDtrStore, InMemoryPunchSource


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture attendance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, dtr_service):
            dtr_service.calculate_for_date(...)
            logs = captured_logs()
            assert any(r["message"] == "dtr_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("attendance_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all DTR tables."""
    import attendance_modules.dtr.orm  # noqa: F401  registers DTR tables

    init_engine_from_url("sqlite:///:memory:")
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# Collaborator fixtures
# =============================================================================


@pytest.fixture
def employee_id() -> UUID:
    return uuid4()


@pytest.fixture
def punch_source() -> InMemoryPunchSource:
    return InMemoryPunchSource()


@pytest.fixture
def assignment_source() -> StaticAssignmentSource:
    return StaticAssignmentSource()


@pytest.fixture
def dtr_store() -> InMemoryDtrStore:
    return InMemoryDtrStore()


@pytest.fixture
def dtr_config() -> DtrConfig:
    return DtrConfig.with_defaults()


@pytest.fixture
def resolver(assignment_source, dtr_config) -> ScheduleResolver:
    return ScheduleResolver(assignment_source, dtr_config)


@pytest.fixture
def dtr_service(resolver, punch_source, dtr_store, dtr_config) -> DtrCalculationService:
    return DtrCalculationService(
        resolver=resolver,
        punch_source=punch_source,
        store=dtr_store,
        config=dtr_config,
    )

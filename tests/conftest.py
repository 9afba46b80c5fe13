"""Pytest configuration to ensure the `src` package layout is importable.

This adds the `src/` directory to `sys.path` so tests can import the
`conquest` package without requiring an editable install in CI, and provides
the in-memory database and caller fixtures shared by the service tests.
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from conquest.domain.context import CallerContext  # noqa: E402
from conquest.domain.enums import CallerRole  # noqa: E402
from conquest.models import Base  # noqa: E402

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create a new database session for testing."""
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def admin(now):
    return CallerContext(caller_id="admin-1", role=CallerRole.ADMIN, now=now)


@pytest.fixture
def professional(now):
    """Factory for professionals acting for themselves at ``now``."""

    def make(professional_id: str) -> CallerContext:
        return CallerContext(caller_id=professional_id, now=now)

    return make

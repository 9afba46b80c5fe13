"""Fixtures for tests that need a real, file-backed database."""

import pytest
from sqlalchemy.orm import sessionmaker

from conquest.config import Settings
from conquest.database import create_db_engine, init_db


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite engine so several sessions can race on one database."""
    engine = create_db_engine(Settings(database_url=f"sqlite:///{tmp_path / 'conquest.db'}"))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(bind=file_engine, expire_on_commit=False)

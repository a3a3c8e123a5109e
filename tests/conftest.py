# tests/conftest.py

import pytest

from tracker.config import TrackerConfig
from tracker.database import create_all_tables, make_engine
from tracker.record_store import SqlRecordStore


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database file per test."""
    db_engine = make_engine(f"sqlite:///{tmp_path / 'tracker_test.db'}")
    create_all_tables(bind=db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def store(engine):
    return SqlRecordStore(engine)


@pytest.fixture
def config():
    return TrackerConfig(roster=("Alice", "Bob", "Carol"), session_gap_hours=6)

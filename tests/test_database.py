"""
Tests for database.py - SQLite snapshot store.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from dispatchboard.database import SnapshotEntry, get_session, init_database


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, tmp_path):
        engine = init_database(tmp_path / "test.db")

        session = get_session(engine)
        assert session.query(SnapshotEntry).count() == 0
        session.close()

    def test_init_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "test.db"

        init_database(db_path)

        assert db_path.exists()


class TestSnapshotEntry:
    """Test the key-value entries."""

    @pytest.fixture
    def db_session(self, tmp_path):
        engine = init_database(tmp_path / "test.db")
        session = get_session(engine)
        yield session
        session.close()

    def test_insert_sets_updated_at(self, db_session):
        db_session.add(SnapshotEntry(key="jobs", value="[]"))
        db_session.commit()

        entry = db_session.get(SnapshotEntry, "jobs")
        assert entry.value == "[]"
        assert entry.updated_at is not None

    def test_duplicate_key_rejected(self, db_session):
        db_session.add(SnapshotEntry(key="jobs", value="[]"))
        db_session.commit()

        db_session.add(SnapshotEntry(key="jobs", value="[1]"))
        with pytest.raises(IntegrityError):
            db_session.commit()

"""Tests for DatabaseManager: lifecycle, pooling and the transaction scope."""

from pathlib import Path

import pytest
from sqlalchemy import inspect
from sqlmodel import select

from publishdb.database import DatabaseManager
from publishdb.interfaces import IDatabaseManager
from publishdb.metrics import sample_value
from publishdb.models import AccountRow, TagRow


class TestLifecycle:
    def test_initialize_creates_file_and_tables(self, tmp_path):
        db_path = tmp_path / "nested" / "publish.db"
        db = DatabaseManager(database_path=db_path)
        db.initialize()
        try:
            assert db_path.exists()
            tables = set(inspect(db.engine).get_table_names())
            assert {"accountrow", "profilerow", "contentrow", "tagrow", "contenttaglink"} <= tables
        finally:
            db.close()

    def test_initialize_is_idempotent(self, db):
        engine = db.engine
        db.initialize()
        assert db.engine is engine

    def test_close(self, temp_db_path):
        db = DatabaseManager(database_path=temp_db_path)
        db.initialize()
        db.close()
        assert not db.is_initialized
        with pytest.raises(RuntimeError, match="not initialized"):
            db.new_session()

    def test_wal_mode_on_file_databases(self, db):
        with db.engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA journal_mode").scalar() == "wal"

    def test_memory_database_shared_across_sessions(self, memory_db):
        assert memory_db.is_memory
        with memory_db.session_scope() as session:
            session.add(TagRow(name="shared"))
        with memory_db.session_scope() as session:
            assert session.exec(select(TagRow)).one().name == "shared"

    def test_url_takes_precedence_over_path(self):
        db = DatabaseManager(database_url="sqlite://", database_path=Path("/nope.db"))
        assert db.database_url == "sqlite://"

    def test_reset_drops_rows(self, db):
        with db.session_scope() as session:
            session.add(TagRow(name="gone"))
        db.reset()
        with db.session_scope() as session:
            assert session.exec(select(TagRow)).all() == []

    def test_satisfies_protocol(self, db):
        assert isinstance(db, IDatabaseManager)


class TestSessionScope:
    def test_commits_on_success(self, db):
        with db.session_scope() as session:
            session.add(AccountRow(first_name="A", last_name="B", email="a@example.com"))
        with db.session_scope() as session:
            assert len(session.exec(select(AccountRow)).all()) == 1

    def test_rolls_back_on_error(self, db):
        before = sample_value("transactions_total", {"label": "doomed", "outcome": "rolled_back"})
        with pytest.raises(RuntimeError):
            with db.session_scope("doomed") as session:
                session.add(AccountRow(first_name="A", last_name="B", email="a@example.com"))
                session.flush()
                raise RuntimeError("abort")

        with db.session_scope() as session:
            assert session.exec(select(AccountRow)).all() == []
        assert (
            sample_value("transactions_total", {"label": "doomed", "outcome": "rolled_back"})
            == before + 1
        )

    def test_rolls_back_on_cancellation(self, db):
        with pytest.raises(KeyboardInterrupt):
            with db.session_scope() as session:
                session.add(TagRow(name="cancelled"))
                session.flush()
                raise KeyboardInterrupt
        with db.session_scope() as session:
            assert session.exec(select(TagRow)).all() == []

    def test_objects_usable_after_commit(self, db):
        with db.session_scope() as session:
            tag = TagRow(name="kept")
            session.add(tag)
        assert tag.name == "kept"
        assert tag.id is not None

    def test_connections_returned_to_pool(self, db):
        before = sample_value("active_database_connections")
        with db.session_scope() as session:
            session.exec(select(TagRow)).all()
        assert sample_value("active_database_connections") == before

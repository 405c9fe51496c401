"""Tests for db.py module."""

import pytest
from sqlalchemy import inspect

from localbuild.builds.models import BuildRecord
from localbuild.db import create_all_tables, get_engine, get_session, get_session_factory


class TestGetEngine:
    """Tests for get_engine."""

    def test_creates_parent_directory(self, tmp_path):
        """A file database gets its directory created."""
        db_path = tmp_path / "nested" / "dir" / "history.db"
        get_engine(f"sqlite:///{db_path}")
        assert db_path.parent.is_dir()

    def test_create_all_tables(self, tmp_path):
        """The build history table is created."""
        engine = get_engine(f"sqlite:///{tmp_path}/history.db")
        create_all_tables(engine)
        assert "build_records" in inspect(engine).get_table_names()


class TestGetSession:
    """Tests for get_session."""

    @pytest.fixture
    def factory(self, tmp_path):
        """Session factory over a fresh database."""
        engine = get_engine(f"sqlite:///{tmp_path}/history.db")
        create_all_tables(engine)
        return get_session_factory(engine)

    def test_commits(self, factory):
        """Work done in the scope is committed."""
        with get_session(factory) as session:
            session.add(BuildRecord(image_name="app", tag="app:v1"))

        with factory() as session:
            assert session.query(BuildRecord).count() == 1

    def test_rolls_back(self, factory):
        """An error discards the work and propagates."""
        with pytest.raises(RuntimeError):
            with get_session(factory) as session:
                session.add(BuildRecord(image_name="app", tag="app:v1"))
                session.flush()
                raise RuntimeError("boom")

        with factory() as session:
            assert session.query(BuildRecord).count() == 0

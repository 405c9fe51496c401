"""Build history database helpers.

SQLAlchemy engine and session plumbing for the build history. The history
is optional: builds never depend on it, the CLI opens it only when
recording is enabled.
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from localbuild.config import get_settings

SQLITE_PREFIX = "sqlite:///"


class Base(DeclarativeBase):
    """Declarative base of the build history models."""


def _ensure_sqlite_dir(db_url: str) -> None:
    path = db_url.removeprefix(SQLITE_PREFIX)
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def get_engine(db_url: str | None = None) -> Any:
    """Create a SQLAlchemy engine for the build history.

    Args:
        db_url: Database URL; defaults to ``Settings.db_url``.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = db_url or get_settings().db_url
    connect_args: dict[str, Any] = {}
    if url.startswith(SQLITE_PREFIX):
        connect_args["check_same_thread"] = False
        _ensure_sqlite_dir(url)
    return create_engine(url, connect_args=connect_args)


def get_session_factory(engine: Any | None = None) -> sessionmaker[Session]:
    """Return a session factory bound to engine (or a settings engine)."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def get_session(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """Open a session that commits on success and rolls back on error.

    Args:
        session_factory: Factory to open the session with.

    Yields:
        SQLAlchemy Session instance.
    """
    factory = session_factory if session_factory is not None else get_session_factory()
    with factory() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


def create_all_tables(engine: Any | None = None) -> None:
    """Create the build history tables if they do not exist."""
    from localbuild.builds import models  # noqa: F401

    Base.metadata.create_all(bind=engine if engine is not None else get_engine())


__all__ = [
    "Base",
    "create_all_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
]

"""Database engine and session management for LocalRecall."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Generator, List

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dotenv import load_dotenv

# Load environment from .env if available so database configuration is discoverable.
load_dotenv()

LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base declarative class used by all ORM models."""


def _build_sqlite_url() -> str:
    """Construct the default SQLite connection string."""
    sqlite_path_env = os.getenv("LOCALRECALL_SQLITE_PATH", "data/localrecall.db")
    if sqlite_path_env == ":memory:":
        return "sqlite:///:memory:"

    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    sqlite_path = os.path.expanduser(sqlite_path_env)
    if not os.path.isabs(sqlite_path):
        sqlite_path = os.path.normpath(os.path.join(project_root, sqlite_path))

    directory = os.path.dirname(sqlite_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return f"sqlite:///{sqlite_path}"


def _build_database_url() -> str:
    """Construct a SQLite connection string from environment variables."""
    url = os.getenv("LOCALRECALL_DB_URL", "").strip()
    if url.startswith("sqlite://"):
        return url
    return _build_sqlite_url()


DATABASE_URL = _build_database_url()
engine_kwargs: Dict[str, Any] = {
    "future": True,
    "pool_pre_ping": True,
}

if DATABASE_URL.startswith("sqlite"):
    # SQLite requires disabling same-thread checks for multi-threaded FastAPI workers.
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if ":memory:" in DATABASE_URL:
        # Every connection must see the same in-memory database.
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(
    DATABASE_URL,
    **engine_kwargs,
)
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
    future=True,
)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database() -> None:
    """Ensure all ORM tables are created in the configured database."""
    # Import models within the function to avoid circular imports.
    from . import db_models  # noqa: F401  # pylint: disable=unused-import

    if DATABASE_URL.startswith("sqlite") and ":memory:" not in DATABASE_URL:
        with engine.begin() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA synchronous=NORMAL"))

    Base.metadata.create_all(bind=engine)
    ensure_summary_columns(engine)


# Columns added to knowledge_cards after the first release, with their SQLite DDL.
_SUMMARY_COLUMNS = {
    "detailed_summary": "TEXT",
    "key_points": "JSON NOT NULL DEFAULT '[]'",
    "last_summary_generation": "DATETIME",
}


def ensure_summary_columns(bind: Engine) -> List[str]:
    """Add summary columns missing from a knowledge_cards table created by an older release.

    Returns the names of the columns that were added.
    """
    inspector = inspect(bind)
    if not inspector.has_table("knowledge_cards"):
        return []
    existing = {column["name"] for column in inspector.get_columns("knowledge_cards")}
    added: List[str] = []
    with bind.begin() as conn:
        for name, ddl in _SUMMARY_COLUMNS.items():
            if name not in existing:
                conn.execute(text(f"ALTER TABLE knowledge_cards ADD COLUMN {name} {ddl}"))
                added.append(name)
    if added:
        LOGGER.info("Added knowledge_cards columns: %s", ", ".join(added))
    return added

"""SQLAlchemy engine and the transactional Store."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from dzzenos_api.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


def _sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create a sync engine; SQLite files get foreign keys and a write-ahead log."""
    url = make_url(database_url)
    kwargs: dict = {"echo": echo, "pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database and url.database != ":memory:":
            parent = os.path.dirname(os.path.abspath(url.database))
            os.makedirs(parent, exist_ok=True)

    engine = create_engine(url, **kwargs)
    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _sqlite_pragmas)
    return engine


class Store:
    """Single source of truth for structured rows.

    ``read()`` hands out a session for queries. ``transaction()`` wraps a unit
    of work in BEGIN/COMMIT (ROLLBACK on error) and holds the process-wide
    writer lock, so no two write transactions ever interleave even when
    callers run on different threads.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._write_lock = threading.RLock()

    @classmethod
    def from_url(cls, database_url: str) -> "Store":
        return cls(make_engine(database_url))

    @contextmanager
    def read(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with self._write_lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def create_all(self) -> None:
        from dzzenos_api.db import models  # noqa: F401  (registers tables)

        Base.metadata.create_all(bind=self.engine)

    def verify_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.error("Database connection failed", data={"error": str(exc)})
            return False

    def seed_if_empty(self) -> None:
        """Create a default workspace and board on a fresh database."""
        from dzzenos_api.db.models import Board, Workspace

        with self.transaction() as session:
            if session.query(Workspace.id).first() is not None:
                return
            workspace = Workspace(name="Default")
            session.add(workspace)
            session.flush()
            session.add(Board(workspace_id=workspace.id, name="Main", position=0))
        logger.info("Seeded default workspace and board")

    def dispose(self) -> None:
        self.engine.dispose()

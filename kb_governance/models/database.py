"""Session management helpers shared by services, CLI and schedulers."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy.exc import OperationalError

from kb_governance.models import (
    create_database_engine,
    create_tables,
    get_session,
)

logger = logging.getLogger(__name__)

_LOCK_RETRY_ATTEMPTS = 5
_LOCK_RETRY_BACKOFF = 0.2


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite:///"):
        return
    path = database_url[len("sqlite:///") :]
    if not path or path == ":memory:":
        return
    directory = Path(path).parent
    if str(directory) and not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)


def _commit_with_retry(session, attempts: int = _LOCK_RETRY_ATTEMPTS) -> None:
    """Commit, retrying briefly when SQLite reports a locked database."""
    for attempt in range(1, attempts + 1):
        try:
            session.commit()
            return
        except OperationalError as exc:
            if "locked" not in str(exc).lower() or attempt == attempts:
                session.rollback()
                raise
            logger.warning(
                "Database locked on commit (attempt %d/%d); retrying",
                attempt,
                attempts,
            )
            time.sleep(_LOCK_RETRY_BACKOFF * attempt)


class DatabaseManager:
    """Own an engine and a session for the lifetime of a unit of work.

    Usage::

        with DatabaseManager() as db:
            db.session.query(Article).count()

    Tables are created on construction so a fresh SQLite file is usable
    immediately.
    """

    def __init__(self, database_url: str | None = None):
        if database_url is None:
            from kb_governance import config

            database_url = os.getenv("DATABASE_URL") or config.DATABASE_URL
        self.database_url = database_url
        _ensure_sqlite_directory(database_url)
        self.engine = create_database_engine(database_url)
        create_tables(self.engine)
        self.session = get_session(self.engine)

    def __enter__(self) -> DatabaseManager:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.session.rollback()
        self.close()

    @contextmanager
    def get_session(self):
        """Yield the managed session inside a commit/rollback boundary."""
        try:
            yield self.session
            _commit_with_retry(self.session)
        except Exception:
            self.session.rollback()
            raise

    def commit(self) -> None:
        _commit_with_retry(self.session)

    def close(self) -> None:
        try:
            self.session.close()
        finally:
            self.engine.dispose()

"""Pytest-wide fixtures for kb-governance tests."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta

import pytest

# Point every DatabaseManager() at a throwaway SQLite file.
# Set BEFORE any imports of kb_governance.config.
if "DATABASE_URL" not in os.environ:
    test_db_path = os.path.join(tempfile.gettempdir(), "test_kb_governance.db")
    os.environ["DATABASE_URL"] = f"sqlite:///{test_db_path}"
# Never talk to the real helpdesk from tests.
os.environ.pop("MOVIDESK_TOKEN", None)

from kb_governance.models import Article  # noqa: E402
from kb_governance.models.database import DatabaseManager  # noqa: E402

FIXED_NOW = datetime(2025, 3, 10, 12, 0, 0)


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    """A DatabaseManager over a fresh SQLite file."""
    manager = DatabaseManager(database_url=f"sqlite:///{tmp_path / 'kb.db'}")
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def make_article(db):
    """Insert an Article row and return it."""

    counter = {"next_id": 1000}

    def _make(article_id: int | None = None, **fields) -> Article:
        if article_id is None:
            counter["next_id"] += 1
            article_id = counter["next_id"]
        fields.setdefault("title", f"Manual {article_id}")
        article = Article(id=article_id, **fields)
        with db.get_session() as session:
            session.add(article)
        return article

    return _make


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_database():
    """Remove the shared SQLite file once the session finishes."""
    yield
    url = os.environ.get("DATABASE_URL", "")
    if url.startswith("sqlite:///"):
        path = url[len("sqlite:///") :]
        if path and os.path.exists(path) and "test_kb_governance" in path:
            try:
                os.remove(path)
            except OSError:
                pass

"""DatabaseManager and schema coverage tests."""

import contextlib
import os
import tempfile
from datetime import datetime

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, OperationalError

from kb_governance.models import Article, GovernanceIssue
from kb_governance.models import database as database_module
from kb_governance.models.database import DatabaseManager, _commit_with_retry


@contextlib.contextmanager
def temporary_database():
    """Yield a temporary SQLite database URL and remove it afterwards."""

    fd, path = tempfile.mkstemp(prefix="test_db_manager_", suffix=".db")
    os.close(fd)
    db_url = f"sqlite:///{path}"
    try:
        yield db_url, path
    finally:
        if os.path.exists(path):
            os.remove(path)


def test_manager_creates_schema():
    with temporary_database() as (db_url, _path):
        with DatabaseManager(database_url=db_url) as db:
            tables = set(inspect(db.engine).get_table_names())

    assert {
        "kb_articles",
        "kb_governance_issues",
        "kb_governance_issue_history",
        "kb_article_ai_audit",
        "kb_sync_runs",
        "kb_sync_config",
        "kb_menu_map",
        "support_tickets",
        "support_ticket_messages",
        "faq_clusters",
        "faq_cluster_tickets",
        "recurrence_rules",
        "detected_needs",
        "job_runs",
    } <= tables


def test_manager_creates_missing_sqlite_directory(tmp_path):
    url = f"sqlite:///{tmp_path / 'nested' / 'dir' / 'kb.db'}"
    with DatabaseManager(database_url=url) as db:
        assert db.database_url == url
    assert (tmp_path / "nested" / "dir" / "kb.db").exists()


def test_get_session_commits_and_rolls_back(db):
    with db.get_session() as session:
        session.add(Article(id=1, title="ok"))

    with pytest.raises(RuntimeError):
        with db.get_session() as session:
            session.add(Article(id=2, title="perdido"))
            session.flush()
            raise RuntimeError("boom")

    assert [a.id for a in db.session.query(Article).order_by(Article.id)] == [1]


def test_live_slot_unique_index(db):
    now = datetime(2025, 1, 1)
    with db.get_session() as session:
        session.add(Article(id=1))
        session.add(
            GovernanceIssue(
                article_id=1,
                issue_type="OUTDATED_CONTENT",
                severity="WARN",
                status="RESOLVED",
                created_at=now,
                updated_at=now,
            )
        )
        session.add(
            GovernanceIssue(
                article_id=1,
                issue_type="OUTDATED_CONTENT",
                severity="WARN",
                status="OPEN",
                created_at=now,
                updated_at=now,
            )
        )

    with pytest.raises(IntegrityError):
        with db.get_session() as session:
            session.add(
                GovernanceIssue(
                    article_id=1,
                    issue_type="OUTDATED_CONTENT",
                    severity="INFO",
                    status="ASSIGNED",
                    created_at=now,
                    updated_at=now,
                )
            )


def test_commit_with_retry_retries_locked(monkeypatch):
    monkeypatch.setattr(database_module.time, "sleep", lambda _s: None)
    calls = {"commit": 0, "rollback": 0}

    class FlakySession:
        def commit(self):
            calls["commit"] += 1
            if calls["commit"] < 3:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))

        def rollback(self):
            calls["rollback"] += 1

    _commit_with_retry(FlakySession())

    assert calls == {"commit": 3, "rollback": 0}


def test_commit_with_retry_raises_other_errors():
    class BrokenSession:
        rolled_back = False

        def commit(self):
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        def rollback(self):
            BrokenSession.rolled_back = True

    with pytest.raises(OperationalError):
        _commit_with_retry(BrokenSession())
    assert BrokenSession.rolled_back is True


def test_manager_reads_database_url_from_env(monkeypatch, tmp_path):
    url = f"sqlite:///{tmp_path / 'env.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    with DatabaseManager() as db:
        assert db.database_url == url

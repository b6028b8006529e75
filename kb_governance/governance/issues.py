"""Issue store enforcing one live issue per (article, issue type).

Detectors call :meth:`IssueStore.open` on every pass. Re-opening a slot that
already holds a live issue refreshes severity, message and evidence in place
and writes no history; only a brand new issue gets an ``OPENED`` entry and an
SLA deadline.

The lookup-then-insert runs under a process-wide lock inside a single
transaction. Across processes the partial unique index on the live slot is
the backstop: an ``IntegrityError`` on insert is retried as an update.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from kb_governance.errors import NotFoundError
from kb_governance.governance import history, sla
from kb_governance.models import (
    LIVE_STATUSES,
    GovernanceIssue,
    HistoryAction,
    IssueStatus,
    IssueType,
    Severity,
)
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 400

# Serialises check-then-create on live slots within this process.
ISSUE_SLOT_LOCK = threading.RLock()

_LIVE_VALUES = tuple(status.value for status in LIVE_STATUSES)


def _truncate(message: str | None, limit: int = MAX_MESSAGE_CHARS) -> str | None:
    if message is None:
        return None
    return message if len(message) <= limit else message[:limit]


def find_live_issue(session, article_id: int, issue_type: IssueType) -> GovernanceIssue | None:
    stmt = (
        select(GovernanceIssue)
        .where(
            GovernanceIssue.article_id == article_id,
            GovernanceIssue.issue_type == IssueType(issue_type).value,
            GovernanceIssue.status.in_(_LIVE_VALUES),
        )
        .order_by(GovernanceIssue.created_at.desc(), GovernanceIssue.id.desc())
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


class IssueStore:
    """Open, look up and resolve governance issues."""

    def __init__(self, db, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    def open(
        self,
        article_id: int,
        issue_type: IssueType,
        severity: Severity,
        message: str | None,
        evidence: dict | None = None,
    ) -> GovernanceIssue:
        issue_type = IssueType(issue_type)
        severity = Severity(severity)
        with ISSUE_SLOT_LOCK:
            try:
                return self._open_locked(article_id, issue_type, severity, message, evidence)
            except IntegrityError:
                # Another process filled the slot between our read and insert.
                logger.info(
                    "Live slot race for article=%s type=%s; refreshing existing issue",
                    article_id,
                    issue_type.value,
                )
                return self._open_locked(article_id, issue_type, severity, message, evidence)

    def _open_locked(self, article_id, issue_type, severity, message, evidence):
        now = self.clock()
        with self.db.get_session() as session:
            existing = find_live_issue(session, article_id, issue_type)
            if existing is not None:
                existing.severity = severity.value
                existing.message = _truncate(message)
                existing.evidence = evidence
                existing.updated_at = now
                logger.debug(
                    "Refreshed live issue %s (article=%s type=%s)",
                    existing.id,
                    article_id,
                    issue_type.value,
                )
                return existing

            issue = GovernanceIssue(
                article_id=article_id,
                issue_type=issue_type.value,
                severity=severity.value,
                status=IssueStatus.OPEN.value,
                message=_truncate(message),
                evidence=evidence,
                sla_due_at=sla.calculate_due_at(now, severity),
                created_at=now,
                updated_at=now,
            )
            session.add(issue)
            session.flush()
            history.record(
                session,
                issue,
                HistoryAction.OPENED,
                "system",
                None,
                history.snapshot(issue),
                now=now,
            )
            logger.info(
                "Opened %s issue %s for article %s (%s)",
                issue_type.value,
                issue.id,
                article_id,
                severity.value,
            )
            return issue

    def find_live(self, article_id: int, issue_type: IssueType) -> GovernanceIssue | None:
        with self.db.get_session() as session:
            return find_live_issue(session, article_id, issue_type)

    def resolve_live(self, article_id: int, issue_type: IssueType, actor: str) -> bool:
        """Resolve the live issue for the slot, if any. Returns True if one was closed."""
        with ISSUE_SLOT_LOCK:
            with self.db.get_session() as session:
                issue = find_live_issue(session, article_id, issue_type)
                if issue is None:
                    return False
                before = history.snapshot(issue)
                now = self.clock()
                issue.status = IssueStatus.RESOLVED.value
                issue.resolved_at = now
                issue.updated_at = now
                history.record(
                    session,
                    issue,
                    HistoryAction.STATUS_CHANGED,
                    actor,
                    before,
                    history.snapshot(issue),
                    now=now,
                )
                logger.info(
                    "Resolved %s issue %s for article %s (actor=%s)",
                    IssueType(issue_type).value,
                    issue.id,
                    article_id,
                    actor,
                )
                return True

    def get(self, issue_id: int) -> GovernanceIssue:
        with self.db.get_session() as session:
            issue = session.get(GovernanceIssue, issue_id)
            if issue is None:
                raise NotFoundError(f"Issue not found: {issue_id}")
            return issue

    def list_issues(
        self,
        *,
        status: IssueStatus | str | None = None,
        issue_type: IssueType | str | None = None,
        article_id: int | None = None,
        live_only: bool = False,
        limit: int | None = None,
    ) -> list[GovernanceIssue]:
        stmt = select(GovernanceIssue)
        if status is not None:
            stmt = stmt.where(GovernanceIssue.status == IssueStatus(status).value)
        if issue_type is not None:
            stmt = stmt.where(GovernanceIssue.issue_type == IssueType(issue_type).value)
        if article_id is not None:
            stmt = stmt.where(GovernanceIssue.article_id == article_id)
        if live_only:
            stmt = stmt.where(GovernanceIssue.status.in_(_LIVE_VALUES))
        stmt = stmt.order_by(GovernanceIssue.id)
        if limit:
            stmt = stmt.limit(limit)
        with self.db.get_session() as session:
            return list(session.execute(stmt).scalars())

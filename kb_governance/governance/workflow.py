"""Issue workflow state machine.

States: OPEN, ASSIGNED, IN_PROGRESS (live) and RESOLVED, IGNORED (terminal).

Allowed transitions:
- live -> ASSIGNED via :meth:`IssueWorkflow.assign` (responsible required)
- live -> IGNORED (non-blank reason required)
- live -> RESOLVED (stamps ``resolved_at``)
- live -> OPEN / IN_PROGRESS
- RESOLVED -> OPEN via :meth:`IssueWorkflow.reopen`; the SLA clock restarts

Every applied transition appends exactly one history row. Requesting the
status an issue already has is a no-op and writes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from kb_governance.errors import ConflictError, NotFoundError, ValidationError
from kb_governance.governance import history, sla
from kb_governance.governance.issues import ISSUE_SLOT_LOCK, find_live_issue
from kb_governance.models import (
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    GovernanceIssue,
    HistoryAction,
    IssueHistory,
    IssueStatus,
    IssueType,
)
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

DEFAULT_RESPONSIBLE_TYPE = "USER"


def _parse_status(value) -> IssueStatus:
    if isinstance(value, IssueStatus):
        return value
    try:
        return IssueStatus(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown issue status: {value!r}") from exc


class IssueWorkflow:
    def __init__(self, db, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    @staticmethod
    def _load(session, issue_id: int) -> GovernanceIssue:
        issue = session.get(GovernanceIssue, issue_id)
        if issue is None:
            raise NotFoundError(f"Issue not found: {issue_id}")
        return issue

    def assign(
        self,
        issue_id: int,
        responsible_id: str,
        responsible_type: str | None = None,
        due_date: datetime | None = None,
        actor: str | None = None,
    ) -> GovernanceIssue:
        """Assign or reassign a live issue.

        ``due_date`` overrides the deadline; otherwise the current SLA
        deadline is kept, or derived from severity when none exists.
        """
        if not responsible_id or not str(responsible_id).strip():
            raise ValidationError("responsible_id is required to assign an issue")

        with self.db.get_session() as session:
            issue = self._load(session, issue_id)
            current = IssueStatus(issue.status)
            if current not in LIVE_STATUSES:
                raise ValidationError(
                    f"Issue {issue_id} is {current.value}; reopen it before assigning"
                )

            before = history.snapshot(issue)
            now = self.clock()
            issue.responsible_id = str(responsible_id).strip()
            issue.responsible_type = responsible_type or DEFAULT_RESPONSIBLE_TYPE
            issue.status = IssueStatus.ASSIGNED.value
            if due_date is not None:
                issue.sla_due_at = due_date
            elif issue.sla_due_at is None:
                issue.sla_due_at = sla.calculate_due_at(now, issue.severity)
            issue.updated_at = now

            history.record(
                session,
                issue,
                HistoryAction.ASSIGNED,
                actor,
                before,
                history.snapshot(issue),
                now=now,
            )
            logger.info(
                "Issue %s assigned to %s (%s) by %s",
                issue_id,
                issue.responsible_id,
                issue.responsible_type,
                actor,
            )
            return issue

    def unassign(self, issue_id: int, actor: str | None = None) -> GovernanceIssue:
        with self.db.get_session() as session:
            issue = self._load(session, issue_id)
            if issue.responsible_id is None:
                return issue
            before = history.snapshot(issue)
            issue.responsible_id = None
            issue.responsible_type = None
            if issue.status == IssueStatus.ASSIGNED.value:
                issue.status = IssueStatus.OPEN.value
            now = self.clock()
            issue.updated_at = now
            history.record(
                session,
                issue,
                HistoryAction.UNASSIGNED,
                actor,
                before,
                history.snapshot(issue),
                now=now,
            )
            logger.info("Issue %s unassigned by %s", issue_id, actor)
            return issue

    def change_status(
        self,
        issue_id: int,
        new_status,
        actor: str | None = None,
        ignored_reason: str | None = None,
    ) -> GovernanceIssue:
        target = _parse_status(new_status)
        with ISSUE_SLOT_LOCK:
            with self.db.get_session() as session:
                issue = self._load(session, issue_id)
                self._apply_status(session, issue, target, actor, ignored_reason)
                return issue

    def _apply_status(
        self,
        session,
        issue: GovernanceIssue,
        target: IssueStatus,
        actor: str | None,
        ignored_reason: str | None,
    ) -> bool:
        current = IssueStatus(issue.status)
        if current == target:
            return False

        if current in TERMINAL_STATUSES:
            if current == IssueStatus.RESOLVED and target == IssueStatus.OPEN:
                self._reopen(session, issue, actor)
                return True
            raise ValidationError(
                f"Issue {issue.id} is {current.value}; cannot move to {target.value}"
            )

        if target == IssueStatus.IGNORED and (
            ignored_reason is None or not ignored_reason.strip()
        ):
            raise ValidationError("ignored_reason is required when status = IGNORED")
        if target == IssueStatus.ASSIGNED and not issue.responsible_id:
            raise ValidationError("responsible_id is required when status = ASSIGNED")

        before = history.snapshot(issue)
        now = self.clock()
        issue.status = target.value
        if target == IssueStatus.IGNORED:
            issue.ignored_reason = ignored_reason.strip()
        if target == IssueStatus.RESOLVED:
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
            "Issue %s status %s -> %s (actor=%s)", issue.id, current.value, target.value, actor
        )
        return True

    def reopen(self, issue_id: int, actor: str | None = None) -> GovernanceIssue:
        with ISSUE_SLOT_LOCK:
            with self.db.get_session() as session:
                issue = self._load(session, issue_id)
                if issue.status != IssueStatus.RESOLVED.value:
                    raise ValidationError(
                        f"Only RESOLVED issues can be reopened (issue {issue_id} is {issue.status})"
                    )
                self._reopen(session, issue, actor)
                return issue

    def _reopen(self, session, issue: GovernanceIssue, actor: str | None) -> None:
        live = find_live_issue(session, issue.article_id, IssueType(issue.issue_type))
        if live is not None and live.id != issue.id:
            raise ConflictError(
                f"Article {issue.article_id} already has live {issue.issue_type} issue {live.id}"
            )
        before = history.snapshot(issue)
        now = self.clock()
        issue.status = IssueStatus.OPEN.value
        issue.resolved_at = None
        issue.sla_due_at = sla.calculate_due_at(now, issue.severity)
        issue.updated_at = now
        history.record(
            session,
            issue,
            HistoryAction.REOPENED,
            actor,
            before,
            history.snapshot(issue),
            now=now,
        )
        logger.info("Issue %s reopened by %s; SLA due %s", issue.id, actor, issue.sla_due_at)

    def update_status_if_open(
        self,
        article_id: int,
        issue_type: IssueType,
        new_status,
        actor: str | None = None,
    ) -> GovernanceIssue | None:
        """Move the live issue of a slot to ``new_status`` if there is one."""
        target = _parse_status(new_status)
        with ISSUE_SLOT_LOCK:
            with self.db.get_session() as session:
                issue = find_live_issue(session, article_id, issue_type)
                if issue is None:
                    return None
                self._apply_status(session, issue, target, actor, None)
                return issue

    def bulk_update_status(
        self,
        issue_ids: Iterable[int],
        new_status,
        actor: str | None = None,
        ignored_reason: str | None = None,
    ) -> int:
        """Apply one status to many issues atomically. Returns how many changed."""
        target = _parse_status(new_status)
        changed = 0
        with ISSUE_SLOT_LOCK:
            with self.db.get_session() as session:
                for issue_id in issue_ids:
                    issue = self._load(session, issue_id)
                    if self._apply_status(session, issue, target, actor, ignored_reason):
                        changed += 1
        logger.info("Bulk status update to %s changed %d issues", target.value, changed)
        return changed

    def get_history(self, issue_id: int) -> list[IssueHistory]:
        with self.db.get_session() as session:
            self._load(session, issue_id)
            return history.list_for_issue(session, issue_id)

"""Append-only issue history helpers."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select

from kb_governance.models import GovernanceIssue, HistoryAction, IssueHistory
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)


def snapshot(issue: GovernanceIssue | None) -> dict | None:
    """Capture the workflow-relevant fields of ``issue`` as JSON."""
    if issue is None:
        return None
    return {
        "status": issue.status,
        "slaDueAt": issue.sla_due_at.isoformat() if issue.sla_due_at else None,
        "responsibleId": issue.responsible_id,
        "responsibleType": issue.responsible_type,
    }


def record(
    session,
    issue: GovernanceIssue,
    action: HistoryAction,
    actor: str | None,
    old_value: dict | None,
    new_value: dict | None,
    *,
    now: datetime | None = None,
) -> IssueHistory:
    """Append one history row stamped with ``now`` (the caller's clock)."""
    entry = IssueHistory(
        issue_id=issue.id,
        action=action.value,
        actor=actor,
        old_value=old_value,
        new_value=new_value,
        created_at=now or utcnow(),
    )
    session.add(entry)
    logger.debug("History %s recorded for issue %s by %s", action.value, issue.id, actor)
    return entry


def list_for_issue(session, issue_id: int, newest_first: bool = True) -> list[IssueHistory]:
    order = IssueHistory.id.desc() if newest_first else IssueHistory.id.asc()
    stmt = select(IssueHistory).where(IssueHistory.issue_id == issue_id).order_by(order)
    return list(session.execute(stmt).scalars())

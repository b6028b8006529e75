"""Deterministic priority scoring for governance issues.

The score is a weighted sum of independent signals (deadline pressure,
severity, issue type) bucketed into a level. It is computed on read for
ranking and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from kb_governance.governance import sla
from kb_governance.models.enums import LIVE_STATUSES, IssueStatus, IssueType, Severity
from kb_governance.utils.time import utcnow

OVERDUE_WEIGHT = 50
DUE_SOON_WEIGHT = 20

SEVERITY_ERROR_WEIGHT = 30
SEVERITY_WARN_WEIGHT = 15
SEVERITY_INFO_WEIGHT = 5

TYPE_DUPLICATE_WEIGHT = 18
TYPE_OUTDATED_WEIGHT = 16
TYPE_INCONSISTENT_WEIGHT = 14
TYPE_INCOMPLETE_WEIGHT = 12
TYPE_REVIEW_REQUIRED_WEIGHT = 10
TYPE_NOT_AI_READY_WEIGHT = 8

LEVEL_CRITICAL_THRESHOLD = 80
LEVEL_HIGH_THRESHOLD = 60
LEVEL_MEDIUM_THRESHOLD = 40

# Calendar days ahead still counted as "due soon".
DUE_SOON_DAYS = 1

_SEVERITY_WEIGHTS = {
    Severity.ERROR: SEVERITY_ERROR_WEIGHT,
    Severity.WARN: SEVERITY_WARN_WEIGHT,
    Severity.INFO: SEVERITY_INFO_WEIGHT,
}

_TYPE_WEIGHTS = {
    IssueType.DUPLICATE_CONTENT: TYPE_DUPLICATE_WEIGHT,
    IssueType.OUTDATED_CONTENT: TYPE_OUTDATED_WEIGHT,
    IssueType.INCONSISTENT_CONTENT: TYPE_INCONSISTENT_WEIGHT,
    IssueType.INCOMPLETE_CONTENT: TYPE_INCOMPLETE_WEIGHT,
    IssueType.REVIEW_REQUIRED: TYPE_REVIEW_REQUIRED_WEIGHT,
    IssueType.NOT_AI_READY: TYPE_NOT_AI_READY_WEIGHT,
}


class PriorityLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class PriorityAssessment:
    score: int
    level: PriorityLevel


def _lookup(enum_cls, value):
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        return None


def resolve_level(score: int) -> PriorityLevel:
    if score >= LEVEL_CRITICAL_THRESHOLD:
        return PriorityLevel.CRITICAL
    if score >= LEVEL_HIGH_THRESHOLD:
        return PriorityLevel.HIGH
    if score >= LEVEL_MEDIUM_THRESHOLD:
        return PriorityLevel.MEDIUM
    return PriorityLevel.LOW


def is_due_soon(sla_due_at: datetime | None, now: datetime, status=None) -> bool:
    if sla_due_at is None or sla_due_at < now:
        return False
    if status is not None and _lookup(IssueStatus, status) not in LIVE_STATUSES:
        return False
    return (sla_due_at.date() - now.date()).days <= DUE_SOON_DAYS


def assess(
    severity,
    issue_type,
    status,
    sla_due_at: datetime | None,
    now: datetime | None = None,
) -> PriorityAssessment:
    now = now or utcnow()
    score = 0
    if sla.is_overdue(now, sla_due_at, status):
        score += OVERDUE_WEIGHT
    elif is_due_soon(sla_due_at, now, status):
        score += DUE_SOON_WEIGHT

    score += _SEVERITY_WEIGHTS.get(_lookup(Severity, severity), 0)
    score += _TYPE_WEIGHTS.get(_lookup(IssueType, issue_type), 0)
    return PriorityAssessment(score=score, level=resolve_level(score))


def assess_issue(issue, now: datetime | None = None) -> PriorityAssessment:
    if issue is None:
        return PriorityAssessment(score=0, level=PriorityLevel.LOW)
    return assess(issue.severity, issue.issue_type, issue.status, issue.sla_due_at, now)


def issue_view(issue, now: datetime | None = None) -> dict:
    """Return the read-only record surface used by reports and exports."""
    now = now or utcnow()
    assessment = assess_issue(issue, now)
    return {
        "id": issue.id,
        "issueType": issue.issue_type,
        "severity": issue.severity,
        "status": issue.status,
        "articleId": issue.article_id,
        "message": issue.message,
        "evidence": issue.evidence,
        "createdAt": issue.created_at,
        "updatedAt": issue.updated_at,
        "responsibleId": issue.responsible_id,
        "responsibleType": issue.responsible_type,
        "slaDueAt": issue.sla_due_at,
        "resolvedAt": issue.resolved_at,
        "ignoredReason": issue.ignored_reason,
        "overdue": sla.is_overdue(now, issue.sla_due_at, issue.status),
        "priorityScore": assessment.score,
        "priorityLevel": assessment.level.value,
    }


def rank_issues(issues, now: datetime | None = None) -> list:
    """Sort issues by descending priority score, oldest first on ties."""
    now = now or utcnow()
    scored = [(assess_issue(issue, now).score, issue) for issue in issues]
    scored.sort(key=lambda pair: (-pair[0], pair[1].created_at or now, pair[1].id))
    return [issue for _, issue in scored]

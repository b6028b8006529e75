"""SLA deadlines derived from issue severity.

Assumptions:
- Severity fixes the resolution window: ERROR 3 days, WARN 15, INFO 30.
- A missing or unrecognised severity falls back to the WARN window rather
  than failing; a deadline is always computable once a base time exists.
- Only live statuses (OPEN, ASSIGNED, IN_PROGRESS) can be overdue.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta

from kb_governance.models.enums import LIVE_STATUSES, IssueStatus, Severity

SLA_DAYS: dict[Severity, int] = {
    Severity.ERROR: 3,
    Severity.WARN: 15,
    Severity.INFO: 30,
}
DEFAULT_SLA_DAYS = 15

# Returned by days_until_due when there is no deadline at all.
NO_DEADLINE_DAYS = sys.maxsize


def _coerce_severity(severity) -> Severity | None:
    if severity is None:
        return None
    if isinstance(severity, Severity):
        return severity
    try:
        return Severity(str(severity).strip().upper())
    except ValueError:
        return None


def _coerce_status(status) -> IssueStatus | None:
    if status is None:
        return None
    if isinstance(status, IssueStatus):
        return status
    try:
        return IssueStatus(str(status).strip().upper())
    except ValueError:
        return None


def sla_days(severity) -> int:
    resolved = _coerce_severity(severity)
    if resolved is None:
        return DEFAULT_SLA_DAYS
    return SLA_DAYS.get(resolved, DEFAULT_SLA_DAYS)


def calculate_due_at(base: datetime | None, severity) -> datetime | None:
    if base is None:
        return None
    return base + timedelta(days=sla_days(severity))


def is_overdue(now: datetime, sla_due_at: datetime | None, status) -> bool:
    if sla_due_at is None:
        return False
    resolved = _coerce_status(status)
    if resolved not in LIVE_STATUSES:
        return False
    return now > sla_due_at


def days_until_due(sla_due_at: datetime | None, now: datetime | None = None) -> int:
    """Whole days left until ``sla_due_at`` (negative when overdue)."""
    if sla_due_at is None:
        return NO_DEADLINE_DAYS
    if now is None:
        from kb_governance.utils.time import utcnow

        now = utcnow()
    # truncate toward zero so a deadline a few hours away is "0 days"
    return int((sla_due_at - now).total_seconds() / 86400)

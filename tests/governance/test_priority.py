from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from kb_governance.governance import priority
from kb_governance.governance.priority import PriorityLevel
from kb_governance.models import IssueStatus, IssueType, Severity

NOW = datetime(2025, 3, 10, 12, 0, 0)


def _issue(issue_id, severity, issue_type, status, sla_due_at, created_at=NOW):
    return SimpleNamespace(
        id=issue_id,
        article_id=1,
        severity=severity,
        issue_type=issue_type,
        status=status,
        sla_due_at=sla_due_at,
        created_at=created_at,
        updated_at=created_at,
        message=None,
        evidence=None,
        responsible_id=None,
        responsible_type=None,
        resolved_at=None,
        ignored_reason=None,
    )


def test_overdue_error_duplicate_is_critical():
    result = priority.assess(
        Severity.ERROR,
        IssueType.DUPLICATE_CONTENT,
        IssueStatus.OPEN,
        NOW - timedelta(days=2),
        NOW,
    )
    assert result.score == 50 + 30 + 18
    assert result.level == PriorityLevel.CRITICAL


def test_due_tomorrow_counts_as_due_soon():
    result = priority.assess(
        Severity.WARN,
        IssueType.OUTDATED_CONTENT,
        IssueStatus.ASSIGNED,
        NOW + timedelta(days=1),
        NOW,
    )
    assert result.score == 20 + 15 + 16
    assert result.level == PriorityLevel.MEDIUM


def test_resolved_issue_gets_no_deadline_points():
    result = priority.assess(
        Severity.INFO,
        IssueType.NOT_AI_READY,
        IssueStatus.RESOLVED,
        NOW - timedelta(days=10),
        NOW,
    )
    assert result.score == 5 + 8
    assert result.level == PriorityLevel.LOW


def test_unknown_values_contribute_nothing():
    result = priority.assess(None, "SOMETHING_ELSE", None, None, NOW)
    assert result.score == 0
    assert result.level == PriorityLevel.LOW


@pytest.mark.parametrize(
    "score,level",
    [
        (0, PriorityLevel.LOW),
        (39, PriorityLevel.LOW),
        (40, PriorityLevel.MEDIUM),
        (59, PriorityLevel.MEDIUM),
        (60, PriorityLevel.HIGH),
        (79, PriorityLevel.HIGH),
        (80, PriorityLevel.CRITICAL),
    ],
)
def test_resolve_level_thresholds(score, level):
    assert priority.resolve_level(score) == level


def test_is_due_soon_window():
    assert priority.is_due_soon(NOW + timedelta(hours=3), NOW) is True
    assert priority.is_due_soon(NOW + timedelta(days=3), NOW) is False
    assert priority.is_due_soon(NOW - timedelta(hours=1), NOW) is False
    assert priority.is_due_soon(None, NOW) is False
    assert priority.is_due_soon(NOW + timedelta(hours=3), NOW, IssueStatus.IGNORED) is False


def test_rank_issues_orders_by_score_then_age():
    low = _issue(1, Severity.INFO, IssueType.NOT_AI_READY, IssueStatus.OPEN, None)
    high = _issue(
        2,
        Severity.ERROR,
        IssueType.DUPLICATE_CONTENT,
        IssueStatus.OPEN,
        NOW - timedelta(days=1),
    )
    older_low = _issue(
        3,
        Severity.INFO,
        IssueType.NOT_AI_READY,
        IssueStatus.OPEN,
        None,
        created_at=NOW - timedelta(days=5),
    )

    ranked = priority.rank_issues([low, high, older_low], NOW)

    assert [issue.id for issue in ranked] == [2, 3, 1]


def test_issue_view_exposes_derived_fields():
    issue = _issue(
        7,
        Severity.ERROR,
        IssueType.INCOMPLETE_CONTENT,
        IssueStatus.OPEN,
        NOW - timedelta(hours=1),
    )

    view = priority.issue_view(issue, NOW)

    assert view["id"] == 7
    assert view["overdue"] is True
    assert view["priorityScore"] == 50 + 30 + 12
    assert view["priorityLevel"] == "CRITICAL"

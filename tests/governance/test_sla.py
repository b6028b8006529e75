import sys
from datetime import datetime, timedelta

import pytest

from kb_governance.governance import sla
from kb_governance.models import IssueStatus, Severity

NOW = datetime(2025, 3, 10, 12, 0, 0)


@pytest.mark.parametrize(
    "severity,days",
    [
        (Severity.ERROR, 3),
        (Severity.WARN, 15),
        (Severity.INFO, 30),
        ("error", 3),
        (None, 15),
        ("UNKNOWN", 15),
    ],
)
def test_sla_days_by_severity(severity, days):
    assert sla.sla_days(severity) == days


def test_calculate_due_at_adds_severity_window():
    assert sla.calculate_due_at(NOW, Severity.ERROR) == NOW + timedelta(days=3)


def test_calculate_due_at_null_severity_uses_default_window():
    assert sla.calculate_due_at(NOW, None) == NOW + timedelta(days=15)


def test_calculate_due_at_without_base_is_none():
    assert sla.calculate_due_at(None, Severity.WARN) is None


@pytest.mark.parametrize(
    "status,expected",
    [
        (IssueStatus.OPEN, True),
        (IssueStatus.ASSIGNED, True),
        ("IN_PROGRESS", True),
        (IssueStatus.RESOLVED, False),
        (IssueStatus.IGNORED, False),
        (None, False),
    ],
)
def test_is_overdue_only_for_live_statuses(status, expected):
    past_due = NOW - timedelta(hours=1)
    assert sla.is_overdue(NOW, past_due, status) is expected


def test_is_overdue_false_without_deadline_or_before_it():
    assert sla.is_overdue(NOW, None, IssueStatus.OPEN) is False
    assert sla.is_overdue(NOW, NOW + timedelta(minutes=1), IssueStatus.OPEN) is False
    assert sla.is_overdue(NOW, NOW, IssueStatus.OPEN) is False


@pytest.mark.parametrize(
    "delta,expected",
    [
        (timedelta(days=2), 2),
        (timedelta(days=2, hours=20), 2),
        (timedelta(hours=5), 0),
        (timedelta(days=-2), -2),
    ],
)
def test_days_until_due_truncates(delta, expected):
    assert sla.days_until_due(NOW + delta, NOW) == expected


def test_days_until_due_without_deadline_is_max():
    assert sla.days_until_due(None, NOW) == sys.maxsize

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from kb_governance.governance.scheduling import (
    DAILY_ANALYSIS,
    WEEKLY_FULL_ANALYSIS,
    GovernanceScheduler,
    is_due,
)
from kb_governance.models import JobRun


@pytest.mark.parametrize(
    "now,last_run,expected",
    [
        (datetime(2025, 3, 10, 2, 0), None, True),  # Monday 02:00
        (datetime(2025, 3, 10, 1, 59), None, False),
        (datetime(2025, 3, 10, 9, 0), datetime(2025, 3, 10, 2, 5), False),
        (datetime(2025, 3, 11, 9, 0), datetime(2025, 3, 10, 2, 5), True),
        (datetime(2025, 3, 15, 9, 0), None, False),  # Saturday
    ],
)
def test_daily_is_due(now, last_run, expected):
    assert is_due(DAILY_ANALYSIS, now, last_run) is expected


def test_weekly_only_on_sunday():
    assert is_due(WEEKLY_FULL_ANALYSIS, datetime(2025, 3, 16, 3, 0), None) is True
    assert is_due(WEEKLY_FULL_ANALYSIS, datetime(2025, 3, 16, 2, 59), None) is False
    assert is_due(WEEKLY_FULL_ANALYSIS, datetime(2025, 3, 10, 3, 0), None) is False


def _pipeline():
    pipeline = MagicMock()
    pipeline.analyze_updated_within.return_value = 4
    pipeline.analyze_all.return_value = 9
    pipeline.analyze_all_duplicates.return_value = 2
    return pipeline


def test_tick_runs_daily_job_once_per_day(db):
    pipeline = _pipeline()
    # 11:00 UTC on a Monday is 08:00 in Sao Paulo
    clock = MagicMock(return_value=datetime(2025, 3, 10, 11, 0, tzinfo=timezone.utc))
    scheduler = GovernanceScheduler(
        db, lambda: pipeline, tz_name="America/Sao_Paulo", clock=clock
    )

    assert scheduler.tick() == ["governance-daily"]
    assert scheduler.tick() == []

    pipeline.analyze_updated_within.assert_called_once_with(30, limit=100)
    pipeline.analyze_all.assert_not_called()
    run = db.session.query(JobRun).one()
    assert run.status == "SUCCESS"
    assert run.details == {"analyzed": 4, "duplicates": 2}


def test_tick_runs_weekly_full_on_sunday(db):
    pipeline = _pipeline()
    clock = MagicMock(return_value=datetime(2025, 3, 16, 12, 0, tzinfo=timezone.utc))
    scheduler = GovernanceScheduler(
        db, lambda: pipeline, tz_name="America/Sao_Paulo", clock=clock
    )

    assert scheduler.tick() == ["governance-weekly"]
    pipeline.analyze_all.assert_called_once_with(100)


def test_failed_job_is_recorded_and_not_retried_same_day(db):
    pipeline = _pipeline()
    pipeline.analyze_updated_within.side_effect = RuntimeError("db down")
    clock = MagicMock(return_value=datetime(2025, 3, 10, 11, 0, tzinfo=timezone.utc))
    scheduler = GovernanceScheduler(
        db, lambda: pipeline, tz_name="America/Sao_Paulo", clock=clock
    )

    assert scheduler.tick() == []
    assert scheduler.tick() == []

    run = db.session.query(JobRun).one()
    assert run.status == "FAILED"
    assert run.details == {"error": "db down"}


def test_previous_success_in_database_prevents_rerun(db):
    with db.get_session() as session:
        session.add(
            JobRun(
                job_name="governance-daily",
                status="SUCCESS",
                started_at=datetime(2025, 3, 10, 10, 30),
            )
        )
    pipeline = _pipeline()
    clock = MagicMock(return_value=datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc))
    scheduler = GovernanceScheduler(
        db, lambda: pipeline, tz_name="America/Sao_Paulo", clock=clock
    )

    assert scheduler.tick() == []
    pipeline.analyze_updated_within.assert_not_called()

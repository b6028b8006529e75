"""Calendar for the periodic governance analysis jobs.

Two jobs exist:
- daily analysis, Monday to Friday from 02:00: articles updated in the last
  30 days (one batch of 100) plus a global duplicate scan
- weekly full analysis, Sunday from 03:00: every article plus the duplicate
  scan

Assumptions made:
- Times are wall-clock in ``config.SCHEDULER_TIMEZONE``.
- A job fires at most once per local calendar day; the first tick at or
  after its hour runs it. A process that was down at 02:00 catches up on
  its next tick the same day.
- The last run of each job is read back from ``job_runs`` so restarts do
  not re-run a job that already completed today.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select

from kb_governance import config
from kb_governance.models import JobRun
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
ANALYSIS_BATCH_SIZE = 100


@dataclass(frozen=True)
class GovernanceJob:
    name: str
    weekdays: frozenset[int]  # Monday == 0
    hour: int


DAILY_ANALYSIS = GovernanceJob("governance-daily", frozenset({0, 1, 2, 3, 4}), 2)
WEEKLY_FULL_ANALYSIS = GovernanceJob("governance-weekly", frozenset({6}), 3)
JOBS = (DAILY_ANALYSIS, WEEKLY_FULL_ANALYSIS)


def is_due(job: GovernanceJob, now: datetime, last_run: datetime | None) -> bool:
    """Both datetimes must be in the scheduler's local time zone."""
    if now.weekday() not in job.weekdays or now.hour < job.hour:
        return False
    if last_run is None:
        return True
    return last_run.date() < now.date()


class GovernanceScheduler:
    """Fire the governance jobs when their calendar slot comes up."""

    def __init__(
        self,
        db,
        pipeline_factory: Callable[[], object],
        *,
        tz_name: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.pipeline_factory = pipeline_factory
        self.tz = ZoneInfo(tz_name or config.SCHEDULER_TIMEZONE)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_runs: dict[str, datetime | None] = {}

    def _local_now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz)

    def _last_run(self, job: GovernanceJob) -> datetime | None:
        if job.name not in self._last_runs:
            stmt = (
                select(JobRun.started_at)
                .where(JobRun.job_name == job.name, JobRun.status == "SUCCESS")
                .order_by(JobRun.started_at.desc())
                .limit(1)
            )
            with self.db.get_session() as session:
                started = session.execute(stmt).scalar()
            self._last_runs[job.name] = (
                started.replace(tzinfo=timezone.utc).astimezone(self.tz) if started else None
            )
        return self._last_runs[job.name]

    def tick(self) -> list[str]:
        """Run every job that is due. Returns the names of jobs that ran."""
        ran = []
        now = self._local_now()
        for job in JOBS:
            if not is_due(job, now, self._last_run(job)):
                continue
            if self.run_job(job):
                ran.append(job.name)
            # a failed job is not retried until the next day
            self._last_runs[job.name] = now
        return ran

    def run_job(self, job: GovernanceJob) -> bool:
        run = JobRun(job_name=job.name, status="RUNNING", started_at=utcnow())
        with self.db.get_session() as session:
            session.add(run)

        logger.info("Starting %s", job.name)
        started = utcnow()
        try:
            pipeline = self.pipeline_factory()
            if job is WEEKLY_FULL_ANALYSIS:
                analyzed = pipeline.analyze_all(ANALYSIS_BATCH_SIZE)
            else:
                analyzed = pipeline.analyze_updated_within(
                    RECENT_DAYS, limit=ANALYSIS_BATCH_SIZE
                )
            duplicates = pipeline.analyze_all_duplicates()
        except Exception as exc:
            logger.error("%s failed: %s", job.name, exc, exc_info=True)
            with self.db.get_session():
                run.status = "FAILED"
                run.finished_at = utcnow()
                run.details = {"error": str(exc)[:500]}
            return False

        elapsed = (utcnow() - started).total_seconds()
        with self.db.get_session():
            run.status = "SUCCESS"
            run.finished_at = utcnow()
            run.details = {"analyzed": analyzed, "duplicates": duplicates}
        logger.info(
            "%s finished: analyzed=%d duplicates=%d in %.1fs",
            job.name,
            analyzed,
            duplicates,
            elapsed,
        )
        return True

"""Periodic tick that triggers the configured sync when it is due."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from kb_governance import config
from kb_governance.errors import ConflictError
from kb_governance.models import SyncMode
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

WORK_START_HOUR = 8
WORK_END_HOUR = 18
SATURDAY_END_HOUR = 12
FAILURE_ALERT_THRESHOLD = 5


def is_working_hours(local_now: datetime) -> bool:
    """Mon-Fri 08-18, Saturday 08-12, never on Sunday."""
    weekday = local_now.weekday()
    hour = local_now.hour
    if weekday == 6:
        return False
    if weekday == 5:
        return WORK_START_HOUR <= hour < SATURDAY_END_HOUR
    return WORK_START_HOUR <= hour < WORK_END_HOUR


def is_sync_due(now: datetime, last_started_at: datetime | None, interval_minutes: int) -> bool:
    if last_started_at is None:
        return True
    return now >= last_started_at + timedelta(minutes=max(1, interval_minutes or 1))


@dataclass
class SchedulerMetrics:
    last_successful_run: datetime | None = None
    last_failed_run: datetime | None = None
    consecutive_failures: int = 0
    is_working_hours: bool = False
    is_running: bool = False


class SyncScheduler:
    def __init__(
        self,
        orchestrator,
        *,
        respect_working_hours: bool | None = None,
        tz_name: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.orchestrator = orchestrator
        self.respect_working_hours = (
            config.SYNC_RESPECT_WORKING_HOURS
            if respect_working_hours is None
            else respect_working_hours
        )
        self.tz = ZoneInfo(tz_name or config.SCHEDULER_TIMEZONE)
        self.clock = clock
        self.last_successful_run: datetime | None = None
        self.last_failed_run: datetime | None = None
        self.consecutive_failures = 0

    def _in_working_hours(self, now: datetime) -> bool:
        local = now.replace(tzinfo=timezone.utc).astimezone(self.tz)
        return is_working_hours(local)

    def tick(self) -> bool:
        """Start a sync when enabled, idle, inside hours and due.

        Returns True when a run was started and completed.
        """
        try:
            cfg = self.orchestrator.get_config()
            if cfg is None or not cfg.enabled:
                return False
            if self.orchestrator.is_running():
                logger.debug("Sync in progress; waiting")
                return False
            now = self.clock()
            if self.respect_working_hours and not self._in_working_hours(now):
                logger.debug("Outside working hours; waiting")
                return False
            if not is_sync_due(now, cfg.last_started_at, cfg.interval_minutes):
                return False
            return self._execute(cfg)
        except Exception as exc:
            logger.error("Sync scheduler tick failed: %s", exc, exc_info=True)
            return False

    def _execute(self, cfg) -> bool:
        mode = cfg.mode or SyncMode.DELTA.value
        logger.info(
            "Scheduler triggering sync: mode=%s daysBack=%s interval=%smin",
            mode,
            cfg.days_back,
            cfg.interval_minutes,
        )
        try:
            self.orchestrator.run_now(mode, cfg.days_back)
        except ConflictError as exc:
            logger.debug("Sync already running (race): %s", exc)
            return False
        except Exception as exc:
            self.last_failed_run = self.clock()
            self.consecutive_failures += 1
            logger.error(
                "Scheduled sync failed (attempt %d): %s",
                self.consecutive_failures,
                exc,
                exc_info=True,
            )
            if self.consecutive_failures >= FAILURE_ALERT_THRESHOLD:
                logger.error(
                    "ALERT: %d consecutive scheduled sync failures; check the logs",
                    self.consecutive_failures,
                )
            return False

        self.last_successful_run = self.clock()
        self.consecutive_failures = 0
        logger.info("Scheduled sync completed")
        return True

    def metrics(self) -> SchedulerMetrics:
        return SchedulerMetrics(
            last_successful_run=self.last_successful_run,
            last_failed_run=self.last_failed_run,
            consecutive_failures=self.consecutive_failures,
            is_working_hours=self._in_working_hours(self.clock()),
            is_running=self.orchestrator.is_running(),
        )

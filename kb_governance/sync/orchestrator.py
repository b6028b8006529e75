"""Run FULL and DELTA synchronisations against the remote knowledge base.

One run at a time across processes: ``run_now`` first takes a non-blocking
in-process lock, then claims the ``running`` flag on the SyncConfig row with
a conditional UPDATE in the same transaction that inserts the RUNNING
SyncRun. Either failing raises :class:`ConflictError`, so a manual CLI run
racing the scheduled tick cannot start a second pass. A claim older than
``STALE_RUN_MINUTES`` is treated as abandoned by a crashed process.

Per-article failures are counted on the run and never abort it. Failures
around the paging itself (search endpoint down, database gone) finalise the
run as FAILED and propagate.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import false, or_, select, update

from kb_governance.errors import ConflictError, ValidationError
from kb_governance.models import SyncConfig, SyncMode, SyncRun, SyncRunStatus
from kb_governance.sync.articles import (
    OUTCOME_CREATED,
    OUTCOME_NOT_FOUND,
    OUTCOME_SKIPPED,
    OUTCOME_UPDATED,
    ArticleSyncService,
)
from kb_governance.sync.dto import ArticleSearchItem
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

CONFIG_ID = 1
PAGE_SIZE = 50
MAX_PAGES = 1000
DEFAULT_FALLBACK_DAYS = 2
MAX_LOOKBACK_DAYS = 7
RECENT_ANALYSIS_LIMIT = 200
MAX_NOTE_CHARS = 350
MAX_GOVERNANCE_ERROR_CHARS = 150
STALE_RUN_MINUTES = 6 * 60

_MODE_ALIASES = {
    "FULL": SyncMode.FULL,
    "DELTA": SyncMode.DELTA,
    "DELTA_WINDOW": SyncMode.DELTA,
    "INCREMENTAL": SyncMode.DELTA,
}

# Shared by every orchestrator in the process.
_RUN_LOCK = threading.Lock()


def parse_mode(value) -> SyncMode:
    """Accept a SyncMode or any case-insensitive alias of one."""
    if isinstance(value, SyncMode):
        return value
    if value is None or not str(value).strip():
        raise ValidationError("Sync mode is required")
    mode = _MODE_ALIASES.get(str(value).strip().upper())
    if mode is None:
        raise ValidationError(
            f"Invalid sync mode: {value!r}. Use FULL, DELTA, DELTA_WINDOW or INCREMENTAL"
        )
    return mode


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value if len(value) <= limit else value[:limit]


@dataclass
class SyncCounts:
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    not_found: int = 0
    errors: int = 0

    def record(self, outcome: str) -> None:
        self.processed += 1
        if outcome == OUTCOME_CREATED:
            self.created += 1
        elif outcome == OUTCOME_UPDATED:
            self.updated += 1
        elif outcome == OUTCOME_SKIPPED:
            self.skipped += 1
        elif outcome == OUTCOME_NOT_FOUND:
            self.not_found += 1

    def record_error(self) -> None:
        self.processed += 1
        self.errors += 1

    def apply_to(self, run: SyncRun) -> None:
        run.processed = self.processed
        run.created = self.created
        run.updated = self.updated
        run.skipped = self.skipped
        run.not_found = self.not_found
        run.errors = self.errors


class SyncOrchestrator:
    def __init__(
        self,
        db,
        client,
        *,
        article_sync: ArticleSyncService | None = None,
        pipeline_factory: Callable[[], object] | None = None,
        clock: Callable[[], datetime] = utcnow,
        run_lock: threading.Lock | None = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.db = db
        self.client = client
        self.clock = clock
        self.article_sync = article_sync or ArticleSyncService(db, client, clock=clock)
        self.pipeline_factory = pipeline_factory or self._default_pipeline
        self._run_lock = run_lock or _RUN_LOCK
        self.page_size = page_size

    def _default_pipeline(self):
        from kb_governance.governance.pipeline import GovernancePipeline

        return GovernancePipeline(self.db, clock=self.clock)

    # ------------------------------------------------------------------
    # Config and status
    # ------------------------------------------------------------------
    def _load_config(self, session) -> SyncConfig:
        # Another process may have written the row since it was last loaded.
        cfg = session.get(SyncConfig, CONFIG_ID, populate_existing=True)
        if cfg is None:
            cfg = SyncConfig(
                id=CONFIG_ID,
                enabled=True,
                mode=SyncMode.DELTA.value,
                interval_minutes=60,
                days_back=DEFAULT_FALLBACK_DAYS,
            )
            session.add(cfg)
            session.flush()
        return cfg

    def get_config(self) -> SyncConfig:
        with self.db.get_session() as session:
            return self._load_config(session)

    def update_config(
        self,
        *,
        enabled: bool | None = None,
        mode=None,
        interval_minutes: int | None = None,
        days_back: int | None = None,
    ) -> SyncConfig:
        parsed_mode = parse_mode(mode) if mode is not None else None
        with self.db.get_session() as session:
            cfg = self._load_config(session)
            if enabled is not None:
                cfg.enabled = bool(enabled)
            cfg.mode = (parsed_mode or SyncMode(cfg.mode or SyncMode.DELTA.value)).value
            if interval_minutes is not None:
                cfg.interval_minutes = max(1, int(interval_minutes))
            if days_back is not None:
                cfg.days_back = max(0, int(days_back))
        logger.info(
            "Sync config updated: enabled=%s mode=%s interval=%s daysBack=%s",
            cfg.enabled,
            cfg.mode,
            cfg.interval_minutes,
            cfg.days_back,
        )
        return cfg

    def latest_run(self) -> SyncRun | None:
        stmt = select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(1)
        with self.db.get_session() as session:
            return session.execute(stmt).scalars().first()

    def is_running(self) -> bool:
        if self._run_lock.locked():
            return True
        stmt = select(SyncConfig.running, SyncConfig.last_started_at).where(
            SyncConfig.id == CONFIG_ID
        )
        with self.db.get_session() as session:
            row = session.execute(stmt).first()
        if row is None or not row.running:
            return False
        return not self._is_stale(row.last_started_at, self.clock())

    @staticmethod
    def _is_stale(started_at: datetime | None, now: datetime) -> bool:
        return started_at is None or started_at < now - timedelta(minutes=STALE_RUN_MINUTES)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------
    def run_now(self, mode, days_back: int | None = None) -> SyncRun:
        mode = parse_mode(mode)
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Sync already running; rejecting new request")
            raise ConflictError("Sync already running")
        try:
            return self._run(mode, days_back)
        finally:
            self._run_lock.release()

    def _run(self, mode: SyncMode, days_back: int | None) -> SyncRun:
        started = self.clock()
        run = SyncRun(
            mode=mode.value,
            days_back=days_back,
            status=SyncRunStatus.RUNNING.value,
            started_at=started,
        )
        with self.db.get_session() as session:
            self._load_config(session)
            if not self._claim(session, started):
                logger.warning("Sync already running in another process; rejecting new request")
                raise ConflictError("Sync already running")
            session.add(run)

        counts = SyncCounts()
        self.article_sync.fallbacks.clear()
        logger.info("Sync started: mode=%s daysBack=%s run=%s", mode.value, days_back, run.id)
        try:
            if mode is SyncMode.FULL:
                self._sync_full(counts)
                self.article_sync.mark_missing(started)
            else:
                self._sync_delta(counts, self.compute_since(days_back))
        except Exception as exc:
            logger.error("Sync run %s failed: %s", run.id, exc, exc_info=True)
            self._finish(run, counts, SyncRunStatus.FAILED, note=_truncate(str(exc), MAX_NOTE_CHARS))
            raise

        self._finish(run, counts, SyncRunStatus.SUCCESS)
        logger.info(
            "Sync finished: processed=%d created=%d updated=%d skipped=%d "
            "notFound=%d errors=%d duration=%dms",
            counts.processed,
            counts.created,
            counts.updated,
            counts.skipped,
            counts.not_found,
            counts.errors,
            run.duration_ms,
        )
        if self.article_sync.fallbacks:
            logger.warning(
                "🧭 %d articles classified as GERAL this run: %s",
                sum(self.article_sync.fallbacks.values()),
                dict(self.article_sync.fallbacks),
            )
        self._run_governance(run)
        return run

    def _claim(self, session, started: datetime) -> bool:
        """Set the running flag unless a live run already holds it."""
        stale_before = started - timedelta(minutes=STALE_RUN_MINUTES)
        stmt = (
            update(SyncConfig)
            .where(
                SyncConfig.id == CONFIG_ID,
                or_(
                    SyncConfig.running == false(),
                    SyncConfig.last_started_at.is_(None),
                    SyncConfig.last_started_at < stale_before,
                ),
            )
            .values(running=True, last_started_at=started)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def _finish(
        self,
        run: SyncRun,
        counts: SyncCounts,
        status: SyncRunStatus,
        note: str | None = None,
    ) -> None:
        finished = self.clock()
        with self.db.get_session() as session:
            counts.apply_to(run)
            run.status = status.value
            run.finished_at = finished
            run.duration_ms = int((finished - run.started_at).total_seconds() * 1000)
            if note is not None:
                run.note = note
            cfg = self._load_config(session)
            cfg.last_finished_at = finished
            cfg.running = False

    def _run_governance(self, run: SyncRun) -> None:
        try:
            pipeline = self.pipeline_factory()
            analyzed = pipeline.analyze_recent(RECENT_ANALYSIS_LIMIT)
            duplicates = pipeline.analyze_all_duplicates()
            logger.info(
                "Post-sync governance: %d articles analyzed, %d duplicate issues",
                analyzed,
                duplicates,
            )
        except Exception as exc:
            logger.warning(
                "Post-sync governance failed (run stays SUCCESS): %s", exc, exc_info=True
            )
            error_note = "[GOVERNANCE_ERROR] " + (_truncate(str(exc), MAX_GOVERNANCE_ERROR_CHARS) or "")
            with self.db.get_session():
                run.note = _truncate(
                    f"{run.note} | {error_note}" if run.note else error_note,
                    MAX_NOTE_CHARS,
                )

    def compute_since(self, days_back: int | None) -> datetime:
        now = self.clock()
        if days_back is not None and days_back > 0:
            since = now - timedelta(days=days_back)
        else:
            stmt = (
                select(SyncRun.finished_at)
                .where(
                    SyncRun.status == SyncRunStatus.SUCCESS.value,
                    SyncRun.finished_at.is_not(None),
                )
                .order_by(SyncRun.finished_at.desc())
                .limit(1)
            )
            with self.db.get_session() as session:
                last_success = session.execute(stmt).scalar()
            since = last_success or now - timedelta(days=DEFAULT_FALLBACK_DAYS)
        floor = now - timedelta(days=MAX_LOOKBACK_DAYS)
        return max(since, floor)

    def _sync_item(self, item: ArticleSearchItem, counts: SyncCounts) -> None:
        try:
            counts.record(self.article_sync.sync(item.id, menu=item.menu))
        except Exception as exc:
            logger.warning("Failed to sync article id=%s: %s", item.id, exc)
            counts.record_error()

    def _sync_full(self, counts: SyncCounts) -> None:
        page = 0
        total_size = None
        while page < MAX_PAGES:
            result = self.client.search_articles(page, self.page_size)
            if total_size is None:
                total_size = result.total_size
            logger.info(
                "FULL page=%d totalSize=%s items=%d", page, total_size, len(result.items)
            )
            if not result.items:
                break
            for item in result.items:
                if item.id is not None:
                    self._sync_item(item, counts)
            page += 1
            if total_size is not None and page * self.page_size >= total_size:
                break
        else:
            logger.warning("FULL sync stopped at the %d page safety limit", MAX_PAGES)

    def _sync_delta(self, counts: SyncCounts, since: datetime) -> None:
        logger.info("DELTA since=%s", since.isoformat())
        page = 0
        while page < MAX_PAGES:
            result = self.client.search_articles(page, self.page_size)
            if not result.items:
                break
            in_window = [
                item
                for item in result.items
                if item.id is not None
                and item.updated_date is not None
                and item.updated_date >= since
            ]
            for item in in_window:
                self._sync_item(item, counts)
            if not in_window or len(result.items) < self.page_size:
                break
            page += 1

#!/usr/bin/env python3
"""Long-running process driving the periodic governance work.

Each cycle:
1. Ticks the knowledge-base sync scheduler (when SYNC_SCHEDULER_ENABLED)
2. Ticks the governance analysis calendar (when GOVERNANCE_SCHEDULER_ENABLED)
3. Imports recent support tickets (when SUPPORT_IMPORT_ENABLED and due)

Failures in one step are logged and do not stop the others.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from kb_governance import config
from kb_governance.governance.pipeline import GovernancePipeline
from kb_governance.governance.scheduling import GovernanceScheduler
from kb_governance.models.database import DatabaseManager
from kb_governance.sync.client import MovideskClient
from kb_governance.sync.orchestrator import SyncOrchestrator
from kb_governance.sync.scheduler import SyncScheduler
from kb_governance.sync.support import SupportImportService
from kb_governance.utils.time import utcnow

# In containerized environments the platform adds timestamps.
logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

POLL_INTERVAL = int(os.getenv("POLL_INTERVAL", str(config.SYNC_TICK_SECONDS)))
SUPPORT_IMPORT_INTERVAL_MINUTES = int(os.getenv("SUPPORT_IMPORT_INTERVAL_MINUTES", "60"))


@dataclass
class ProcessorState:
    db: DatabaseManager
    sync_scheduler: SyncScheduler | None = None
    governance_scheduler: GovernanceScheduler | None = None
    support_import: SupportImportService | None = None
    last_support_import: datetime | None = None


def build_state(db: DatabaseManager | None = None) -> ProcessorState:
    db = db or DatabaseManager()
    state = ProcessorState(db=db)

    client = None
    if config.SYNC_SCHEDULER_ENABLED or config.SUPPORT_IMPORT_ENABLED:
        if config.MOVIDESK_TOKEN:
            client = MovideskClient.from_config()
        else:
            logger.warning("MOVIDESK_TOKEN not set; sync and support import disabled")

    if config.SYNC_SCHEDULER_ENABLED and client is not None:
        state.sync_scheduler = SyncScheduler(SyncOrchestrator(db, client))
    if config.GOVERNANCE_SCHEDULER_ENABLED:
        state.governance_scheduler = GovernanceScheduler(db, lambda: GovernancePipeline(db))
    if config.SUPPORT_IMPORT_ENABLED and client is not None:
        state.support_import = SupportImportService(db, client)
    return state


def support_import_due(state: ProcessorState, now: datetime) -> bool:
    if state.support_import is None:
        return False
    if state.last_support_import is None:
        return True
    return now >= state.last_support_import + timedelta(minutes=SUPPORT_IMPORT_INTERVAL_MINUTES)


def process_cycle(state: ProcessorState) -> dict[str, bool]:
    """Run one cycle. Returns which steps did work."""
    did_work = {"sync": False, "governance": False, "support_import": False}

    if state.sync_scheduler is not None:
        try:
            did_work["sync"] = state.sync_scheduler.tick()
        except Exception as exc:
            logger.exception("💥 Sync tick failed: %s", exc)

    if state.governance_scheduler is not None:
        try:
            did_work["governance"] = bool(state.governance_scheduler.tick())
        except Exception as exc:
            logger.exception("💥 Governance tick failed: %s", exc)

    now = utcnow()
    if support_import_due(state, now):
        state.last_support_import = now
        try:
            result = state.support_import.run_recent(config.SUPPORT_IMPORT_DAYS_BACK)
            logger.info(
                "Support import: created=%d updated=%d messages=%d",
                result.tickets_created,
                result.tickets_updated,
                result.messages_created,
            )
            did_work["support_import"] = True
        except Exception as exc:
            logger.exception("💥 Support import failed: %s", exc)

    return did_work


def main() -> None:
    """Main loop: tick every scheduler until interrupted."""
    logger.info("🚀 Starting continuous sync processor")
    logger.info("Configuration:")
    logger.info("  - Poll interval: %d seconds", POLL_INTERVAL)
    logger.info("  - Scheduler time zone: %s", config.SCHEDULER_TIMEZONE)
    logger.info("  - Sync scheduler: %s", "✅" if config.SYNC_SCHEDULER_ENABLED else "❌")
    logger.info(
        "  - Governance scheduler: %s",
        "✅" if config.GOVERNANCE_SCHEDULER_ENABLED else "❌",
    )
    logger.info("  - Support import: %s", "✅" if config.SUPPORT_IMPORT_ENABLED else "❌")

    state = build_state()
    if not any([state.sync_scheduler, state.governance_scheduler, state.support_import]):
        logger.warning("⚠️  No schedulers are enabled! Processor will be idle.")

    try:
        while True:
            try:
                process_cycle(state)
            except Exception as exc:
                logger.exception("💥 Unexpected error in main loop: %s", exc)
            time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        logger.info("⏹️  Received interrupt signal, shutting down")
    finally:
        state.db.close()


if __name__ == "__main__":
    main()

"""Turn ticket clusters that keep growing into detected needs."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import func, select

from kb_governance.models import (
    ClusterTicket,
    DetectedNeed,
    FaqCluster,
    RecurrenceRule,
    SupportTicket,
)
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

NEED_STATUS_OPEN = "OPEN"
TASK_STATUS_PENDING = "PENDING"


class RecurrenceService:
    def __init__(self, db, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    def count_in_window(self, session, cluster_id: int, cutoff: datetime) -> int:
        stmt = (
            select(func.count(ClusterTicket.id))
            .join(SupportTicket, SupportTicket.id == ClusterTicket.ticket_id)
            .where(
                ClusterTicket.cluster_id == cluster_id,
                SupportTicket.origin_created_at >= cutoff,
            )
        )
        return int(session.execute(stmt).scalar() or 0)

    def evaluate_rules(self) -> int:
        """Evaluate every active rule against every cluster.

        Returns the number of needs opened or refreshed.
        """
        touched = 0
        with self.db.get_session() as session:
            rules = list(
                session.execute(select(RecurrenceRule).where(RecurrenceRule.active.is_(True))).scalars()
            )
            if not rules:
                return 0
            cluster_ids = list(session.execute(select(FaqCluster.id)).scalars())
            for cluster_id in cluster_ids:
                for rule in rules:
                    if self._evaluate_cluster(session, rule, cluster_id):
                        touched += 1
        return touched

    def _evaluate_cluster(self, session, rule: RecurrenceRule, cluster_id: int) -> bool:
        now = self.clock()
        count = self.count_in_window(session, cluster_id, now - timedelta(days=rule.window_days))
        if count < rule.threshold_count:
            return False

        need = session.execute(
            select(DetectedNeed).where(
                DetectedNeed.cluster_id == cluster_id,
                DetectedNeed.rule_id == rule.id,
            )
        ).scalars().first()

        if need is not None and need.last_detected_at is not None:
            if now < need.last_detected_at + timedelta(hours=rule.cooldown_hours):
                return False

        if need is None:
            need = DetectedNeed(
                cluster_id=cluster_id,
                rule_id=rule.id,
                status=NEED_STATUS_OPEN,
                task_status=TASK_STATUS_PENDING,
            )
            session.add(need)
        need.last_detected_at = now
        session.flush()
        logger.info("Need detected: cluster=%s rule=%s count=%d", cluster_id, rule.id, count)
        return True

"""Follow-up actions on detected needs: internal task and master ticket."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select

from kb_governance import config
from kb_governance.errors import NotFoundError, ValidationError
from kb_governance.models import DetectedNeed, FaqCluster, RecurrenceRule
from kb_governance.sync.dto import TicketRequest
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

TASK_STATUS_CREATED = "CREATED"
NEED_TAGS = ("kb-governance", "recurrence-need")
SAMPLE_CHARS = 500


def build_need_description(cluster: FaqCluster, rule: RecurrenceRule) -> str:
    sample = (cluster.sample_text or "").strip()[:SAMPLE_CHARS]
    return (
        "NEED DETECTADO VIA RECORRÊNCIA\n\n"
        f"Cluster ID: {cluster.id}\n"
        f"Regra: {rule.name}\n"
        f"Janela (dias): {rule.window_days}\n"
        f"Limite: {rule.threshold_count}\n\n"
        "Exemplo de ticket:\n"
        f"{sample}\n"
    )


class NeedService:
    def __init__(
        self,
        db,
        client=None,
        *,
        client_id: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.client = client
        self.client_id = client_id if client_id is not None else config.MOVIDESK_TICKET_CLIENT_ID
        self.clock = clock

    def list_needs(self, status: str | None = None, limit: int = 100) -> list[DetectedNeed]:
        stmt = select(DetectedNeed)
        if status:
            stmt = stmt.where(DetectedNeed.status == status.upper())
        stmt = stmt.order_by(DetectedNeed.last_detected_at.desc(), DetectedNeed.id.desc()).limit(limit)
        with self.db.get_session() as session:
            return list(session.execute(stmt).scalars())

    def _load(self, session, need_id: int) -> DetectedNeed:
        need = session.get(DetectedNeed, need_id)
        if need is None:
            raise NotFoundError(f"Need not found: {need_id}")
        return need

    def get_need(self, need_id: int) -> DetectedNeed:
        with self.db.get_session() as session:
            return self._load(session, need_id)

    def create_task(self, need_id: int) -> DetectedNeed:
        with self.db.get_session() as session:
            need = self._load(session, need_id)
            need.task_status = TASK_STATUS_CREATED
            need.task_created_at = self.clock()
        logger.info("Task created for need %s", need_id)
        return need

    def create_master_ticket(self, need_id: int, actor: str | None = None) -> DetectedNeed:
        """Open the remote master ticket, or comment on the existing one."""
        if self.client is None:
            raise ValidationError("No remote client configured")

        with self.db.get_session() as session:
            need = self._load(session, need_id)
            if need.external_ticket_id:
                comment = (
                    "Need já possui ticket mestre. Atualização registrada por "
                    f"{actor or 'sistema'} em {self.clock().isoformat()}."
                )
                self.client.add_ticket_action(need.external_ticket_id, comment, actor)
                logger.info(
                    "Need %s already has ticket %s; comment appended",
                    need_id,
                    need.external_ticket_id,
                )
                return need

            if not self.client_id:
                raise ValidationError("MOVIDESK_TICKET_CLIENT_ID is not configured")

            cluster = session.get(FaqCluster, need.cluster_id)
            rule = session.get(RecurrenceRule, need.rule_id)
            if cluster is None or rule is None:
                raise NotFoundError(f"Need {need_id} references a missing cluster or rule")

            description = build_need_description(cluster, rule)
            request = TicketRequest(
                subject=f"[KB] Need detectado - Cluster {cluster.id}",
                description=description,
                client_id=self.client_id,
                created_by=actor or self.client_id,
                urgency="Baixa",
                service_first_level=config.MOVIDESK_TICKET_SERVICE,
                category=config.MOVIDESK_TICKET_CATEGORY,
                owner_team=config.MOVIDESK_TICKET_DEFAULT_TEAM,
                tags=list(NEED_TAGS),
            )
            created = self.client.create_ticket(request)
            need.external_ticket_id = created.id
        logger.info("Master ticket %s created for need %s", created.id, need_id)
        return need

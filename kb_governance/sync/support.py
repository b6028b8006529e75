"""Import helpdesk tickets, store their messages and cluster them."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select

from kb_governance.models import (
    ClusterTicket,
    FaqCluster,
    JobRun,
    SupportTicket,
    TicketMessage,
)
from kb_governance.sync import normalization
from kb_governance.sync.dto import RemoteTicket, TicketAction
from kb_governance.sync.recurrence import RecurrenceService
from kb_governance.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

JOB_NAME = "support-import"
SAMPLE_TEXT_CHARS = 400
OUTBOUND_ACTION_TYPE = 2


@dataclass(frozen=True)
class ImportResult:
    tickets_created: int = 0
    tickets_updated: int = 0
    messages_created: int = 0


def message_key(external_ticket_id: str, index: int, action: TicketAction) -> str:
    raw = f"{action.description or ''}\x1f{action.html_description or ''}"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:12]
    return f"{external_ticket_id}:{index}:{digest}"


def message_direction(action: TicketAction) -> str:
    return "OUT" if action.type == OUTBOUND_ACTION_TYPE else "IN"


def cluster_source_text(ticket: RemoteTicket) -> str:
    parts = []
    if ticket.subject:
        parts.append(ticket.subject)
    parts.extend(action.description for action in ticket.actions if action.description)
    return " ".join(parts)


class SupportImportService:
    """Pull tickets for a date range and feed the recurrence analysis."""

    def __init__(
        self,
        db,
        client,
        *,
        recurrence: RecurrenceService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.client = client
        self.clock = clock
        self.recurrence = recurrence or RecurrenceService(db, clock=clock)

    def run_recent(self, days_back: int) -> ImportResult:
        end = self.clock()
        return self.run_import(end - timedelta(days=days_back), end)

    def run_import(self, start: datetime, end: datetime) -> ImportResult:
        job = JobRun(job_name=JOB_NAME, status="RUNNING", started_at=self.clock())
        with self.db.get_session() as session:
            session.add(job)

        created = updated = messages = 0
        try:
            tickets = self.client.search_tickets(start, end)
            for remote in tickets:
                with self.db.get_session() as session:
                    ticket, is_new = self._upsert_ticket(session, remote)
                    if is_new:
                        created += 1
                    else:
                        updated += 1
                    messages += self._save_messages(session, ticket, remote.actions)
                    self._update_cluster(session, ticket, remote)
            needs = self.recurrence.evaluate_rules()
        except Exception as exc:
            logger.error("Support import failed: %s", exc, exc_info=True)
            with self.db.get_session():
                job.status = "FAILED"
                job.finished_at = self.clock()
                job.details = {"error": str(exc)[:500]}
            raise

        with self.db.get_session():
            job.status = "SUCCESS"
            job.finished_at = self.clock()
            job.details = {
                "ticketsCreated": created,
                "ticketsUpdated": updated,
                "messagesCreated": messages,
                "needsDetected": needs,
            }
        logger.info(
            "Support import finished: created=%d updated=%d messages=%d",
            created,
            updated,
            messages,
        )
        return ImportResult(created, updated, messages)

    def _upsert_ticket(self, session, remote: RemoteTicket) -> tuple[SupportTicket, bool]:
        ticket = session.execute(
            select(SupportTicket).where(SupportTicket.external_ticket_id == remote.id)
        ).scalars().first()
        is_new = ticket is None
        if is_new:
            ticket = SupportTicket(external_ticket_id=remote.id)
            session.add(ticket)
        ticket.protocol = remote.protocol
        ticket.subject = remote.subject
        ticket.status = remote.status
        ticket.owner_team = remote.owner_team
        ticket.requester = remote.requester
        if remote.created_date is not None:
            ticket.origin_created_at = to_naive_utc(remote.created_date)
        if remote.last_update is not None:
            ticket.origin_updated_at = to_naive_utc(remote.last_update)
            ticket.last_message_at = to_naive_utc(remote.last_update)
        session.flush()
        return ticket, is_new

    def _save_messages(self, session, ticket: SupportTicket, actions: list[TicketAction]) -> int:
        created = 0
        for index, action in enumerate(actions or []):
            key = message_key(ticket.external_ticket_id, index, action)
            exists = session.execute(
                select(TicketMessage.id).where(TicketMessage.external_message_key == key)
            ).first()
            if exists:
                continue
            session.add(
                TicketMessage(
                    ticket_id=ticket.id,
                    direction=message_direction(action),
                    author=action.created_by,
                    content=action.description,
                    content_html=action.html_description,
                    external_message_key=key,
                )
            )
            created += 1
        session.flush()
        return created

    def _update_cluster(self, session, ticket: SupportTicket, remote: RemoteTicket) -> FaqCluster | None:
        source = cluster_source_text(remote)
        normalized = normalization.normalize(source)
        if not normalized:
            return None
        fp = normalization.fingerprint(normalized)
        cluster = session.execute(
            select(FaqCluster).where(FaqCluster.fingerprint == fp)
        ).scalars().first()
        if cluster is None:
            cluster = FaqCluster(
                fingerprint=fp,
                normalized_text=normalized,
                sample_text=source.strip()[:SAMPLE_TEXT_CHARS],
                ticket_count=0,
            )
            session.add(cluster)
            session.flush()

        linked = session.execute(
            select(ClusterTicket.id).where(
                ClusterTicket.cluster_id == cluster.id,
                ClusterTicket.ticket_id == ticket.id,
            )
        ).first()
        if not linked:
            session.add(ClusterTicket(cluster_id=cluster.id, ticket_id=ticket.id))
            session.flush()
            cluster.ticket_count = session.execute(
                select(func.count(ClusterTicket.id)).where(ClusterTicket.cluster_id == cluster.id)
            ).scalar()
        return cluster

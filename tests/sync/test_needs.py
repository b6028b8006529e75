from datetime import timedelta

import pytest

from kb_governance.errors import NotFoundError, ValidationError
from kb_governance.models import DetectedNeed, FaqCluster, RecurrenceRule
from kb_governance.sync.needs import NEED_TAGS, NeedService, build_need_description


@pytest.fixture
def need(db, clock):
    with db.get_session() as session:
        cluster = FaqCluster(
            fingerprint="abc",
            normalized_text="erro ao emitir nota",
            sample_text="Erro ao emitir nota",
            ticket_count=5,
        )
        rule = RecurrenceRule(name="5 em 7 dias", window_days=7, threshold_count=5)
        session.add_all([cluster, rule])
        session.flush()
        need = DetectedNeed(
            cluster_id=cluster.id,
            rule_id=rule.id,
            status="OPEN",
            task_status="PENDING",
            last_detected_at=clock.now,
        )
        session.add(need)
    return need


def test_build_need_description_mentions_cluster_and_rule():
    cluster = FaqCluster(id=3, sample_text="  Erro ao emitir nota  ")
    rule = RecurrenceRule(name="regra", window_days=7, threshold_count=5)

    text = build_need_description(cluster, rule)

    assert text.startswith("NEED DETECTADO VIA RECORRÊNCIA")
    assert "Cluster ID: 3" in text
    assert "Regra: regra" in text
    assert "Limite: 5" in text
    assert "Erro ao emitir nota\n" in text


def test_list_needs_filters_by_status(db, need, clock):
    with db.get_session() as session:
        other_rule = RecurrenceRule(name="outra", window_days=30, threshold_count=10)
        session.add(other_rule)
        session.flush()
        session.add(
            DetectedNeed(
                cluster_id=need.cluster_id,
                rule_id=other_rule.id,
                status="CLOSED",
                last_detected_at=clock.now - timedelta(days=1),
            )
        )
    service = NeedService(db)

    assert [n.id for n in service.list_needs()][0] == need.id
    assert len(service.list_needs()) == 2
    assert [n.id for n in service.list_needs(status="open")] == [need.id]
    assert len(service.list_needs(limit=1)) == 1


def test_create_task_marks_need(db, need, clock):
    updated = NeedService(db, clock=clock).create_task(need.id)

    assert updated.task_status == "CREATED"
    assert updated.task_created_at == clock.now


def test_unknown_need_raises(db):
    with pytest.raises(NotFoundError):
        NeedService(db).get_need(999)
    with pytest.raises(NotFoundError):
        NeedService(db).create_task(999)


def test_master_ticket_requires_client(db, need):
    with pytest.raises(ValidationError):
        NeedService(db).create_master_ticket(need.id)


def test_master_ticket_requires_client_id(db, need, helpdesk):
    with pytest.raises(ValidationError):
        NeedService(db, helpdesk, client_id="").create_master_ticket(need.id)
    assert helpdesk.created_tickets == []


def test_master_ticket_created_once_then_commented(db, need, helpdesk, clock):
    service = NeedService(db, helpdesk, client_id="client-1", clock=clock)

    created = service.create_master_ticket(need.id, actor="agent-7")

    assert created.external_ticket_id == "5001"
    (request,) = helpdesk.created_tickets
    assert request.subject == f"[KB] Need detectado - Cluster {need.cluster_id}"
    assert request.urgency == "Baixa"
    assert request.client_id == "client-1"
    assert request.created_by == "agent-7"
    assert request.tags == list(NEED_TAGS)
    assert "Regra: 5 em 7 dias" in request.description

    again = service.create_master_ticket(need.id, actor="agent-8")

    assert again.external_ticket_id == "5001"
    assert len(helpdesk.created_tickets) == 1
    ((ticket_id, comment, author),) = helpdesk.ticket_actions
    assert ticket_id == "5001"
    assert "agent-8" in comment
    assert author == "agent-8"


def test_master_ticket_defaults_author_to_client_id(db, need, helpdesk):
    NeedService(db, helpdesk, client_id="client-1").create_master_ticket(need.id)
    assert helpdesk.created_tickets[0].created_by == "client-1"

from datetime import datetime, timedelta

import pytest

from kb_governance.errors import ConflictError, NotFoundError, ValidationError
from kb_governance.governance.issues import IssueStore
from kb_governance.governance.workflow import IssueWorkflow
from kb_governance.models import IssueStatus, IssueType, Severity


@pytest.fixture
def store(db, clock):
    return IssueStore(db, clock=clock)


@pytest.fixture
def workflow(db, clock):
    return IssueWorkflow(db, clock=clock)


@pytest.fixture
def issue(store, make_article):
    article = make_article()
    return store.open(article.id, IssueType.OUTDATED_CONTENT, Severity.WARN, "antigo", None)


def _actions(workflow, issue_id):
    return [row.action for row in reversed(workflow.get_history(issue_id))]


def test_assign_sets_responsible_and_status(workflow, issue):
    updated = workflow.assign(issue.id, "ana", actor="lead")

    assert updated.status == IssueStatus.ASSIGNED.value
    assert updated.responsible_id == "ana"
    assert updated.responsible_type == "USER"
    assert _actions(workflow, issue.id) == ["OPENED", "ASSIGNED"]


def test_assign_with_due_date_overrides_sla(workflow, issue):
    due = datetime(2025, 4, 1, 18, 0)
    updated = workflow.assign(issue.id, "ana", responsible_type="TEAM", due_date=due)
    assert updated.sla_due_at == due
    assert updated.responsible_type == "TEAM"


def test_assign_requires_responsible(workflow, issue):
    with pytest.raises(ValidationError):
        workflow.assign(issue.id, "   ")


def test_assign_terminal_issue_rejected(workflow, issue):
    workflow.change_status(issue.id, IssueStatus.RESOLVED, "ana")
    with pytest.raises(ValidationError):
        workflow.assign(issue.id, "ana")


def test_unassign_returns_to_open(workflow, issue):
    workflow.assign(issue.id, "ana")
    updated = workflow.unassign(issue.id, "lead")

    assert updated.status == IssueStatus.OPEN.value
    assert updated.responsible_id is None
    assert _actions(workflow, issue.id)[-1] == "UNASSIGNED"


def test_ignore_requires_reason(workflow, issue):
    with pytest.raises(ValidationError):
        workflow.change_status(issue.id, "IGNORED", "ana", ignored_reason="  ")
    assert _actions(workflow, issue.id) == ["OPENED"]


def test_ignore_with_reason(workflow, issue):
    updated = workflow.change_status(
        issue.id, "ignored", "ana", ignored_reason=" manual descontinuado "
    )
    assert updated.status == IssueStatus.IGNORED.value
    assert updated.ignored_reason == "manual descontinuado"


def test_status_to_assigned_without_responsible_rejected(workflow, issue):
    with pytest.raises(ValidationError):
        workflow.change_status(issue.id, IssueStatus.ASSIGNED, "ana")


def test_unknown_status_rejected(workflow, issue):
    with pytest.raises(ValidationError):
        workflow.change_status(issue.id, "DONE", "ana")


def test_same_status_is_noop(workflow, issue):
    workflow.change_status(issue.id, IssueStatus.OPEN, "ana")
    assert _actions(workflow, issue.id) == ["OPENED"]


def test_resolve_stamps_resolved_at(workflow, issue, clock):
    clock.advance(hours=3)
    updated = workflow.change_status(issue.id, IssueStatus.RESOLVED, "ana")
    assert updated.resolved_at == clock.now


def test_ignored_is_final(workflow, issue):
    workflow.change_status(issue.id, IssueStatus.IGNORED, "ana", ignored_reason="ok")
    with pytest.raises(ValidationError):
        workflow.change_status(issue.id, IssueStatus.OPEN, "ana")


def test_reopen_restarts_sla_from_now(workflow, issue, clock):
    workflow.change_status(issue.id, IssueStatus.RESOLVED, "ana")
    clock.advance(days=40)

    reopened = workflow.reopen(issue.id, "lead")

    assert reopened.status == IssueStatus.OPEN.value
    assert reopened.resolved_at is None
    assert reopened.sla_due_at == clock.now + timedelta(days=15)
    assert _actions(workflow, issue.id) == ["OPENED", "STATUS_CHANGED", "REOPENED"]


def test_reopen_requires_resolved(workflow, issue):
    with pytest.raises(ValidationError):
        workflow.reopen(issue.id, "lead")


def test_reopen_conflicts_with_newer_live_issue(workflow, store, issue):
    workflow.change_status(issue.id, IssueStatus.RESOLVED, "ana")
    newer = store.open(issue.article_id, IssueType.OUTDATED_CONTENT, Severity.WARN, "x", None)
    assert newer.id != issue.id

    with pytest.raises(ConflictError):
        workflow.reopen(issue.id, "lead")


def test_resolved_to_open_via_status_change_reopens(workflow, issue, clock):
    workflow.change_status(issue.id, IssueStatus.RESOLVED, "ana")
    clock.advance(days=1)
    updated = workflow.change_status(issue.id, IssueStatus.OPEN, "ana")
    assert updated.sla_due_at == clock.now + timedelta(days=15)
    assert _actions(workflow, issue.id)[-1] == "REOPENED"


def test_update_status_if_open(workflow, issue):
    moved = workflow.update_status_if_open(
        issue.article_id, IssueType.OUTDATED_CONTENT, IssueStatus.IN_PROGRESS, "bot"
    )
    assert moved.id == issue.id
    assert moved.status == IssueStatus.IN_PROGRESS.value

    assert (
        workflow.update_status_if_open(
            issue.article_id, IssueType.NOT_AI_READY, IssueStatus.RESOLVED, "bot"
        )
        is None
    )


def test_bulk_update_counts_changed_only(workflow, store, make_article, issue):
    other = store.open(
        make_article().id, IssueType.OUTDATED_CONTENT, Severity.INFO, "x", None
    )
    workflow.change_status(other.id, IssueStatus.IN_PROGRESS, "ana")

    changed = workflow.bulk_update_status([issue.id, other.id], "IN_PROGRESS", "ana")

    assert changed == 1


def test_bulk_update_is_atomic(workflow, issue):
    with pytest.raises(NotFoundError):
        workflow.bulk_update_status([issue.id, 999999], IssueStatus.RESOLVED, "ana")
    assert _actions(workflow, issue.id) == ["OPENED"]


def test_history_for_unknown_issue_raises(workflow):
    with pytest.raises(NotFoundError):
        workflow.get_history(31337)


def test_history_rows_use_injected_clock(workflow, issue, clock):
    opened_at = clock.now
    clock.advance(hours=3)
    workflow.assign(issue.id, "ana", actor="lead")
    clock.advance(days=1)
    resolved = workflow.change_status(issue.id, "RESOLVED", actor="ana")

    stamps = [(row.action, row.created_at) for row in reversed(workflow.get_history(issue.id))]
    assert stamps == [
        ("OPENED", opened_at),
        ("ASSIGNED", opened_at + timedelta(hours=3)),
        ("STATUS_CHANGED", clock.now),
    ]
    assert resolved.updated_at == clock.now

from datetime import datetime

import pytest

from kb_governance.cli.commands import support as support_command
from kb_governance.models import DetectedNeed, FaqCluster, RecurrenceRule
from kb_governance.sync.support import ImportResult


def _seed_need(db):
    with db.get_session() as session:
        cluster = FaqCluster(fingerprint="fp", sample_text="Erro", ticket_count=3)
        rule = RecurrenceRule(name="r", window_days=7, threshold_count=3)
        session.add_all([cluster, rule])
        session.flush()
        need = DetectedNeed(
            cluster_id=cluster.id,
            rule_id=rule.id,
            last_detected_at=datetime(2025, 3, 1),
        )
        session.add(need)
    return need


def test_support_import_with_explicit_range(cli_db, run_cli, capsys, monkeypatch, mocker):
    run_import = mocker.patch(
        "kb_governance.sync.support.SupportImportService.run_import",
        return_value=ImportResult(2, 1, 5),
    )
    monkeypatch.setattr(support_command, "build_client", lambda: object())

    result = run_cli(
        "support-import", "--start", "2025-01-01T00:00:00", "--end", "2025-01-02T00:00:00"
    )

    assert result == 0
    run_import.assert_called_once_with(datetime(2025, 1, 1), datetime(2025, 1, 2))
    out = capsys.readouterr().out
    assert "Tickets created:  2" in out
    assert "Messages created: 5" in out


def test_support_import_rejects_bad_date(cli_db, run_cli):
    with pytest.raises(SystemExit) as excinfo:
        run_cli("support-import", "--start", "ontem")
    assert excinfo.value.code == 2


def test_needs_list_and_task(cli_db, run_cli, capsys):
    need = _seed_need(cli_db)

    assert run_cli("needs") == 0
    assert run_cli("needs", "create-task", str(need.id)) == 0

    out = capsys.readouterr().out
    assert "Detected needs (1)" in out
    assert f"Need {need.id} task status: CREATED" in out


def test_needs_master_ticket(cli_db, run_cli, capsys, monkeypatch, mocker):
    need = _seed_need(cli_db)
    client = mocker.Mock()
    client.create_ticket.return_value = mocker.Mock(id="777")
    monkeypatch.setattr(support_command, "build_client", lambda: client)
    monkeypatch.setattr("kb_governance.config.MOVIDESK_TICKET_CLIENT_ID", "client-1")

    assert run_cli("needs", "master-ticket", str(need.id), "--actor", "agent") == 0

    assert "master ticket: 777" in capsys.readouterr().out
    request = client.create_ticket.call_args.args[0]
    assert request.client_id == "client-1"
    assert request.created_by == "agent"


def test_needs_unknown_id(cli_db, run_cli, capsys):
    assert run_cli("needs", "create-task", "404") == 1
    assert "[not_found/404]" in capsys.readouterr().out

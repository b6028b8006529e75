"""Tests for orchestration/continuous_sync.py"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from kb_governance.sync.support import ImportResult
from kb_governance.utils.time import utcnow
from orchestration import continuous_sync


@pytest.fixture
def state():
    sync_scheduler = MagicMock()
    sync_scheduler.tick.return_value = True
    governance_scheduler = MagicMock()
    governance_scheduler.tick.return_value = []
    support_import = MagicMock()
    support_import.run_recent.return_value = ImportResult(1, 2, 3)
    return continuous_sync.ProcessorState(
        db=MagicMock(),
        sync_scheduler=sync_scheduler,
        governance_scheduler=governance_scheduler,
        support_import=support_import,
    )


def test_process_cycle_runs_every_step(state):
    result = continuous_sync.process_cycle(state)

    assert result == {"sync": True, "governance": False, "support_import": True}
    state.sync_scheduler.tick.assert_called_once()
    state.governance_scheduler.tick.assert_called_once()
    state.support_import.run_recent.assert_called_once()
    assert state.last_support_import is not None


def test_failing_step_does_not_block_others(state):
    state.sync_scheduler.tick.side_effect = RuntimeError("sync exploded")
    state.governance_scheduler.tick.return_value = ["governance-daily"]

    result = continuous_sync.process_cycle(state)

    assert result == {"sync": False, "governance": True, "support_import": True}


def test_support_import_failure_is_logged(state, caplog):
    state.support_import.run_recent.side_effect = RuntimeError("helpdesk down")

    result = continuous_sync.process_cycle(state)

    assert result["support_import"] is False
    assert "Support import failed" in caplog.text


def test_support_import_waits_for_interval(state):
    state.last_support_import = utcnow() - timedelta(minutes=5)

    continuous_sync.process_cycle(state)

    state.support_import.run_recent.assert_not_called()


def test_support_import_due():
    now = utcnow()
    empty = continuous_sync.ProcessorState(db=MagicMock())
    assert continuous_sync.support_import_due(empty, now) is False

    state = continuous_sync.ProcessorState(db=MagicMock(), support_import=MagicMock())
    assert continuous_sync.support_import_due(state, now) is True
    state.last_support_import = now - timedelta(
        minutes=continuous_sync.SUPPORT_IMPORT_INTERVAL_MINUTES
    )
    assert continuous_sync.support_import_due(state, now) is True


def test_build_state_without_token_skips_remote_work(monkeypatch):
    monkeypatch.setattr(continuous_sync.config, "SYNC_SCHEDULER_ENABLED", True)
    monkeypatch.setattr(continuous_sync.config, "SUPPORT_IMPORT_ENABLED", True)
    monkeypatch.setattr(continuous_sync.config, "GOVERNANCE_SCHEDULER_ENABLED", True)
    monkeypatch.setattr(continuous_sync.config, "MOVIDESK_TOKEN", "")

    state = continuous_sync.build_state(db=MagicMock())

    assert state.sync_scheduler is None
    assert state.support_import is None
    assert state.governance_scheduler is not None


def test_build_state_with_token_wires_everything(monkeypatch):
    monkeypatch.setattr(continuous_sync.config, "SYNC_SCHEDULER_ENABLED", True)
    monkeypatch.setattr(continuous_sync.config, "SUPPORT_IMPORT_ENABLED", True)
    monkeypatch.setattr(continuous_sync.config, "GOVERNANCE_SCHEDULER_ENABLED", False)
    monkeypatch.setattr(continuous_sync.config, "MOVIDESK_TOKEN", "secret")

    with patch("orchestration.continuous_sync.MovideskClient") as client_cls:
        state = continuous_sync.build_state(db=MagicMock())

    client_cls.from_config.assert_called_once()
    assert state.sync_scheduler is not None
    assert state.support_import is not None
    assert state.governance_scheduler is None


def test_main_closes_database_on_interrupt(monkeypatch):
    state = continuous_sync.ProcessorState(db=MagicMock())
    monkeypatch.setattr(continuous_sync, "build_state", lambda: state)
    monkeypatch.setattr(continuous_sync, "process_cycle", MagicMock())
    monkeypatch.setattr(
        continuous_sync.time, "sleep", MagicMock(side_effect=KeyboardInterrupt)
    )

    continuous_sync.main()

    continuous_sync.process_cycle.assert_called_once_with(state)
    state.db.close.assert_called_once()

"""Fixtures for exercising CLI handlers against a scratch database."""

import pytest

from kb_governance.models.database import DatabaseManager


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    """Point DatabaseManager() at a fresh SQLite file and yield a handle to it."""
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    manager = DatabaseManager(database_url=url)
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def run_cli():
    from kb_governance.cli import cli_modular

    def _run(*argv):
        return cli_modular.main(list(argv), setup_logging_func=lambda _level: None)

    return _run

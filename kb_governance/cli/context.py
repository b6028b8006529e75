"""Shared helpers for CLI commands: logging setup and service wiring."""

from __future__ import annotations

import logging
import sys

from kb_governance.errors import describe_failure

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for a CLI invocation."""
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def build_client():
    from kb_governance.sync.client import MovideskClient

    return MovideskClient.from_config()


def report_failure(exc: BaseException, action: str) -> int:
    """Print a stable failure line for ``exc`` and return exit code 1."""
    report = describe_failure(exc, logger)
    print(f"❌ {action} failed [{report.category}/{report.status}]: {report.message}")
    return 1

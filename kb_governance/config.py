"""Centralised runtime configuration loaded from environment variables.

Values are resolved once at import time. Tests that need different values
should ``monkeypatch`` the module attribute rather than the environment.
"""

from __future__ import annotations

import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/kb_governance.db")

# Remote helpdesk / knowledge base API
MOVIDESK_BASE_URL = os.getenv(
    "MOVIDESK_BASE_URL", "https://api.movidesk.com/public/v1"
).rstrip("/")
MOVIDESK_TOKEN = os.getenv("MOVIDESK_TOKEN", "")
MOVIDESK_CONNECT_TIMEOUT = float(os.getenv("MOVIDESK_CONNECT_TIMEOUT", "5"))
MOVIDESK_READ_TIMEOUT = float(os.getenv("MOVIDESK_READ_TIMEOUT", "30"))
MOVIDESK_RETRY_ATTEMPTS = int(os.getenv("MOVIDESK_RETRY_ATTEMPTS", "1"))
MOVIDESK_BACKOFF_SECONDS = float(os.getenv("MOVIDESK_BACKOFF_SECONDS", "0.5"))

# Ticket defaults used when opening master tickets
MOVIDESK_TICKET_SERVICE = os.getenv("MOVIDESK_TICKET_SERVICE", "Base de Conhecimento")
MOVIDESK_TICKET_CATEGORY = os.getenv("MOVIDESK_TICKET_CATEGORY", "Governança")
MOVIDESK_TICKET_CLIENT_ID = os.getenv("MOVIDESK_TICKET_CLIENT_ID", "")
MOVIDESK_TICKET_DEFAULT_TEAM = os.getenv(
    "MOVIDESK_TICKET_DEFAULT_TEAM", "ERP - EMPRESARIAL"
)

KB_PUBLIC_BASE_URL = os.getenv(
    "KB_PUBLIC_BASE_URL", "https://consisanet.movidesk.com/kb/pt-br/article/"
)

# Schedulers
SYNC_SCHEDULER_ENABLED = _env_flag("SYNC_SCHEDULER_ENABLED", "false")
SYNC_TICK_SECONDS = int(os.getenv("SYNC_TICK_SECONDS", "30"))
SYNC_RESPECT_WORKING_HOURS = _env_flag("SYNC_RESPECT_WORKING_HOURS", "true")
GOVERNANCE_SCHEDULER_ENABLED = _env_flag("GOVERNANCE_SCHEDULER_ENABLED", "true")
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "America/Sao_Paulo")

# Support ticket import
SUPPORT_IMPORT_ENABLED = _env_flag("SUPPORT_IMPORT_ENABLED", "false")
SUPPORT_IMPORT_DAYS_BACK = int(os.getenv("SUPPORT_IMPORT_DAYS_BACK", "2"))

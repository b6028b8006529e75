"""Closed vocabularies stored as strings in the database."""

from __future__ import annotations

from enum import Enum


class IssueType(str, Enum):
    INCOMPLETE_CONTENT = "INCOMPLETE_CONTENT"
    DUPLICATE_CONTENT = "DUPLICATE_CONTENT"
    INCONSISTENT_CONTENT = "INCONSISTENT_CONTENT"
    OUTDATED_CONTENT = "OUTDATED_CONTENT"
    NOT_AI_READY = "NOT_AI_READY"
    REVIEW_REQUIRED = "REVIEW_REQUIRED"


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class IssueStatus(str, Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    IGNORED = "IGNORED"

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATUSES


LIVE_STATUSES = frozenset(
    {IssueStatus.OPEN, IssueStatus.ASSIGNED, IssueStatus.IN_PROGRESS}
)
TERMINAL_STATUSES = frozenset({IssueStatus.RESOLVED, IssueStatus.IGNORED})


class HistoryAction(str, Enum):
    OPENED = "OPENED"
    ASSIGNED = "ASSIGNED"
    UNASSIGNED = "UNASSIGNED"
    STATUS_CHANGED = "STATUS_CHANGED"
    REOPENED = "REOPENED"


class SyncMode(str, Enum):
    FULL = "FULL"
    DELTA = "DELTA"


class SyncRunStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

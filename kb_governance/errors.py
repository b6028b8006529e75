"""Error taxonomy shared by the governance core and its entry points.

Callers need to tell apart three outcomes: nothing happened (validation or
conflict rejections), something partially happened (integration failures
surfaced mid-run) and something unexpected broke. ``describe_failure`` maps
any exception onto a stable category so CLI and scheduler entry points can
report it without leaking internals.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_BODY_LOG_CHARS = 1500


class GovernanceError(Exception):
    """Base class for errors raised deliberately by this package."""

    category = "error"
    status = 500


class ValidationError(GovernanceError):
    """Input to an operation was rejected before anything changed."""

    category = "validation"
    status = 400


class NotFoundError(GovernanceError):
    """A referenced issue, need or article does not exist."""

    category = "not_found"
    status = 404


class ConflictError(GovernanceError):
    """The operation collides with one already in progress."""

    category = "conflict"
    status = 409


class IntegrationError(GovernanceError):
    """The remote API answered with an error or could not be reached.

    ``status_code`` is set for HTTP error responses, ``network`` for
    timeouts, DNS and connection failures.
    """

    category = "integration"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        network: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = truncate_body(body)
        self.network = network

    @property
    def status(self) -> int:  # type: ignore[override]
        return self.status_code or 502

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def truncate_body(body: str | None, limit: int = MAX_BODY_LOG_CHARS) -> str:
    """Return ``body`` cut to ``limit`` characters for log output."""
    if not body:
        return ""
    if len(body) <= limit:
        return body
    return body[:limit] + "...(truncated)"


@dataclass(frozen=True)
class FailureReport:
    category: str
    status: int
    message: str
    correlation_id: str | None = None


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def describe_failure(
    exc: BaseException, log: logging.Logger | None = None
) -> FailureReport:
    """Classify ``exc`` into a report safe to hand back to a caller."""
    log = log or logger
    if isinstance(exc, GovernanceError):
        log.warning("%s failure: %s", exc.category, exc)
        return FailureReport(
            category=exc.category,
            status=exc.status,
            message=str(exc),
        )

    correlation_id = new_correlation_id()
    log.exception(
        "Unexpected failure (correlation_id=%s): %s",
        correlation_id,
        exc,
        exc_info=exc,
    )
    return FailureReport(
        category="internal",
        status=500,
        message=f"Unexpected error. Reference: {correlation_id}",
        correlation_id=correlation_id,
    )

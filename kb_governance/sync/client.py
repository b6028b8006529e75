"""HTTP client for the remote helpdesk / knowledge-base API."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import requests
from requests import Session
from requests.exceptions import RequestException, Timeout

from kb_governance import config
from kb_governance.errors import IntegrationError, truncate_body
from kb_governance.sync.dto import (
    ArticleSearchPage,
    CreatedTicket,
    RemoteArticle,
    RemoteTicket,
    TicketRequest,
)

LOG = logging.getLogger(__name__)

TICKET_PAGE_SIZE = 100
_RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
_DEFAULT_HEADERS: dict[str, str] = {"Accept": "application/json"}


def _odata_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class MovideskClient:
    """Thin wrapper over the public API.

    Every request carries the ``token`` query parameter and a
    ``(connect, read)`` timeout. HTTP error responses and network failures
    both surface as :class:`IntegrationError`; only GET requests are
    retried, and only for network errors or transient status codes.
    """

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        *,
        http_session: Session | None = None,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        retry_attempts: int | None = None,
        backoff_seconds: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.token = token
        self.base_url = (base_url or config.MOVIDESK_BASE_URL).rstrip("/")
        self.session = http_session or requests.Session()
        self.session.headers.update(_DEFAULT_HEADERS)
        self.timeout = (
            connect_timeout if connect_timeout is not None else config.MOVIDESK_CONNECT_TIMEOUT,
            read_timeout if read_timeout is not None else config.MOVIDESK_READ_TIMEOUT,
        )
        attempts = retry_attempts if retry_attempts is not None else config.MOVIDESK_RETRY_ATTEMPTS
        self.retry_attempts = max(1, attempts)
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else config.MOVIDESK_BACKOFF_SECONDS
        )
        self.log = logger or LOG

    @classmethod
    def from_config(cls, **kwargs) -> MovideskClient:
        """Build a client from ``MOVIDESK_*`` settings."""
        if not config.MOVIDESK_TOKEN:
            raise IntegrationError("MOVIDESK_TOKEN is not configured")
        return cls(config.MOVIDESK_TOKEN, config.MOVIDESK_BASE_URL, **kwargs)

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        query = dict(params or {})
        query["token"] = self.token
        attempts = self.retry_attempts if method == "GET" else 1

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.request(
                    method,
                    url,
                    params=query,
                    json=json_body,
                    timeout=self.timeout,
                )
            except (Timeout, RequestException) as exc:
                if attempt < attempts:
                    self._sleep(attempt)
                    continue
                self.log.error("Network error calling %s: %s", operation, exc)
                raise IntegrationError(
                    f"{operation}: network failure ({exc})", network=True
                ) from exc

            if response.status_code >= 400:
                if response.status_code in _RETRYABLE_STATUS_CODES and attempt < attempts:
                    self._sleep(attempt)
                    continue
                body = response.text or ""
                self.log.error(
                    "Remote error on %s status=%s body=%s",
                    operation,
                    response.status_code,
                    truncate_body(body),
                )
                raise IntegrationError(
                    f"{operation}: HTTP {response.status_code}",
                    status_code=response.status_code,
                    body=body,
                )

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise IntegrationError(
                    f"{operation}: invalid JSON response",
                    status_code=response.status_code,
                    body=response.text,
                ) from exc
        return None

    def _sleep(self, attempt: int) -> None:
        delay = self.backoff_seconds * (2 ** (attempt - 1))
        if delay > 0:
            time.sleep(delay)

    # ------------------------------------------------------------------
    # Knowledge base
    # ------------------------------------------------------------------
    def get_article(self, article_id: int) -> RemoteArticle:
        self.log.debug("Fetching article id=%s", article_id)
        payload = self._request(
            "GET", f"/article/{article_id}", operation=f"get_article id={article_id}"
        )
        if not payload:
            raise IntegrationError(
                f"get_article id={article_id}: empty response", status_code=404
            )
        return RemoteArticle.from_payload(payload)

    def search_articles(self, page: int, page_size: int) -> ArticleSearchPage:
        self.log.debug("Searching articles page=%d pageSize=%d", page, page_size)
        payload = self._request(
            "GET",
            "/kb/article",
            operation=f"search_articles page={page}",
            params={"page": page, "pageSize": page_size, "status": 1},
        )
        return ArticleSearchPage.from_payload(payload)

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------
    def create_ticket(self, request: TicketRequest) -> CreatedTicket:
        self.log.info("Creating ticket subject=%r", request.subject)
        payload = self._request(
            "POST", "/tickets", operation="create_ticket", json_body=request.to_payload()
        )
        created = CreatedTicket.from_payload(payload)
        self.log.info("Ticket created id=%s protocol=%s", created.id, created.protocol)
        return created

    def search_tickets(self, start: datetime, end: datetime) -> list[RemoteTicket]:
        """Tickets whose ``lastUpdate`` falls in ``[start, end]``."""
        flt = (
            f"lastUpdate ge {_odata_timestamp(start)} "
            f"and lastUpdate le {_odata_timestamp(end)}"
        )
        tickets: list[RemoteTicket] = []
        skip = 0
        while True:
            payload = self._request(
                "GET",
                "/tickets",
                operation=f"search_tickets skip={skip}",
                params={
                    "$filter": flt,
                    "$expand": "actions,clients",
                    "$orderby": "lastUpdate",
                    "$top": TICKET_PAGE_SIZE,
                    "$skip": skip,
                },
            )
            batch = [item for item in payload or [] if isinstance(item, dict)]
            tickets.extend(RemoteTicket.from_payload(item) for item in batch)
            if len(batch) < TICKET_PAGE_SIZE:
                break
            skip += TICKET_PAGE_SIZE
        self.log.info("Fetched %d tickets updated between %s and %s", len(tickets), start, end)
        return tickets

    def add_ticket_action(
        self, ticket_id: str, description: str, created_by: str | None = None
    ) -> None:
        action: dict[str, Any] = {"type": 1, "description": description}
        if created_by:
            action["createdBy"] = {"id": created_by}
        self._request(
            "PATCH",
            "/tickets",
            operation=f"add_ticket_action id={ticket_id}",
            params={"id": ticket_id},
            json_body={"actions": [action]},
        )

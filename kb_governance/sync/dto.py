"""Typed views over the remote helpdesk JSON payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from kb_governance.utils.time import parse_remote_datetime


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass
class RemoteMenu:
    id: int | None
    name: str | None

    @classmethod
    def from_payload(cls, payload: dict | None) -> RemoteMenu | None:
        if not payload:
            return None
        return cls(id=_int_or_none(payload.get("id")), name=payload.get("name"))


@dataclass
class RemoteArticle:
    id: int | None
    title: str | None = None
    slug: str | None = None
    summary: str | None = None
    article_status: int | None = None
    content_html: str | None = None
    content_text: str | None = None
    revision_id: int | None = None
    reading_time: int | None = None
    created_date: datetime | None = None
    updated_date: datetime | None = None
    menu: RemoteMenu | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> RemoteArticle:
        return cls(
            id=_int_or_none(payload.get("id")),
            title=payload.get("title"),
            slug=payload.get("slug"),
            summary=payload.get("summary"),
            article_status=_int_or_none(payload.get("articleStatus")),
            content_html=payload.get("contentHtml"),
            content_text=payload.get("contentText"),
            revision_id=_int_or_none(payload.get("revisionId")),
            reading_time=_int_or_none(payload.get("readingTime")),
            created_date=parse_remote_datetime(payload.get("createdDate")),
            updated_date=parse_remote_datetime(payload.get("updatedDate")),
            menu=RemoteMenu.from_payload(payload.get("menu")),
        )


@dataclass
class ArticleSearchItem:
    id: int | None
    title: str | None = None
    status: int | None = None
    updated_date: datetime | None = None
    revision_id: int | None = None
    menu: RemoteMenu | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> ArticleSearchItem:
        return cls(
            id=_int_or_none(payload.get("id")),
            title=payload.get("title"),
            status=_int_or_none(payload.get("status")),
            updated_date=parse_remote_datetime(payload.get("updatedDate")),
            revision_id=_int_or_none(payload.get("revisionId")),
            menu=RemoteMenu.from_payload(payload.get("menu")),
        )


@dataclass
class ArticleSearchPage:
    page_size: int
    total_size: int | None
    items: list[ArticleSearchItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict | None) -> ArticleSearchPage:
        payload = payload or {}
        items = [
            ArticleSearchItem.from_payload(item)
            for item in payload.get("items") or []
            if isinstance(item, dict)
        ]
        return cls(
            page_size=_int_or_none(payload.get("pageSize")) or len(items),
            total_size=_int_or_none(payload.get("totalSize")),
            items=items,
        )


@dataclass
class TicketAction:
    type: int | None
    description: str | None
    html_description: str | None
    created_by: str | None

    @classmethod
    def from_payload(cls, payload: dict) -> TicketAction:
        created_by = payload.get("createdBy") or {}
        return cls(
            type=_int_or_none(payload.get("type")),
            description=payload.get("description"),
            html_description=payload.get("htmlDescription"),
            created_by=created_by.get("businessName") if isinstance(created_by, dict) else None,
        )


@dataclass
class RemoteTicket:
    id: str
    protocol: str | None = None
    subject: str | None = None
    status: str | None = None
    owner_team: str | None = None
    requester: str | None = None
    created_date: datetime | None = None
    last_update: datetime | None = None
    actions: list[TicketAction] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> RemoteTicket:
        clients = payload.get("clients") or []
        requester = None
        if clients and isinstance(clients[0], dict):
            requester = clients[0].get("businessName")
        return cls(
            id=str(payload.get("id")),
            protocol=payload.get("protocol"),
            subject=payload.get("subject"),
            status=payload.get("status"),
            owner_team=payload.get("ownerTeam"),
            requester=requester,
            created_date=parse_remote_datetime(payload.get("createdDate")),
            last_update=parse_remote_datetime(payload.get("lastUpdate")),
            actions=[
                TicketAction.from_payload(action)
                for action in payload.get("actions") or []
                if isinstance(action, dict)
            ],
        )


@dataclass
class TicketRequest:
    """Body for ticket creation. Fields left as ``None`` are not sent."""

    subject: str
    description: str
    client_id: str
    created_by: str | None = None
    urgency: str = "Normal"
    service_first_level: str | None = None
    category: str | None = None
    owner_team: str | None = None
    owner_id: str | None = None
    origin: str = "Manual"
    tags: list[str] = field(default_factory=list)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {
            "type": 1,
            "subject": self.subject,
            "urgency": self.urgency,
            "origin": self.origin,
            "justification": self.description,
            "tags": list(self.tags),
            "clients": [{"id": self.client_id}],
        }
        action: dict[str, Any] = {"type": 1, "description": self.description}
        if self.created_by:
            payload["createdBy"] = {"id": self.created_by}
            action["createdBy"] = {"id": self.created_by}
        payload["actions"] = [action]
        if self.service_first_level:
            payload["serviceFirstLevel"] = self.service_first_level
        if self.category:
            payload["category"] = self.category
        if self.owner_team:
            payload["ownerTeam"] = self.owner_team
        if self.owner_id:
            payload["owner"] = {"id": self.owner_id}
        return payload


@dataclass
class CreatedTicket:
    id: str
    protocol: str | None = None

    @classmethod
    def from_payload(cls, payload: dict | None) -> CreatedTicket:
        payload = payload or {}
        return cls(id=str(payload.get("id")), protocol=payload.get("protocol"))

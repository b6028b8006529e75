"""Fixtures shared by the sync tests."""

from __future__ import annotations

import pytest

from kb_governance.errors import IntegrationError
from kb_governance.sync.dto import (
    ArticleSearchItem,
    ArticleSearchPage,
    CreatedTicket,
    RemoteArticle,
)


class FakeHelpdesk:
    """In-memory stand-in for MovideskClient."""

    def __init__(self):
        self.articles: dict[int, RemoteArticle] = {}
        self.listed: list[ArticleSearchItem] = []
        self.failures: dict[int, IntegrationError] = {}
        self.tickets = []
        self.created_tickets = []
        self.ticket_actions = []
        self.search_calls = []
        self.fetch_calls = []

    def add_article(self, article_id, *, listed=True, updated_date=None, **fields):
        remote = RemoteArticle(id=article_id, updated_date=updated_date, **fields)
        self.articles[article_id] = remote
        if listed:
            self.listed.append(ArticleSearchItem(id=article_id, updated_date=updated_date))
        return remote

    def list_only(self, article_id, updated_date=None):
        self.listed.append(ArticleSearchItem(id=article_id, updated_date=updated_date))

    def get_article(self, article_id):
        self.fetch_calls.append(article_id)
        if article_id in self.failures:
            raise self.failures[article_id]
        if article_id not in self.articles:
            raise IntegrationError("HTTP 404", status_code=404)
        return self.articles[article_id]

    def search_articles(self, page, page_size):
        self.search_calls.append((page, page_size))
        start = page * page_size
        return ArticleSearchPage(
            page_size=page_size,
            total_size=len(self.listed),
            items=self.listed[start : start + page_size],
        )

    def search_tickets(self, start, end):
        return list(self.tickets)

    def create_ticket(self, request):
        self.created_tickets.append(request)
        return CreatedTicket(id=str(5000 + len(self.created_tickets)), protocol="P")

    def add_ticket_action(self, ticket_id, description, created_by=None):
        self.ticket_actions.append((ticket_id, description, created_by))


@pytest.fixture
def helpdesk():
    return FakeHelpdesk()

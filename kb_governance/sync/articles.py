"""Mirror single remote articles into the local ``kb_articles`` table."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import or_, update

from kb_governance import config
from kb_governance.errors import IntegrationError
from kb_governance.governance.content_analyzer import content_hash
from kb_governance.models import Article
from kb_governance.sync.classification import resolve_system
from kb_governance.sync.dto import RemoteArticle, RemoteMenu
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

SYNC_OK = "OK"
SYNC_NOT_FOUND = "NOT_FOUND"
SYNC_ERROR = "ERROR"

STATE_NEW = "NEW"
STATE_UPDATED = "UPDATED"
STATE_UNCHANGED = "UNCHANGED"
STATE_MISSING = "MISSING"

OUTCOME_CREATED = "created"
OUTCOME_UPDATED = "updated"
OUTCOME_SKIPPED = "skipped"
OUTCOME_NOT_FOUND = "not_found"

SOURCE_SYSTEM = "movidesk"
MAX_ERROR_CHARS = 400


def build_source_url(article_id: int, slug: str | None) -> str:
    base = config.KB_PUBLIC_BASE_URL
    if not base.endswith("/"):
        base += "/"
    return f"{base}{article_id}/{slug or ''}"


class ArticleSyncService:
    """Fetch one article by id and upsert it keyed on the remote id.

    ``sync`` returns one of the ``OUTCOME_*`` strings. A remote 404 is an
    outcome, not an error; any other failure is recorded on the local row
    (when one exists) and re-raised for the caller to count.

    Every upserted article is classified into a system through the menu map;
    ``fallbacks`` tallies the articles that fell back to GERAL, by reason.
    """

    def __init__(self, db, client, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.client = client
        self.clock = clock
        self.fallbacks: Counter[str] = Counter()

    def sync(self, article_id: int, menu: RemoteMenu | None = None) -> str:
        try:
            remote = self.client.get_article(article_id)
        except IntegrationError as exc:
            if exc.is_not_found:
                logger.warning("Remote 404 for article id=%s", article_id)
                self._mark(article_id, SYNC_NOT_FOUND, "Remote 404: article was not found", STATE_MISSING)
                return OUTCOME_NOT_FOUND
            self._mark(article_id, SYNC_ERROR, str(exc))
            raise

        if remote.id is None:
            self._mark(article_id, SYNC_ERROR, "Remote returned an article without id")
            raise IntegrationError(f"Article {article_id} returned without id")

        return self.upsert(remote, menu=menu)

    def upsert(self, remote: RemoteArticle, menu: RemoteMenu | None = None) -> str:
        now = self.clock()
        new_hash = content_hash(remote.content_text, remote.content_html)
        menu = remote.menu or menu

        with self.db.get_session() as session:
            article = session.get(Article, remote.id)
            if article is None:
                article = Article(id=remote.id, governance_status="PENDING")
                session.add(article)
                outcome = OUTCOME_CREATED
                state = STATE_NEW
            elif article.content_hash != new_hash or article.updated_date != remote.updated_date:
                outcome = OUTCOME_UPDATED
                state = STATE_UPDATED
            else:
                outcome = OUTCOME_SKIPPED
                state = STATE_UNCHANGED

            if outcome != OUTCOME_SKIPPED:
                article.title = remote.title
                article.slug = remote.slug
                article.summary = remote.summary
                article.article_status = remote.article_status
                article.content_html = remote.content_html
                article.content_text = remote.content_text
                article.content_hash = new_hash
                article.revision_id = remote.revision_id
                article.reading_time = remote.reading_time
                article.created_date = remote.created_date
                article.updated_date = remote.updated_date
                article.source_system = SOURCE_SYSTEM
                article.source_url = build_source_url(remote.id, remote.slug)
                article.fetched_at = now
            if menu is not None:
                article.source_menu_id = menu.id
                if menu.name:
                    article.source_menu_name = menu.name
            classification = resolve_system(
                session, remote.id, article.source_menu_id, article.source_menu_name
            )
            article.system_code = classification.system_code
            if classification.fallback_reason:
                self.fallbacks[classification.fallback_reason] += 1
            if not article.governance_status:
                article.governance_status = "PENDING"

            article.sync_status = SYNC_OK
            article.sync_error_message = None
            article.sync_state = state
            article.last_seen_at = now

        logger.debug("Article %s %s", remote.id, outcome)
        return outcome

    def _mark(
        self,
        article_id: int,
        sync_status: str,
        message: str,
        sync_state: str | None = None,
    ) -> None:
        """Record a failed fetch on the local row; no stub is created."""
        with self.db.get_session() as session:
            article = session.get(Article, article_id)
            if article is None:
                return
            article.sync_status = sync_status
            article.sync_error_message = (message or "")[:MAX_ERROR_CHARS]
            if sync_state is not None:
                article.sync_state = sync_state
                article.last_seen_at = self.clock()

    def mark_missing(self, seen_since: datetime) -> int:
        """Flag articles not seen since ``seen_since`` as MISSING."""
        stmt = (
            update(Article)
            .where(or_(Article.last_seen_at.is_(None), Article.last_seen_at < seen_since))
            .values(sync_state=STATE_MISSING)
            .execution_options(synchronize_session=False)
        )
        with self.db.get_session() as session:
            result = session.execute(stmt)
        count = result.rowcount or 0
        if count:
            logger.info("Marked %d articles as missing from the remote corpus", count)
        return count

"""Run the detector set over batches of articles."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select

from kb_governance.governance.detectors import (
    Detector,
    DuplicateContentDetector,
    build_detectors,
)
from kb_governance.governance.issues import IssueStore
from kb_governance.models import Article
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class PipelineStats:
    analyzed: int = 0
    issues_touched: int = 0
    detector_errors: int = 0
    errors_by_detector: dict[str, int] = field(default_factory=dict)

    def record_error(self, detector_name: str) -> None:
        self.detector_errors += 1
        self.errors_by_detector[detector_name] = (
            self.errors_by_detector.get(detector_name, 0) + 1
        )


class GovernancePipeline:
    """Apply every detector to each article, isolating detector failures."""

    def __init__(
        self,
        db,
        detectors: list[Detector] | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.clock = clock
        self.issue_store = IssueStore(db, clock=clock)
        self.detectors = (
            detectors
            if detectors is not None
            else build_detectors(db, self.issue_store, clock=clock)
        )
        self.stats = PipelineStats()

    def duplicate_detector(self) -> DuplicateContentDetector:
        for detector in self.detectors:
            if isinstance(detector, DuplicateContentDetector):
                return detector
        return DuplicateContentDetector(self.db, self.issue_store, clock=self.clock)

    def analyze_article(self, article: Article) -> int:
        """Run all detectors on ``article``. Returns issues opened/updated."""
        if article is None or article.id is None:
            return 0
        touched = 0
        for detector in self.detectors:
            try:
                if detector.analyze(article) is not None:
                    touched += 1
            except Exception as exc:
                self.stats.record_error(detector.name)
                logger.warning(
                    "Detector %s failed for article %s: %s",
                    detector.name,
                    article.id,
                    exc,
                    exc_info=True,
                )
        self.stats.analyzed += 1
        self.stats.issues_touched += touched
        return touched

    def analyze_batch(self, articles: Iterable[Article]) -> int:
        count = 0
        for article in articles:
            self.analyze_article(article)
            count += 1
        return count

    def analyze_recent(self, limit: int = 200, since: datetime | None = None) -> int:
        """Analyze the ``limit`` most recently updated articles."""
        stmt = select(Article)
        if since is not None:
            stmt = stmt.where(Article.updated_date >= since)
        stmt = stmt.order_by(
            Article.updated_date.is_(None),
            Article.updated_date.desc(),
            Article.id.desc(),
        ).limit(limit)
        with self.db.get_session() as session:
            articles = list(session.execute(stmt).scalars())
        analyzed = self.analyze_batch(articles)
        logger.info("Governance pipeline analyzed %d recent articles", analyzed)
        return analyzed

    def analyze_updated_within(self, days: int, limit: int = DEFAULT_BATCH_SIZE) -> int:
        return self.analyze_recent(limit=limit, since=self.clock() - timedelta(days=days))

    def analyze_all(self, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Walk every article in id order, one batch per query."""
        total = 0
        last_id = None
        while True:
            stmt = select(Article).order_by(Article.id).limit(batch_size)
            if last_id is not None:
                stmt = stmt.where(Article.id > last_id)
            with self.db.get_session() as session:
                batch = list(session.execute(stmt).scalars())
            if not batch:
                break
            total += self.analyze_batch(batch)
            last_id = batch[-1].id
        logger.info("Governance pipeline analyzed %d articles", total)
        return total

    def analyze_article_id(self, article_id: int) -> int | None:
        with self.db.get_session() as session:
            article = session.get(Article, article_id)
        if article is None:
            return None
        return self.analyze_article(article)

    def analyze_all_duplicates(self) -> int:
        return self.duplicate_detector().analyze_all_duplicates()

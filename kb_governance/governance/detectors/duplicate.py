"""Detect articles that share the same normalised content hash."""

from __future__ import annotations

from sqlalchemy import func, select

from kb_governance.governance.detectors.base import Detector, Finding
from kb_governance.models import Article, IssueType, Severity

DUPLICATE_MESSAGE = "Conteúdo duplicado detectado (mesmo hash)"
IGNORED_HASHES = frozenset({"", "N/A"})


def is_usable_hash(content_hash: str | None) -> bool:
    if content_hash is None:
        return False
    return content_hash.strip().upper() not in IGNORED_HASHES


class DuplicateContentDetector(Detector):
    issue_type = IssueType.DUPLICATE_CONTENT
    name = "duplicate_content"

    def _group(self, content_hash: str) -> list[Article]:
        stmt = (
            select(Article)
            .where(Article.content_hash == content_hash)
            .order_by(Article.id)
        )
        with self.db.get_session() as session:
            return list(session.execute(stmt).scalars())

    @staticmethod
    def _evidence(content_hash: str, group: list[Article]) -> dict:
        return {
            "hash": content_hash,
            "count": len(group),
            "articleIds": [member.id for member in group],
            "titles": [member.title for member in group],
        }

    def evaluate(self, article):
        if not is_usable_hash(article.content_hash):
            return None
        group = self._group(article.content_hash)
        if len(group) < 2:
            return None
        return Finding(
            self.issue_type,
            Severity.WARN,
            DUPLICATE_MESSAGE,
            self._evidence(article.content_hash, group),
        )

    def analyze(self, article):
        """Open or refresh the duplicate issue on every member of the group."""
        if article is None or article.id is None or not is_usable_hash(article.content_hash):
            return None
        own_issue = None
        for issue in self._open_for_hash(article.content_hash):
            if issue.article_id == article.id:
                own_issue = issue
        return own_issue

    def analyze_hash(self, content_hash: str | None) -> int:
        """Open/refresh one issue per member sharing ``content_hash``."""
        if not is_usable_hash(content_hash):
            return 0
        return len(self._open_for_hash(content_hash))

    def _open_for_hash(self, content_hash: str) -> list:
        group = self._group(content_hash)
        if len(group) < 2:
            return []
        evidence = self._evidence(content_hash, group)
        return [
            self.issue_store.open(
                member.id, self.issue_type, Severity.WARN, DUPLICATE_MESSAGE, evidence
            )
            for member in group
        ]

    def duplicated_hashes(self) -> list[str]:
        stmt = (
            select(Article.content_hash)
            .where(Article.content_hash.is_not(None))
            .group_by(Article.content_hash)
            .having(func.count(Article.id) >= 2)
            .order_by(Article.content_hash)
        )
        with self.db.get_session() as session:
            hashes = list(session.execute(stmt).scalars())
        return [value for value in hashes if is_usable_hash(value)]

    def analyze_all_duplicates(self) -> int:
        """Walk every duplicated hash once. Returns issues opened or updated."""
        total = 0
        hashes = self.duplicated_hashes()
        for content_hash in hashes:
            total += self.analyze_hash(content_hash)
        self.log.info(
            "Duplicate scan: %d duplicated hashes, %d issues opened/updated",
            len(hashes),
            total,
        )
        return total

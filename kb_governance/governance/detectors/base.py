"""Shared detector contract."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from kb_governance.governance.issues import IssueStore
from kb_governance.models import Article, GovernanceIssue, IssueType, Severity
from kb_governance.utils.time import utcnow


@dataclass(frozen=True)
class Finding:
    """What a detector concluded about one article."""

    issue_type: IssueType
    severity: Severity
    message: str
    evidence: dict | None


class Detector(ABC):
    """One quality check over a single article.

    ``evaluate`` is pure and returns a :class:`Finding` or ``None``;
    ``analyze`` applies the finding through the issue store.
    """

    issue_type: IssueType
    name: str = "detector"

    def __init__(
        self,
        db,
        issue_store: IssueStore | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self.db = db
        self.issue_store = issue_store or IssueStore(db, clock=clock)
        self.clock = clock
        self.log = logger or logging.getLogger(self.__class__.__module__)

    @abstractmethod
    def evaluate(self, article: Article) -> Finding | None:
        """Return the finding for ``article`` without side effects."""

    def analyze(self, article: Article) -> GovernanceIssue | None:
        if article is None or article.id is None:
            return None
        finding = self.evaluate(article)
        if finding is None:
            return None
        return self.issue_store.open(
            article.id,
            finding.issue_type,
            finding.severity,
            finding.message,
            finding.evidence,
        )

"""Tag every article for mandatory periodic review."""

from __future__ import annotations

from kb_governance.governance.detectors.base import Detector, Finding
from kb_governance.models import IssueType, Severity

REVIEW_MESSAGE = "Revisão obrigatória pendente para este manual."


class ReviewRequiredDetector(Detector):
    issue_type = IssueType.REVIEW_REQUIRED
    name = "review_required"

    def evaluate(self, article):
        if article.id is None:
            return None
        return Finding(self.issue_type, Severity.INFO, REVIEW_MESSAGE, None)

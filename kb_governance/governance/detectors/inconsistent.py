"""Structure review detector.

``analyze`` runs in forced mode: every article gets a WARN so a reform
campaign can walk the whole corpus. ``classify`` keeps the softer rule based
on the article's system association for callers that want it.
"""

from __future__ import annotations

from kb_governance.governance import content_analyzer
from kb_governance.governance.detectors.base import Detector, Finding
from kb_governance.models import IssueType, Severity

FORCED_MESSAGE = "Manual marcado para revisão geral (modo forçado)."
GENERIC_SYSTEM_CODE = "GERAL"


class InconsistentStructureDetector(Detector):
    issue_type = IssueType.INCONSISTENT_CONTENT
    name = "inconsistent_structure"

    def evaluate(self, article):
        evidence = {
            "forced": True,
            "textLen": content_analyzer.length(article.content_text),
            "htmlLen": content_analyzer.length(article.content_html),
            "reason": "FORCED_REVIEW",
        }
        return Finding(self.issue_type, Severity.WARN, FORCED_MESSAGE, evidence)

    def classify(self, article) -> Finding | None:
        code = (article.system_code or "").strip().upper()
        if not code:
            return Finding(
                self.issue_type,
                Severity.ERROR,
                "Manual sem sistema associado.",
                {"systemCode": None, "reason": "NO_SYSTEM"},
            )
        if code == GENERIC_SYSTEM_CODE:
            return Finding(
                self.issue_type,
                Severity.WARN,
                "Manual classificado no sistema genérico (GERAL).",
                {"systemCode": code, "reason": "GENERIC_SYSTEM"},
            )
        return None

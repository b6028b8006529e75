"""Flag articles whose last update is older than a year."""

from __future__ import annotations

from kb_governance.governance.detectors.base import Detector, Finding
from kb_governance.models import IssueType, Severity

MAX_DAYS_WITHOUT_UPDATE = 365


class OutdatedContentDetector(Detector):
    issue_type = IssueType.OUTDATED_CONTENT
    name = "outdated_content"

    def evaluate(self, article):
        reference = article.updated_date or article.created_date
        if reference is None:
            return None

        days = (self.clock() - reference).days
        if days <= MAX_DAYS_WITHOUT_UPDATE:
            return None

        if days > MAX_DAYS_WITHOUT_UPDATE * 2:
            severity = Severity.ERROR
        elif days > MAX_DAYS_WITHOUT_UPDATE * 1.5:
            severity = Severity.WARN
        else:
            severity = Severity.INFO

        message = f"Conteúdo sem atualização há {days} dias (limite {MAX_DAYS_WITHOUT_UPDATE})."
        evidence = {
            "daysSinceUpdate": days,
            "maxDaysAllowed": MAX_DAYS_WITHOUT_UPDATE,
            "lastUpdateDate": reference.isoformat(),
        }
        return Finding(self.issue_type, severity, message, evidence)

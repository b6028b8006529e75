"""Flag articles that are empty, too short or still carry placeholder text."""

from __future__ import annotations

from kb_governance.governance import content_analyzer
from kb_governance.governance.detectors.base import Detector, Finding
from kb_governance.models import IssueType, Severity

MIN_CHARS = 500


class IncompleteContentDetector(Detector):
    """Severity ladder:

    - both bodies empty -> ERROR
    - shorter than ``MIN_CHARS`` (with or without placeholder) -> WARN
    - long enough but still carrying a placeholder phrase -> INFO

    Content that passes is left alone; an existing live issue is not
    resolved from here.
    """

    issue_type = IssueType.INCOMPLETE_CONTENT
    name = "incomplete_content"

    def evaluate(self, article):
        text_len = content_analyzer.length(article.content_text)
        html_len = content_analyzer.length(article.content_html)

        base = article.content_text if text_len > 0 else article.content_html
        placeholder = content_analyzer.has_placeholder(content_analyzer.normalize(base))

        empty_both = text_len == 0 and html_len == 0
        base_len = text_len if text_len > 0 else html_len
        too_short = not empty_both and base_len < MIN_CHARS

        evidence = {
            "textLen": text_len,
            "htmlLen": html_len,
            "minChars": MIN_CHARS,
            "placeholder": placeholder,
            "emptyBoth": empty_both,
        }

        if empty_both:
            return Finding(
                self.issue_type,
                Severity.ERROR,
                "Conteúdo vazio (HTML e TEXT): incompleto.",
                evidence,
            )
        if too_short and placeholder:
            message = (
                "Possível conteúdo incompleto: muito curto + placeholder detectado "
                f"(textLen={text_len}, htmlLen={html_len})"
            )
            return Finding(self.issue_type, Severity.WARN, message, evidence)
        if too_short:
            message = (
                "Possível conteúdo incompleto: muito curto "
                f"(textLen={text_len}, htmlLen={html_len}, min={MIN_CHARS})"
            )
            return Finding(self.issue_type, Severity.WARN, message, evidence)
        if placeholder:
            return Finding(
                self.issue_type,
                Severity.INFO,
                "Placeholder detectado em conteúdo extenso; revisar trechos pendentes.",
                evidence,
            )
        return None

"""AI-readiness checklist.

The article text (title plus body) must contain ten sections, each worth ten
points. Four of them also need a minimum number of list items counted
between the section header and the next header. The latest result is kept
per article in ``kb_article_ai_audit``.

This is the only detector that resolves its own issue once the article
passes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from sqlalchemy import select

from kb_governance.governance.detectors.base import Detector, Finding
from kb_governance.models import AiAudit, IssueType, Severity

EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
SECTION_SPLIT = re.compile(r"^\s{0,3}(#+\s+|[A-ZÇÃÕÁÉÍÓÚ].{0,40}:)", re.MULTILINE)
LIST_ITEM = re.compile(r"^\s*(\d+\.|-\s+|•\s+).+", re.MULTILINE)

POINTS_PER_SECTION = 10
AUDIT_ACTOR = "ai-audit"
FAIL_MESSAGE_PREFIX = "Checklist IA-ready incompleto: "


@dataclass(frozen=True)
class SectionRule:
    label: str
    keys: tuple[str, ...]
    min_items: int = 0  # 0 means presence only


CHECKLIST: tuple[SectionRule, ...] = (
    SectionRule("objetivo", ("objetivo",)),
    SectionRule("quando utilizar", ("quando utilizar", "quando usar")),
    SectionRule("como acessar", ("como acessar", "acesso")),
    SectionRule("pré-requisitos", ("pré-requisitos", "prerequisitos", "requisitos")),
    SectionRule(
        "regras de negócio",
        ("regras de negócio", "regras do negocio", "regra de negócio"),
        min_items=1,
    ),
    SectionRule("campos", ("campos", "campo")),
    SectionRule("passo a passo (>=3)", ("passo a passo", "passos"), min_items=3),
    SectionRule("erros comuns", ("erros comuns", "problemas comuns")),
    SectionRule("faq (>=1)", ("faq", "perguntas frequentes"), min_items=1),
    SectionRule(
        "intenções ia (>=3)",
        ("intenções ia", "intencoes ia", "intenções de ia", "intencoes de ia"),
        min_items=3,
    ),
)

# details key for each counted section
_COUNT_KEYS = {
    "regras de negócio": "rulesCount",
    "passo a passo (>=3)": "stepsCount",
    "faq (>=1)": "faqCount",
    "intenções ia (>=3)": "intentCount",
}


@dataclass
class AuditResult:
    score: int
    passed: bool
    missing: list[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)


def build_raw_content(article) -> str:
    parts = []
    if article.title is not None:
        parts.append(article.title + "\n")
    if article.content_text is not None:
        parts.append(article.content_text)
    elif article.content_html is not None:
        parts.append(article.content_html)
    return "".join(parts)


def extract_section(raw: str, keys: tuple[str, ...]) -> str:
    """Return the text from the first matching key up to the next header."""
    lower = raw.lower()
    index = -1
    for key in keys:
        index = lower.find(key.lower())
        if index >= 0:
            break
    if index < 0:
        return ""
    tail = raw[index:]
    headers = SECTION_SPLIT.finditer(tail)
    if next(headers, None) is not None:
        following = next(headers, None)
        if following is not None:
            return tail[: following.start()]
    return tail


def count_items(raw: str, keys: tuple[str, ...]) -> int:
    section = extract_section(raw, keys)
    if not section.strip():
        return 0
    return sum(1 for _ in LIST_ITEM.finditer(section))


def audit_content(raw: str) -> AuditResult:
    normalized = raw.lower()
    score = 0
    missing: list[str] = []
    details: dict = {}

    for rule in CHECKLIST:
        if rule.min_items:
            count = count_items(raw, rule.keys)
            details[_COUNT_KEYS[rule.label]] = count
            ok = count >= rule.min_items
        else:
            ok = any(key in normalized for key in rule.keys)
        if ok:
            score += POINTS_PER_SECTION
        else:
            missing.append(rule.label)

    details["emailsDetected"] = len(EMAIL_PATTERN.findall(raw))
    ordered = {
        key: details[key]
        for key in ("rulesCount", "stepsCount", "faqCount", "intentCount", "emailsDetected")
    }
    return AuditResult(score=score, passed=not missing, missing=missing, details=ordered)


class AiReadyDetector(Detector):
    issue_type = IssueType.NOT_AI_READY
    name = "ai_ready"

    def evaluate(self, article):
        result = audit_content(build_raw_content(article))
        if result.passed:
            return None
        return Finding(
            self.issue_type,
            Severity.WARN,
            FAIL_MESSAGE_PREFIX + ", ".join(result.missing),
            result.details,
        )

    def _save_audit(self, article_id: int, result: AuditResult) -> AiAudit:
        with self.db.get_session() as session:
            audit = session.execute(
                select(AiAudit).where(AiAudit.article_id == article_id)
            ).scalars().first()
            if audit is None:
                audit = AiAudit(article_id=article_id)
                session.add(audit)
            audit.score = result.score
            audit.passed = result.passed
            audit.missing = list(result.missing)
            audit.details = dict(result.details)
            audit.audited_at = self.clock()
            return audit

    def analyze(self, article):
        if article is None or article.id is None:
            return None
        result = audit_content(build_raw_content(article))
        self._save_audit(article.id, result)

        if result.passed:
            if self.issue_store.resolve_live(article.id, self.issue_type, AUDIT_ACTOR):
                self.log.info("Article %s is now AI-ready; issue resolved", article.id)
            return None

        return self.issue_store.open(
            article.id,
            self.issue_type,
            Severity.WARN,
            FAIL_MESSAGE_PREFIX + ", ".join(result.missing),
            result.details,
        )

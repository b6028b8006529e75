"""Pure text helpers shared by the quality detectors.

Nothing here touches the database; callers pass raw article fields and get
back normalised text, lengths or a placeholder verdict.
"""

from __future__ import annotations

import hashlib
import re

_WHITESPACE = re.compile(r"\s+")

# Matched as plain substrings of the normalised text.
PLACEHOLDER_PHRASES: tuple[str, ...] = (
    "conteúdo em construção",
    "manual em construção",
    "em construção",
    "em breve",
    "a definir",
    "preencher aqui",
    "inserir aqui",
    "colocar aqui",
    "todo:",
    "todo ",
    "[todo]",
)


def normalize(text: str | None) -> str:
    """Trim, lowercase and collapse whitespace; ``None`` becomes ``""``."""
    if text is None:
        return ""
    return _WHITESPACE.sub(" ", text.strip().lower())


def length(text: str | None) -> int:
    if text is None:
        return 0
    return len(text.strip())


def has_placeholder(normalized_text: str | None) -> bool:
    if not normalized_text or not normalized_text.strip():
        return False
    lowered = normalized_text.lower()
    return any(phrase in lowered for phrase in PLACEHOLDER_PHRASES)


def is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


def content_hash(content_text: str | None, content_html: str | None) -> str | None:
    """SHA-256 of the normalised body, preferring text over HTML."""
    base = content_text if not is_blank(content_text) else content_html
    if is_blank(base):
        return None
    return hashlib.sha256(normalize(base).encode("utf-8")).hexdigest()

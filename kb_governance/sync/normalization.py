"""Text normalisation used to cluster support tickets by content."""

from __future__ import annotations

import hashlib
import re
import unicodedata

CPF_PATTERN = re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b")
CNPJ_PATTERN = re.compile(r"\b\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}\b")
EMAIL_PATTERN = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE)
LONG_NUMBER_PATTERN = re.compile(r"\b\d{6,}\b")
WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str | None) -> str:
    """Lowercase, accent-free text with personal identifiers masked.

    Formatted documents are masked before the generic number rule so that
    a CPF is reported as ``[cpf]`` and not broken into ``[id]`` fragments.
    """
    if not text:
        return ""
    normalized = strip_accents(text).lower()
    normalized = CPF_PATTERN.sub("[cpf]", normalized)
    normalized = CNPJ_PATTERN.sub("[cnpj]", normalized)
    normalized = EMAIL_PATTERN.sub("[email]", normalized)
    normalized = LONG_NUMBER_PATTERN.sub("[id]", normalized)
    return WHITESPACE.sub(" ", normalized).strip()


def fingerprint(normalized: str) -> str:
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

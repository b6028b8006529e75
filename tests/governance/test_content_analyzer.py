import hashlib

import pytest

from kb_governance.governance import content_analyzer


def test_normalize_collapses_whitespace_and_lowercases():
    assert content_analyzer.normalize("  Olá\n\n  MUNDO\t ") == "olá mundo"


def test_normalize_none_is_empty():
    assert content_analyzer.normalize(None) == ""


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, 0),
        ("", 0),
        ("   ", 0),
        ("  abc  ", 3),
    ],
)
def test_length_ignores_surrounding_whitespace(value, expected):
    assert content_analyzer.length(value) == expected


@pytest.mark.parametrize(
    "text",
    [
        "manual em construção",
        "Este conteúdo estará disponível em breve",
        "TODO: descrever os campos",
        "valor a definir pelo time",
    ],
)
def test_has_placeholder_detects_known_phrases(text):
    assert content_analyzer.has_placeholder(text) is True


@pytest.mark.parametrize("text", [None, "", "   ", "Cadastro de clientes completo"])
def test_has_placeholder_false_for_regular_or_blank_text(text):
    assert content_analyzer.has_placeholder(text) is False


def test_content_hash_prefers_text_over_html():
    expected = hashlib.sha256("passo um".encode("utf-8")).hexdigest()
    assert content_analyzer.content_hash("  Passo   UM ", "<p>outro</p>") == expected


def test_content_hash_falls_back_to_html_when_text_blank():
    expected = hashlib.sha256("<p>corpo</p>".encode("utf-8")).hexdigest()
    assert content_analyzer.content_hash("   ", "<p>Corpo</p>") == expected


def test_content_hash_none_when_both_blank():
    assert content_analyzer.content_hash(None, "  ") is None


def test_content_hash_equal_for_whitespace_variants():
    first = content_analyzer.content_hash("Linha 1\nLinha 2", None)
    second = content_analyzer.content_hash("  linha 1   linha 2 ", None)
    assert first == second

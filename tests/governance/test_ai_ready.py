from sqlalchemy import select

from kb_governance.governance.detectors.ai_ready import (
    AiReadyDetector,
    audit_content,
    build_raw_content,
    count_items,
)
from kb_governance.models import AiAudit, Article, IssueStatus, IssueType

READY_BODY = """Objetivo: cadastrar clientes.
Quando utilizar: ao receber um novo cliente.
Como acessar: menu Cadastros > Clientes.
Pré-requisitos: usuário com permissão.
Regras de negócio:
- CPF obrigatório
Campos:
- Nome
Passo a passo:
1. Abrir a tela
2. Preencher os dados
3. Salvar
Erros comuns: CPF inválido.
FAQ:
- Posso excluir? Não.
Intenções IA:
- cadastrar cliente
- incluir cliente
- novo cliente
"""


def test_complete_checklist_scores_100():
    result = audit_content(READY_BODY)

    assert result.passed is True
    assert result.score == 100
    assert result.missing == []
    assert result.details == {
        "rulesCount": 1,
        "stepsCount": 3,
        "faqCount": 1,
        "intentCount": 3,
        "emailsDetected": 0,
    }


def test_steps_counted_only_inside_their_section():
    body = READY_BODY.replace("3. Salvar\n", "")
    result = audit_content(body)

    assert result.passed is False
    assert result.details["stepsCount"] == 2
    assert result.missing == ["passo a passo (>=3)"]
    assert result.score == 90


def test_minimal_content_lists_missing_sections():
    result = audit_content("Objetivo: algo. Contato: suporte@empresa.com.br")

    assert result.score == 10
    assert "objetivo" not in result.missing
    assert len(result.missing) == 9
    assert result.details["emailsDetected"] == 1


def test_count_items_without_section_is_zero():
    assert count_items("Objetivo: nada", ("faq",)) == 0


def test_build_raw_content_prefers_text():
    article = Article(title="Manual", content_text="texto", content_html="<p>html</p>")
    assert build_raw_content(article) == "Manual\ntexto"
    article.content_text = None
    assert build_raw_content(article) == "Manual\n<p>html</p>"


def test_failing_article_opens_issue_and_saves_audit(db, make_article):
    detector = AiReadyDetector(db)
    article = make_article(content_text="Objetivo: algo")

    issue = detector.analyze(article)

    assert issue.issue_type == IssueType.NOT_AI_READY.value
    assert issue.message.startswith("Checklist IA-ready incompleto: ")
    audit = db.session.execute(
        select(AiAudit).where(AiAudit.article_id == article.id)
    ).scalar_one()
    assert audit.passed is False
    assert audit.score == 10


def test_passing_article_resolves_issue_and_updates_audit(db, make_article):
    detector = AiReadyDetector(db)
    article = make_article(content_text="Objetivo: algo")
    issue = detector.analyze(article)

    article.content_text = READY_BODY
    assert detector.analyze(article) is None

    assert detector.issue_store.get(issue.id).status == IssueStatus.RESOLVED.value
    audits = list(
        db.session.execute(select(AiAudit).where(AiAudit.article_id == article.id)).scalars()
    )
    assert len(audits) == 1
    assert audits[0].passed is True
    assert audits[0].score == 100

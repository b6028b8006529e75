from sqlalchemy import select

from kb_governance.governance.detectors.duplicate import (
    DuplicateContentDetector,
    is_usable_hash,
)
from kb_governance.models import GovernanceIssue, IssueType


def _duplicate_issues(db):
    stmt = select(GovernanceIssue).where(
        GovernanceIssue.issue_type == IssueType.DUPLICATE_CONTENT.value
    )
    return list(db.session.execute(stmt).scalars())


def test_is_usable_hash():
    assert is_usable_hash("abc") is True
    assert is_usable_hash(None) is False
    assert is_usable_hash("  ") is False
    assert is_usable_hash("n/a") is False


def test_analyze_hash_flags_every_member(db, make_article):
    members = [make_article(content_hash="abc") for _ in range(3)]
    make_article(content_hash="zzz")
    detector = DuplicateContentDetector(db)

    assert detector.analyze_hash("abc") == 3

    issues = _duplicate_issues(db)
    assert sorted(issue.article_id for issue in issues) == sorted(m.id for m in members)
    evidence = issues[0].evidence
    assert evidence["count"] == 3
    assert evidence["hash"] == "abc"
    assert evidence["articleIds"] == sorted(m.id for m in members)


def test_unusable_hash_is_ignored(db, make_article):
    make_article(content_hash="N/A")
    make_article(content_hash="N/A")
    detector = DuplicateContentDetector(db)

    assert detector.analyze_hash("N/A") == 0
    assert detector.analyze_hash("") == 0
    assert detector.duplicated_hashes() == []


def test_single_member_is_not_duplicate(db, make_article):
    article = make_article(content_hash="solo")
    detector = DuplicateContentDetector(db)

    assert detector.evaluate(article) is None
    assert detector.analyze(article) is None


def test_analyze_article_returns_own_issue(db, make_article):
    first = make_article(content_hash="dup")
    make_article(content_hash="dup")
    detector = DuplicateContentDetector(db)

    issue = detector.analyze(first)

    assert issue.article_id == first.id
    assert len(_duplicate_issues(db)) == 2


def test_analyze_all_duplicates_is_idempotent(db, make_article):
    for _ in range(3):
        make_article(content_hash="abc")
    make_article(content_hash="N/A")
    make_article(content_hash="N/A")
    make_article(content_hash="unique")
    detector = DuplicateContentDetector(db)

    assert detector.analyze_all_duplicates() == 3
    assert detector.analyze_all_duplicates() == 3
    assert len(_duplicate_issues(db)) == 3

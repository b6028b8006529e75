"""SQLAlchemy database models for the knowledge-base governance service."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    false,
    text,
)
from sqlalchemy.orm import (
    Mapped,
    declarative_base,
    mapped_column,
    relationship,
    sessionmaker,
)

from kb_governance.utils.time import utcnow

from .enums import (  # noqa: F401
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    HistoryAction,
    IssueStatus,
    IssueType,
    Severity,
    SyncMode,
    SyncRunStatus,
)

Base: Any = declarative_base()

_LIVE_STATUS_SQL = "status IN ('OPEN', 'ASSIGNED', 'IN_PROGRESS')"


class Article(Base):
    """Knowledge-base article mirrored from the remote helpdesk.

    The primary key is the remote identifier so upserts are keyed on it.
    """

    __tablename__ = "kb_articles"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    title: Mapped[str | None] = mapped_column(String(500))
    slug: Mapped[str | None] = mapped_column(String(500))
    summary: Mapped[str | None] = mapped_column(Text)
    article_status = Column(Integer)
    content_html: Mapped[str | None] = mapped_column(Text)
    content_text: Mapped[str | None] = mapped_column(Text)
    content_hash: Mapped[str | None] = mapped_column(String(64), index=True)
    revision_id = Column(BigInteger)
    reading_time = Column(Integer)

    # Remote timestamps
    created_date: Mapped[datetime | None] = mapped_column(DateTime)
    updated_date: Mapped[datetime | None] = mapped_column(DateTime, index=True)

    # Local bookkeeping
    fetched_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime)
    source_system = Column(String, default="movidesk")
    source_url = Column(String)
    source_menu_id = Column(BigInteger)
    source_menu_name = Column(String)
    system_code: Mapped[str | None] = mapped_column(String, index=True)

    sync_status: Mapped[str | None] = mapped_column(String)  # OK/NOT_FOUND/ERROR
    sync_state: Mapped[str | None] = mapped_column(String)  # NEW/UPDATED/...
    sync_error_message: Mapped[str | None] = mapped_column(String(400))
    governance_status: Mapped[str | None] = mapped_column(String, default="PENDING")

    created_at = Column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    issues = relationship("GovernanceIssue", back_populates="article")


class MenuMap(Base):
    """Maps a helpdesk menu to an internal system code.

    Only one active row per (source_system, source_menu_id); replaced
    mappings are kept with ``active=False`` for history.
    """

    __tablename__ = "kb_menu_map"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_system: Mapped[str] = mapped_column(String(30), nullable=False, default="movidesk")
    source_menu_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_menu_name: Mapped[str | None] = mapped_column(String(255))
    system_code: Mapped[str] = mapped_column(String(50), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(
            "uq_kb_menu_map_active_menu",
            "source_system",
            "source_menu_id",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )



class GovernanceIssue(Base):
    """A quality finding tracked through the review workflow.

    At most one row per (article_id, issue_type) may be live
    (OPEN/ASSIGNED/IN_PROGRESS); the partial unique index enforces it.
    """

    __tablename__ = "kb_governance_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("kb_articles.id"), nullable=False, index=True
    )
    issue_type: Mapped[str] = mapped_column(String(40), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IssueStatus.OPEN.value, index=True
    )
    message: Mapped[str | None] = mapped_column(String(400))
    evidence: Mapped[dict | None] = mapped_column(JSON)

    responsible_id: Mapped[str | None] = mapped_column(String)
    responsible_type: Mapped[str | None] = mapped_column(String)
    sla_due_at: Mapped[datetime | None] = mapped_column(DateTime)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)
    ignored_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    article = relationship("Article", back_populates="issues")
    history = relationship(
        "IssueHistory",
        back_populates="issue",
        order_by="IssueHistory.id",
    )

    __table_args__ = (
        Index(
            "uq_kb_governance_issues_live_slot",
            "article_id",
            "issue_type",
            unique=True,
            sqlite_where=text(_LIVE_STATUS_SQL),
            postgresql_where=text(_LIVE_STATUS_SQL),
        ),
    )

    @property
    def is_live(self) -> bool:
        return self.status in {s.value for s in LIVE_STATUSES}


class IssueHistory(Base):
    """Append-only audit trail of workflow transitions."""

    __tablename__ = "kb_governance_issue_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("kb_governance_issues.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    actor: Mapped[str | None] = mapped_column(String)
    old_value: Mapped[dict | None] = mapped_column(JSON)
    new_value: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    issue = relationship("GovernanceIssue", back_populates="history")


class AiAudit(Base):
    """Latest AI-readiness checklist result for an article."""

    __tablename__ = "kb_article_ai_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("kb_articles.id"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    missing: Mapped[list | None] = mapped_column(JSON)
    details: Mapped[dict | None] = mapped_column(JSON)
    audited_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    __table_args__ = (UniqueConstraint("article_id", name="uq_ai_audit_article"),)


class SyncRun(Base):
    """One orchestration pass against the remote knowledge base."""

    __tablename__ = "kb_sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mode: Mapped[str] = mapped_column(String(10), nullable=False)
    days_back: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=SyncRunStatus.RUNNING.value, index=True
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime)
    duration_ms: Mapped[int | None] = mapped_column(BigInteger)

    # Metrics
    processed: Mapped[int] = mapped_column(Integer, default=0)
    created: Mapped[int] = mapped_column(Integer, default=0)
    updated: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)
    not_found: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)
    note: Mapped[str | None] = mapped_column(String(500))

    @property
    def stats(self) -> dict[str, int]:
        return {
            "processed": int(self.processed or 0),
            "created": int(self.created or 0),
            "updated": int(self.updated or 0),
            "skipped": int(self.skipped or 0),
            "not_found": int(self.not_found or 0),
            "errors": int(self.errors or 0),
        }


class SyncConfig(Base):
    """Process-wide sync settings. Only the row with id=1 is used."""

    __tablename__ = "kb_sync_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mode: Mapped[str] = mapped_column(
        String(10), nullable=False, default=SyncMode.DELTA.value
    )
    interval_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    days_back: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    last_started_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_finished_at: Mapped[datetime | None] = mapped_column(DateTime)
    # Claimed by the process that is syncing; see SyncOrchestrator.run_now.
    running: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )


class SupportTicket(Base):
    """Helpdesk ticket imported for recurrence analysis."""

    __tablename__ = "support_tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_ticket_id: Mapped[str] = mapped_column(
        String, nullable=False, unique=True, index=True
    )
    protocol: Mapped[str | None] = mapped_column(String)
    subject: Mapped[str | None] = mapped_column(String(1000))
    status: Mapped[str | None] = mapped_column(String)
    owner_team: Mapped[str | None] = mapped_column(String)
    requester: Mapped[str | None] = mapped_column(String)
    origin_created_at: Mapped[datetime | None] = mapped_column(DateTime, index=True)
    origin_updated_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    messages = relationship("TicketMessage", back_populates="ticket")


class TicketMessage(Base):
    __tablename__ = "support_ticket_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("support_tickets.id"), nullable=False, index=True
    )
    direction: Mapped[str] = mapped_column(String(3), nullable=False)  # IN/OUT
    author: Mapped[str | None] = mapped_column(String)
    content: Mapped[str | None] = mapped_column(Text)
    content_html: Mapped[str | None] = mapped_column(Text)
    external_message_key: Mapped[str] = mapped_column(
        String, nullable=False, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    ticket = relationship("SupportTicket", back_populates="messages")


class FaqCluster(Base):
    """Group of tickets whose normalised text shares a fingerprint."""

    __tablename__ = "faq_clusters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    normalized_text: Mapped[str | None] = mapped_column(Text)
    sample_text: Mapped[str | None] = mapped_column(String(400))
    ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )


class ClusterTicket(Base):
    __tablename__ = "faq_cluster_tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cluster_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("faq_clusters.id"), nullable=False, index=True
    )
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("support_tickets.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("cluster_id", "ticket_id", name="uq_cluster_ticket"),
    )


class RecurrenceRule(Base):
    __tablename__ = "recurrence_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    window_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    threshold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    cooldown_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class DetectedNeed(Base):
    """Recurring support demand surfaced by a recurrence rule."""

    __tablename__ = "detected_needs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cluster_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("faq_clusters.id"), nullable=False
    )
    rule_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("recurrence_rules.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    task_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="PENDING"
    )
    task_created_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_detected_at: Mapped[datetime | None] = mapped_column(DateTime)
    external_ticket_id: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    cluster = relationship("FaqCluster")
    rule = relationship("RecurrenceRule")

    __table_args__ = (
        UniqueConstraint("cluster_id", "rule_id", name="uq_detected_need_cluster_rule"),
    )


class JobRun(Base):
    """Execution record for batch jobs other than the article sync."""

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime)
    details: Mapped[dict | None] = mapped_column(JSON)


# Database utilities


def create_database_engine(database_url: str = "sqlite:///data/kb_governance.db"):
    """Create SQLAlchemy engine with proper configuration."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
    else:
        engine = create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_timeout=30,
            pool_pre_ping=True,
            echo=False,
        )

    return engine


def create_engine_from_env():
    """Create an engine for ``kb_governance.config.DATABASE_URL``."""
    from kb_governance.config import DATABASE_URL

    return create_database_engine(DATABASE_URL)


def create_tables(engine):
    Base.metadata.create_all(engine)


def get_session(engine):
    """Get a database session."""
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()

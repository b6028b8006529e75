"""create_governance_tables

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-01-14 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f20b31'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE_STATUS_SQL = "status IN ('OPEN', 'ASSIGNED', 'IN_PROGRESS')"


def upgrade() -> None:
    """Create articles, governance issues, sync bookkeeping and support tables."""
    op.create_table(
        'kb_articles',
        sa.Column('id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('title', sa.String(500)),
        sa.Column('slug', sa.String(500)),
        sa.Column('summary', sa.Text()),
        sa.Column('article_status', sa.Integer()),
        sa.Column('content_html', sa.Text()),
        sa.Column('content_text', sa.Text()),
        sa.Column('content_hash', sa.String(64)),
        sa.Column('revision_id', sa.BigInteger()),
        sa.Column('reading_time', sa.Integer()),
        sa.Column('created_date', sa.DateTime()),
        sa.Column('updated_date', sa.DateTime()),
        sa.Column('fetched_at', sa.DateTime()),
        sa.Column('last_seen_at', sa.DateTime()),
        sa.Column('source_system', sa.String()),
        sa.Column('source_url', sa.String()),
        sa.Column('source_menu_id', sa.BigInteger()),
        sa.Column('source_menu_name', sa.String()),
        sa.Column('system_code', sa.String()),
        sa.Column('sync_status', sa.String()),
        sa.Column('sync_state', sa.String()),
        sa.Column('sync_error_message', sa.String(400)),
        sa.Column('governance_status', sa.String()),
        sa.Column(
            'created_at',
            sa.DateTime(),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_kb_articles_content_hash', 'kb_articles', ['content_hash'])
    op.create_index('ix_kb_articles_updated_date', 'kb_articles', ['updated_date'])
    op.create_index('ix_kb_articles_system_code', 'kb_articles', ['system_code'])

    op.create_table(
        'kb_governance_issues',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('article_id', sa.BigInteger(), nullable=False),
        sa.Column('issue_type', sa.String(40), nullable=False),
        sa.Column('severity', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('message', sa.String(400)),
        sa.Column('evidence', sa.JSON()),
        sa.Column('responsible_id', sa.String()),
        sa.Column('responsible_type', sa.String()),
        sa.Column('sla_due_at', sa.DateTime()),
        sa.Column('resolved_at', sa.DateTime()),
        sa.Column('ignored_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['article_id'], ['kb_articles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_kb_governance_issues_article_id', 'kb_governance_issues', ['article_id']
    )
    op.create_index('ix_kb_governance_issues_status', 'kb_governance_issues', ['status'])
    op.create_index(
        'uq_kb_governance_issues_live_slot',
        'kb_governance_issues',
        ['article_id', 'issue_type'],
        unique=True,
        sqlite_where=sa.text(LIVE_STATUS_SQL),
        postgresql_where=sa.text(LIVE_STATUS_SQL),
    )

    op.create_table(
        'kb_governance_issue_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('issue_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(30), nullable=False),
        sa.Column('actor', sa.String()),
        sa.Column('old_value', sa.JSON()),
        sa.Column('new_value', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['issue_id'], ['kb_governance_issues.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_kb_governance_issue_history_issue_id',
        'kb_governance_issue_history',
        ['issue_id'],
    )

    op.create_table(
        'kb_article_ai_audit',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('article_id', sa.BigInteger(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('missing', sa.JSON()),
        sa.Column('details', sa.JSON()),
        sa.Column('audited_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['article_id'], ['kb_articles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('article_id', name='uq_ai_audit_article'),
    )

    op.create_table(
        'kb_sync_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('mode', sa.String(10), nullable=False),
        sa.Column('days_back', sa.Integer()),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime()),
        sa.Column('duration_ms', sa.BigInteger()),
        sa.Column('processed', sa.Integer()),
        sa.Column('created', sa.Integer()),
        sa.Column('updated', sa.Integer()),
        sa.Column('skipped', sa.Integer()),
        sa.Column('not_found', sa.Integer()),
        sa.Column('errors', sa.Integer()),
        sa.Column('note', sa.String(500)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_kb_sync_runs_status', 'kb_sync_runs', ['status'])
    op.create_index('ix_kb_sync_runs_started_at', 'kb_sync_runs', ['started_at'])

    op.create_table(
        'kb_sync_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('mode', sa.String(10), nullable=False),
        sa.Column('interval_minutes', sa.Integer(), nullable=False),
        sa.Column('days_back', sa.Integer(), nullable=False),
        sa.Column('last_started_at', sa.DateTime()),
        sa.Column('last_finished_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'support_tickets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('external_ticket_id', sa.String(), nullable=False),
        sa.Column('protocol', sa.String()),
        sa.Column('subject', sa.String(1000)),
        sa.Column('status', sa.String()),
        sa.Column('owner_team', sa.String()),
        sa.Column('requester', sa.String()),
        sa.Column('origin_created_at', sa.DateTime()),
        sa.Column('origin_updated_at', sa.DateTime()),
        sa.Column('last_message_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_support_tickets_external_ticket_id',
        'support_tickets',
        ['external_ticket_id'],
        unique=True,
    )
    op.create_index(
        'ix_support_tickets_origin_created_at', 'support_tickets', ['origin_created_at']
    )

    op.create_table(
        'support_ticket_messages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(3), nullable=False),
        sa.Column('author', sa.String()),
        sa.Column('content', sa.Text()),
        sa.Column('content_html', sa.Text()),
        sa.Column('external_message_key', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['ticket_id'], ['support_tickets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_message_key'),
    )
    op.create_index(
        'ix_support_ticket_messages_ticket_id', 'support_ticket_messages', ['ticket_id']
    )

    op.create_table(
        'faq_clusters',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fingerprint', sa.String(64), nullable=False),
        sa.Column('normalized_text', sa.Text()),
        sa.Column('sample_text', sa.String(400)),
        sa.Column('ticket_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('fingerprint'),
    )

    op.create_table(
        'faq_cluster_tickets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('cluster_id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['cluster_id'], ['faq_clusters.id']),
        sa.ForeignKeyConstraint(['ticket_id'], ['support_tickets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cluster_id', 'ticket_id', name='uq_cluster_ticket'),
    )
    op.create_index(
        'ix_faq_cluster_tickets_cluster_id', 'faq_cluster_tickets', ['cluster_id']
    )

    op.create_table(
        'recurrence_rules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('window_days', sa.Integer(), nullable=False),
        sa.Column('threshold_count', sa.Integer(), nullable=False),
        sa.Column('cooldown_hours', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'detected_needs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('cluster_id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('task_status', sa.String(20), nullable=False),
        sa.Column('task_created_at', sa.DateTime()),
        sa.Column('last_detected_at', sa.DateTime()),
        sa.Column('external_ticket_id', sa.String()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['cluster_id'], ['faq_clusters.id']),
        sa.ForeignKeyConstraint(['rule_id'], ['recurrence_rules.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cluster_id', 'rule_id', name='uq_detected_need_cluster_rule'),
    )

    op.create_table(
        'job_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_name', sa.String(), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime()),
        sa.Column('details', sa.JSON()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_job_runs_job_name', 'job_runs', ['job_name'])

    # Seed the singleton sync config row
    op.execute(
        """
        INSERT INTO kb_sync_config (id, enabled, mode, interval_minutes, days_back)
        VALUES (1, true, 'DELTA', 60, 2)
        """
    )


def downgrade() -> None:
    """Drop every governance table."""
    op.drop_table('job_runs')
    op.drop_table('detected_needs')
    op.drop_table('recurrence_rules')
    op.drop_table('faq_cluster_tickets')
    op.drop_table('faq_clusters')
    op.drop_table('support_ticket_messages')
    op.drop_index('ix_support_tickets_origin_created_at', 'support_tickets')
    op.drop_index('ix_support_tickets_external_ticket_id', 'support_tickets')
    op.drop_table('support_tickets')
    op.drop_table('kb_sync_config')
    op.drop_table('kb_sync_runs')
    op.drop_table('kb_article_ai_audit')
    op.drop_table('kb_governance_issue_history')
    op.drop_index('uq_kb_governance_issues_live_slot', 'kb_governance_issues')
    op.drop_table('kb_governance_issues')
    op.drop_table('kb_articles')

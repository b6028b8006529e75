"""add_menu_map_and_sync_claim

Revision ID: c83f0b6d2e17
Revises: a1c4e7f20b31
Create Date: 2026-02-03 16:27:05.441932

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c83f0b6d2e17'
down_revision: Union[str, Sequence[str], None] = 'a1c4e7f20b31'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add the menu -> system map and the cross-process sync claim.

    - kb_menu_map: one active mapping per (source_system, source_menu_id);
      articles whose menu has no active row are classified as GERAL
    - kb_sync_config.running: set by the process that owns the current run
    """
    op.create_table(
        'kb_menu_map',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source_system', sa.String(30), nullable=False),
        sa.Column('source_menu_id', sa.BigInteger(), nullable=False),
        sa.Column('source_menu_name', sa.String(255)),
        sa.Column('system_code', sa.String(50), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_kb_menu_map_active_menu',
        'kb_menu_map',
        ['source_system', 'source_menu_id'],
        unique=True,
        sqlite_where=sa.text("active = 1"),
        postgresql_where=sa.text("active"),
    )

    op.add_column(
        'kb_sync_config',
        sa.Column('running', sa.Boolean(), nullable=False, server_default=sa.false()),
    )


def downgrade() -> None:
    """Drop the sync claim flag and the menu map."""
    op.drop_column('kb_sync_config', 'running')
    op.drop_index('uq_kb_menu_map_active_menu', 'kb_menu_map')
    op.drop_table('kb_menu_map')

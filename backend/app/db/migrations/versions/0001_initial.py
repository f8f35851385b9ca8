"""initial shop_sessions and rollback_events tables

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'shop_sessions',
        sa.Column('shop', sa.String(length=255), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('scope', sa.String(length=1024), nullable=True),
        sa.Column('installed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('shop', name='pk_shop_sessions'),
    )

    op.create_table(
        'rollback_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('shop', sa.String(length=255), nullable=False),
        sa.Column('content_type', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=512), nullable=False),
        sa.Column('risk_score', sa.Float(), nullable=False),
        sa.Column('rollback_triggered', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('previous_draft_id', sa.String(length=255), nullable=True),
        sa.Column('logged_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_rollback_events'),
    )
    op.create_index('ix_rollback_events_shop_timestamp', 'rollback_events', ['shop', 'timestamp'])


def downgrade() -> None:
    op.drop_index('ix_rollback_events_shop_timestamp', table_name='rollback_events')
    op.drop_table('rollback_events')
    op.drop_table('shop_sessions')

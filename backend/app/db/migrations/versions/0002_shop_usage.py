"""monthly optimization usage per shop

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'shop_usage',
        sa.Column('shop', sa.String(length=255), nullable=False),
        sa.Column('period', sa.String(length=7), nullable=False),
        sa.Column('used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('shop', 'period', name='pk_shop_usage'),
    )


def downgrade() -> None:
    op.drop_table('shop_usage')

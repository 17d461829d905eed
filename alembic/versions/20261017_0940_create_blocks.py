"""create blocks table

Revision ID: 20261017_0940_create_blocks
Revises: 20261017_0930_create_notifications
Create Date: 2026-10-17 09:40:00
"""
from alembic import op
import sqlalchemy as sa

revision = '20261017_0940_create_blocks'
down_revision = '20261017_0930_create_notifications'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'blocks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('blocker_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('blocked_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('blocker_id', 'blocked_id', name='uq_blocks_pair'),
    )
    op.create_index('ix_blocks_id', 'blocks', ['id'])
    op.create_index('ix_blocks_blocker_id', 'blocks', ['blocker_id'])
    op.create_index('ix_blocks_blocked_id', 'blocks', ['blocked_id'])


def downgrade() -> None:
    op.drop_table('blocks')

"""create notifications table

Revision ID: 20261017_0930_create_notifications
Revises: 20261017_0920_create_plans
Create Date: 2026-10-17 09:30:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = '20261017_0930_create_notifications'
down_revision = '20261017_0920_create_plans'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'type',
            sa.Enum('PLAN_INVITE', 'PLAN_UPDATED', 'PLAN_CANCELED', 'NEW_JOINER', name='notificationtype'),
            nullable=False,
        ),
        sa.Column('payload', sa.JSON().with_variant(JSONB, 'postgresql'), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'read'])


def downgrade() -> None:
    op.drop_table('notifications')
    sa.Enum(name='notificationtype').drop(op.get_bind(), checkfirst=True)

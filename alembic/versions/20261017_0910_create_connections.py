"""create connection_requests and connections tables

Revision ID: 20261017_0910_create_connections
Revises: 20261017_0900_create_users_layovers
Create Date: 2026-10-17 09:10:00
"""
from alembic import op
import sqlalchemy as sa

revision = '20261017_0910_create_connections'
down_revision = '20261017_0900_create_users_layovers'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'connection_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('from_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pair_low_id', sa.Integer(), nullable=False),
        sa.Column('pair_high_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', name='requeststatus'), nullable=False),
        sa.Column('message', sa.String(280), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_connection_requests_id', 'connection_requests', ['id'])
    op.create_index('ix_connection_requests_to_status', 'connection_requests', ['to_user_id', 'status'])
    op.create_index('ix_connection_requests_from_status', 'connection_requests', ['from_user_id', 'status'])
    op.create_index(
        'uq_connection_requests_pending_pair',
        'connection_requests',
        ['pair_low_id', 'pair_high_id'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
        sqlite_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        'connections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_low_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_high_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unread_low', sa.Integer(), nullable=False),
        sa.Column('unread_high', sa.Integer(), nullable=False),
        sa.Column('last_message', sa.Text(), nullable=True),
        sa.Column('last_message_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_low_id', 'user_high_id', name='uq_connections_pair'),
        sa.CheckConstraint('user_low_id < user_high_id', name='ck_connections_ordered_pair'),
    )
    op.create_index('ix_connections_id', 'connections', ['id'])
    op.create_index('ix_connections_user_low_id', 'connections', ['user_low_id'])
    op.create_index('ix_connections_user_high_id', 'connections', ['user_high_id'])


def downgrade() -> None:
    op.drop_table('connections')
    op.drop_table('connection_requests')
    sa.Enum(name='requeststatus').drop(op.get_bind(), checkfirst=True)

"""create users and layovers tables

Revision ID: 20261017_0900_create_users_layovers
Revises:
Create Date: 2026-10-17 09:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = '20261017_0900_create_users_layovers'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('display_name', sa.String(120), nullable=False),
        sa.Column('airline', sa.String(120), nullable=True),
        sa.Column('base', sa.String(16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'layovers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('city', sa.String(120), nullable=False),
        sa.Column('city_key', sa.String(120), nullable=False),
        sa.Column('area', sa.String(120), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.Enum('UPCOMING', 'CURRENT', 'PAST', name='layoverstatus'), nullable=False),
        sa.Column('discoverable', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_layovers_id', 'layovers', ['id'])
    op.create_index('ix_layovers_user_id', 'layovers', ['user_id'])
    op.create_index('ix_layovers_status', 'layovers', ['status'])
    op.create_index('ix_layovers_match_window', 'layovers', ['city_key', 'discoverable', 'start_date'])


def downgrade() -> None:
    op.drop_table('layovers')
    op.drop_table('users')
    sa.Enum(name='layoverstatus').drop(op.get_bind(), checkfirst=True)

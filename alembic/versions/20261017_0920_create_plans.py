"""create plans, plan_stops, plan_attendees and plan_invites tables

Revision ID: 20261017_0920_create_plans
Revises: 20261017_0910_create_connections
Create Date: 2026-10-17 09:20:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = '20261017_0920_create_plans'
down_revision = '20261017_0910_create_connections'
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(JSONB, 'postgresql')


def upgrade() -> None:
    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('host_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('city', sa.String(120), nullable=False),
        sa.Column('city_key', sa.String(120), nullable=False),
        sa.Column('area', sa.String(120), nullable=True),
        sa.Column('visibility', sa.Enum('PUBLIC', 'CONNECTIONS', 'INVITE_ONLY', name='planvisibility'), nullable=False),
        sa.Column('mode', sa.Enum('SINGLE', 'MULTI_STOP', name='planmode'), nullable=False),
        sa.Column('spot_id', sa.String(120), nullable=True),
        sa.Column('spot_name', sa.String(200), nullable=True),
        sa.Column('scheduled_time', sa.DateTime(), nullable=False),
        sa.Column('attendee_count', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'CANCELED', 'COMPLETED', name='planstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_plans_id', 'plans', ['id'])
    op.create_index('ix_plans_host_user_id', 'plans', ['host_user_id'])
    op.create_index('ix_plans_status', 'plans', ['status'])
    op.create_index('ix_plans_city_status_time', 'plans', ['city_key', 'status', 'scheduled_time'])

    op.create_table(
        'plan_stops',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('spot_id', sa.String(120), nullable=False),
        sa.Column('spot_name', sa.String(200), nullable=False),
        sa.Column('scheduled_time', sa.DateTime(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
    )
    op.create_index('ix_plan_stops_id', 'plan_stops', ['id'])
    op.create_index('ix_plan_stops_plan_order', 'plan_stops', ['plan_id', 'order'])

    op.create_table(
        'plan_attendees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rsvp_status', sa.Enum('GOING', 'MAYBE', 'INVITED', 'DECLINED', name='rsvpstatus'), nullable=False),
        sa.Column('all_stops', sa.Boolean(), nullable=False),
        sa.Column('stops_attending', JSONType, nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('plan_id', 'user_id', name='uq_plan_attendees_member'),
    )
    op.create_index('ix_plan_attendees_plan_id', 'plan_attendees', ['plan_id'])
    op.create_index('ix_plan_attendees_user_id', 'plan_attendees', ['user_id'])

    op.create_table(
        'plan_invites',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invited_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('plan_id', 'user_id', name='uq_plan_invites_member'),
    )
    op.create_index('ix_plan_invites_plan_id', 'plan_invites', ['plan_id'])
    op.create_index('ix_plan_invites_user_id', 'plan_invites', ['user_id'])


def downgrade() -> None:
    op.drop_table('plan_invites')
    op.drop_table('plan_attendees')
    op.drop_table('plan_stops')
    op.drop_table('plans')
    bind = op.get_bind()
    for name in ('rsvpstatus', 'planstatus', 'planmode', 'planvisibility'):
        sa.Enum(name=name).drop(bind, checkfirst=True)

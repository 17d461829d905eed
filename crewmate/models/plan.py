"""
Plan model - hosted meetups with single-spot or multi-stop itineraries
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Index, JSON,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import JSONB
import enum

from crewmate.core.clock import utcnow
from crewmate.core.db import Base

JSONType = JSON().with_variant(JSONB, "postgresql")


class PlanVisibility(str, enum.Enum):
    PUBLIC = "public"
    CONNECTIONS = "connections"
    INVITE_ONLY = "invite_only"


class PlanMode(str, enum.Enum):
    SINGLE = "single"
    MULTI_STOP = "multi_stop"


class PlanStatus(str, enum.Enum):
    """Plan lifecycle; canceled and completed are terminal"""
    ACTIVE = "active"
    CANCELED = "canceled"
    COMPLETED = "completed"


class RSVPStatus(str, enum.Enum):
    GOING = "going"
    MAYBE = "maybe"
    INVITED = "invited"
    DECLINED = "declined"


class Plan(Base):
    """
    Plan aggregate root.
    Single mode carries spot_id/spot_name; multi-stop mode carries PlanStop rows.
    scheduled_time is the sort key: the single time, or the earliest stop time.
    attendee_count mirrors the number of PlanAttendee rows.
    """
    __tablename__ = "plans"
    __table_args__ = (
        Index("ix_plans_city_status_time", "city_key", "status", "scheduled_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    host_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    city = Column(String(120), nullable=False)
    city_key = Column(String(120), nullable=False)
    area = Column(String(120), nullable=True)
    visibility = Column(SQLEnum(PlanVisibility), default=PlanVisibility.PUBLIC, nullable=False)
    mode = Column(SQLEnum(PlanMode), default=PlanMode.SINGLE, nullable=False)
    spot_id = Column(String(120), nullable=True)
    spot_name = Column(String(200), nullable=True)
    scheduled_time = Column(DateTime, nullable=False)
    attendee_count = Column(Integer, default=0, nullable=False)
    status = Column(SQLEnum(PlanStatus), default=PlanStatus.ACTIVE, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)


class PlanStop(Base):
    __tablename__ = "plan_stops"
    __table_args__ = (
        Index("ix_plan_stops_plan_order", "plan_id", "order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    spot_id = Column(String(120), nullable=False)
    spot_name = Column(String(200), nullable=False)
    scheduled_time = Column(DateTime, nullable=False)
    order = Column(Integer, nullable=False)


class PlanAttendee(Base):
    """One row per member; the unique key makes joining a set-union"""
    __tablename__ = "plan_attendees"
    __table_args__ = (
        UniqueConstraint("plan_id", "user_id", name="uq_plan_attendees_member"),
    )

    id = Column(Integer, primary_key=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rsvp_status = Column(SQLEnum(RSVPStatus), default=RSVPStatus.GOING, nullable=False)
    all_stops = Column(Boolean, default=True, nullable=False)
    stops_attending = Column(JSONType, nullable=True)  # list of PlanStop ids (multi-stop only)
    joined_at = Column(DateTime, default=utcnow, nullable=False)


class PlanInvite(Base):
    __tablename__ = "plan_invites"
    __table_args__ = (
        UniqueConstraint("plan_id", "user_id", name="uq_plan_invites_member"),
    )

    id = Column(Integer, primary_key=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_at = Column(DateTime, default=utcnow, nullable=False)

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Boolean, Index, JSON, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB
import enum

from crewmate.core.clock import utcnow
from crewmate.core.db import Base


class NotificationType(str, enum.Enum):
    PLAN_INVITE = "plan_invite"
    PLAN_UPDATED = "plan_updated"
    PLAN_CANCELED = "plan_canceled"
    NEW_JOINER = "new_joiner"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False)
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)

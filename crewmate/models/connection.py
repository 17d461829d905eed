"""
Connection request and established connection models
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Index,
    UniqueConstraint, CheckConstraint, Enum as SQLEnum, text,
)
import enum

from crewmate.core.clock import utcnow
from crewmate.core.db import Base


class RequestStatus(str, enum.Enum):
    """Connection request lifecycle; accepted and rejected are terminal"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ConnectionRequest(Base):
    __tablename__ = "connection_requests"
    __table_args__ = (
        Index("ix_connection_requests_to_status", "to_user_id", "status"),
        Index("ix_connection_requests_from_status", "from_user_id", "status"),
        # At most one pending request per unordered pair, in either direction
        Index(
            "uq_connection_requests_pending_pair",
            "pair_low_id",
            "pair_high_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pair_low_id = Column(Integer, nullable=False)
    pair_high_id = Column(Integer, nullable=False)
    status = Column(SQLEnum(RequestStatus), default=RequestStatus.PENDING, nullable=False)
    message = Column(String(280), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)


class Connection(Base):
    """
    Symmetric connection between two users.
    The pair is stored low/high so {a, b} and {b, a} hit the same unique key.
    """
    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_connections_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_connections_ordered_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_low_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_high_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    unread_low = Column(Integer, default=0, nullable=False)
    unread_high = Column(Integer, default=0, nullable=False)
    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def user_ids(self) -> frozenset:
        return frozenset((self.user_low_id, self.user_high_id))

    @property
    def per_user_unread_count(self) -> dict:
        return {self.user_low_id: self.unread_low, self.user_high_id: self.unread_high}

    def other_user(self, user_id: int) -> int:
        if user_id == self.user_low_id:
            return self.user_high_id
        if user_id == self.user_high_id:
            return self.user_low_id
        raise ValueError(f"user {user_id} is not part of connection {self.id}")

    def unread_column_for(self, user_id: int):
        """Column holding user_id's unread counter (for atomic UPDATE expressions)"""
        if user_id == self.user_low_id:
            return Connection.unread_low
        if user_id == self.user_high_id:
            return Connection.unread_high
        raise ValueError(f"user {user_id} is not part of connection {self.id}")


def ordered_pair(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


class Block(Base):
    """
    One-way block. Either direction hides the pair from each other's
    crew searches and stops connection requests between them.
    """
    __tablename__ = "blocks"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_blocks_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    blocker_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blocked_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

"""
Layover model - a crew member's declared travel window in a city
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text, Index, Enum as SQLEnum
import enum

from crewmate.core.clock import utcnow
from crewmate.core.db import Base


class LayoverStatus(str, enum.Enum):
    """Layover lifecycle status, derived from the clock"""
    UPCOMING = "upcoming"
    CURRENT = "current"
    PAST = "past"


class Layover(Base):
    """
    Layover owned by a single user, addressed by (user_id, id)
    Matching reads it through the (city_key, discoverable, start_date) index
    """
    __tablename__ = "layovers"
    __table_args__ = (
        Index("ix_layovers_match_window", "city_key", "discoverable", "start_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    city = Column(String(120), nullable=False)
    city_key = Column(String(120), nullable=False)  # normalized city for equality matching
    area = Column(String(120), nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(SQLEnum(LayoverStatus), default=LayoverStatus.UPCOMING, nullable=False, index=True)
    discoverable = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


def normalize_city(city: str) -> str:
    """Case- and whitespace-insensitive city key"""
    return " ".join(city.split()).casefold()

from sqlalchemy import Column, String, Integer, DateTime

from crewmate.core.clock import utcnow
from crewmate.core.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    display_name = Column(String(120), nullable=False)
    airline = Column(String(120), nullable=True)
    base = Column(String(16), nullable=True)  # home airport code
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} display_name={self.display_name}>"

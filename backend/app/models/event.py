"""
Event model with a fixed capacity.

Key design decisions:
- No denormalized seat counter: the live registration count is the only
  derived quantity, so there is no second invariant to keep in sync
- The scheduled time lives in a column named `datetime` (the wire name);
  the mapped attribute is `scheduled_at`
- Index on the scheduled time backs the ordered listing
"""

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin

MIN_CAPACITY = 1
MAX_CAPACITY = 1000


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    scheduled_at = Column("datetime", DateTime(timezone=True), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False)

    registrations = relationship(
        "Registration", back_populates="event", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            f"capacity >= {MIN_CAPACITY} AND capacity <= {MAX_CAPACITY}",
            name="check_event_capacity_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.capacity})>"

"""
Status history database models.

Append-only audit trail of trip and advance status transitions. Rows are
never updated; they disappear only together with their parent entity.
"""

from sqlalchemy import Column, Integer, Text, ForeignKey, DateTime, Enum
from travel_backend.app.core.clock import utcnow
from travel_backend.app.db.session import Base
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.trip_enums import TripStatus


class TripStatusHistory(Base):
    """Trip status transition entry. old_status is NULL for the creation entry."""
    __tablename__ = "trip_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)

    old_status = Column(Enum(TripStatus), nullable=True)
    new_status = Column(Enum(TripStatus), nullable=False)
    changed_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    notes = Column(Text, nullable=True)

    # Timestamp (Immutable - no updated_at)
    changed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<TripStatusHistory(trip={self.trip_id}, {self.old_status} -> {self.new_status})>"


class AdvanceStatusHistory(Base):
    """Advance status transition entry."""
    __tablename__ = "advance_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    advance_id = Column(Integer, ForeignKey('advances.id'), nullable=False, index=True)

    old_status = Column(Enum(AdvanceStatus), nullable=True)
    new_status = Column(Enum(AdvanceStatus), nullable=False)
    changed_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    notes = Column(Text, nullable=True)

    changed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AdvanceStatusHistory(advance={self.advance_id}, {self.old_status} -> {self.new_status})>"

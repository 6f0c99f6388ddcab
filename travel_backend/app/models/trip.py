"""
Trip database model.

A trip is created by an employee and carries the advances and receipts
that are reconciled into a settlement at the end of the review chain.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, DateTime, Enum, Index
from sqlalchemy.orm import relationship
from travel_backend.app.core.clock import utcnow
from travel_backend.app.db.session import Base
from travel_backend.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    total_advance / total_expenses are not stored: they are recomputed
    from the advance and receipt tables whenever a trip is read.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_number = Column(String(30), unique=True, nullable=False, index=True)

    # Ownership - Trip belongs to an employee
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    destination = Column(String(100), nullable=False)
    purpose = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    duration = Column(Integer, nullable=False)  # Inclusive day count
    estimated_budget = Column(Numeric(15, 2), nullable=True)

    # Extension metadata (orthogonal to status)
    extended_end_date = Column(Date, nullable=True)
    extension_reason = Column(Text, nullable=True)
    extension_requested_at = Column(DateTime(timezone=True), nullable=True)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.ACTIVE, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("User", lazy="joined", innerjoin=True)

    # At most one ACTIVE trip per employee, enforced by the database
    __table_args__ = (
        Index(
            "uq_trips_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=(status == TripStatus.ACTIVE),
            sqlite_where=(status == TripStatus.ACTIVE),
        ),
    )

    @property
    def has_extension(self) -> bool:
        return self.extended_end_date is not None

    def __repr__(self):
        return f"<Trip(id={self.id}, number='{self.trip_number}', status='{self.status.value}')>"

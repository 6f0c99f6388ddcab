"""
Advance database model.

Cash pre-payment requested against a trip, approved in two tiers and then
transferred.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from travel_backend.app.core.clock import utcnow
from travel_backend.app.db.session import Base
from travel_backend.app.models.advance_enums import AdvanceStatus, AdvanceRequestType


class Advance(Base):
    """
    Advance model.

    Follows the approval workflow: PENDING -> APPROVED_AREA -> APPROVED_REGIONAL -> COMPLETED.
    approved_amount is only set at the Finance Area gate.
    """
    __tablename__ = "advances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    advance_number = Column(String(30), unique=True, nullable=False, index=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)

    # Request
    request_type = Column(Enum(AdvanceRequestType), nullable=False)
    requested_amount = Column(Numeric(15, 2), nullable=False)
    request_reason = Column(Text, nullable=True)
    requested_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Status
    status = Column(Enum(AdvanceStatus), default=AdvanceStatus.PENDING, nullable=False, index=True)
    approved_amount = Column(Numeric(15, 2), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Approval Flow
    approved_by_area = Column(Integer, ForeignKey('users.id'), nullable=True)
    approved_at_area = Column(DateTime(timezone=True), nullable=True)
    approved_by_regional = Column(Integer, ForeignKey('users.id'), nullable=True)
    approved_at_regional = Column(DateTime(timezone=True), nullable=True)

    # Transfer
    transfer_date = Column(Date, nullable=True)
    transfer_reference = Column(String(100), nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    trip = relationship("Trip", lazy="joined", innerjoin=True)

    def __repr__(self):
        return f"<Advance(id={self.id}, number='{self.advance_number}', status='{self.status.value}')>"

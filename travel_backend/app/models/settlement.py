"""
Settlement database model.

Reconciliation snapshot of a trip: transferred advances against verified
receipts.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from travel_backend.app.core.clock import utcnow
from travel_backend.app.db.session import Base
from travel_backend.app.models.settlement_enums import SettlementStatus, SettlementType


class Settlement(Base):
    """
    Settlement model.

    One per trip. Follows a strict workflow: PENDING -> PROCESSED -> COMPLETED.
    The financial columns are a snapshot taken at creation and never rewritten.
    """
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    settlement_number = Column(String(30), unique=True, nullable=False, index=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), unique=True, nullable=False, index=True)

    # Financials
    total_advance = Column(Numeric(15, 2), nullable=False)
    total_receipts = Column(Numeric(15, 2), nullable=False)
    balance = Column(Numeric(15, 2), nullable=False)
    settlement_type = Column(Enum(SettlementType), nullable=False)
    settlement_amount = Column(Numeric(15, 2), nullable=False)

    # Status
    status = Column(Enum(SettlementStatus), default=SettlementStatus.PENDING, nullable=False, index=True)

    # Processing Flow
    settlement_date = Column(Date, nullable=True)
    transfer_reference = Column(String(100), nullable=True)
    processed_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    # Completion
    completed_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    trip = relationship("Trip", lazy="joined", innerjoin=True)

    def __repr__(self):
        return f"<Settlement(id={self.id}, status='{self.status.value}', amount={self.settlement_amount})>"

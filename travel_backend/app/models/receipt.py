"""
Receipt database model.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from travel_backend.app.core.clock import utcnow
from travel_backend.app.db.session import Base


class Receipt(Base):
    """
    Receipt model.

    Amount, category and file are frozen while is_verified is set.
    """
    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    receipt_number = Column(String(30), unique=True, nullable=False, index=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    advance_id = Column(Integer, ForeignKey('advances.id', ondelete="SET NULL"), nullable=True, index=True)

    receipt_date = Column(Date, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    category = Column(String(100), nullable=False)
    merchant_name = Column(String(100), nullable=True)
    description = Column(String(255), nullable=False)

    # Stored file
    file_path = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)

    # Verification
    is_verified = Column(Boolean, default=False, nullable=False, index=True)
    verified_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_notes = Column(Text, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    trip = relationship("Trip", lazy="joined", innerjoin=True)

    def __repr__(self):
        return f"<Receipt(id={self.id}, number='{self.receipt_number}', verified={self.is_verified})>"

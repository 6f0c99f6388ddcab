"""
Sequence Counter database model.

One row per document-number prefix per day (e.g. ``ADV-20261018``).
"""

from sqlalchemy import Column, Integer, String
from travel_backend.app.db.session import Base


class SequenceCounter(Base):
    """
    Sequence counter model.

    The row is locked while a number is allocated so concurrent requests
    never hand out the same document number.
    """
    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    current_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<SequenceCounter(name='{self.name}', value={self.current_value})>"

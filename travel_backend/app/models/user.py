"""
User database model.

Minimal account record: the approval chain only needs the role and the
area code used to scope Finance Area approvers. Account management lives
outside this service.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from travel_backend.app.core.clock import utcnow
from travel_backend.app.db.session import Base
from travel_backend.app.models.enums import UserRole


class User(Base):
    """User model."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)

    # Geographic scope for Finance Area approvers
    area_code = Column(String(20), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"

"""
Advance schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from travel_backend.app.models.advance_enums import AdvanceStatus, AdvanceRequestType


class AdvanceCreate(BaseModel):
    """Schema for requesting an advance."""
    trip_id: int
    request_type: AdvanceRequestType
    requested_amount: Decimal
    request_reason: Optional[str] = None


class AdvanceAreaApproval(BaseModel):
    approved_amount: Decimal
    notes: Optional[str] = None


class AdvanceRegionalApproval(BaseModel):
    notes: Optional[str] = None


class AdvanceTransfer(BaseModel):
    transfer_reference: str = Field(..., min_length=1, max_length=100)
    transfer_date: Optional[date] = None
    notes: Optional[str] = None


class AdvanceRejection(BaseModel):
    rejection_reason: str = Field(..., min_length=1)


class AdvanceResponse(BaseModel):
    """Schema for advance response."""
    id: int
    advance_number: str
    trip_id: int
    request_type: AdvanceRequestType
    requested_amount: Decimal
    request_reason: Optional[str]
    requested_at: datetime
    status: AdvanceStatus
    approved_amount: Optional[Decimal]
    rejection_reason: Optional[str]
    notes: Optional[str]
    approved_by_area: Optional[int]
    approved_at_area: Optional[datetime]
    approved_by_regional: Optional[int]
    approved_at_regional: Optional[datetime]
    transfer_date: Optional[date]
    transfer_reference: Optional[str]
    updated_at: datetime

    class Config:
        from_attributes = True


class AdvanceStatusHistoryResponse(BaseModel):
    id: int
    advance_id: int
    old_status: Optional[AdvanceStatus]
    new_status: AdvanceStatus
    changed_by: int
    notes: Optional[str]
    changed_at: datetime

    class Config:
        from_attributes = True

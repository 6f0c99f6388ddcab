"""
Trip schemas.

Request bodies for the trip lifecycle and the trip view with derived totals.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from datetime import date, datetime
from decimal import Decimal

from travel_backend.app.models.trip_enums import TripStatus


class TripCreate(BaseModel):
    """Schema for creating a trip."""
    destination: str = Field(..., min_length=1, max_length=100)
    purpose: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    estimated_budget: Optional[Decimal] = None


class TripUpdate(BaseModel):
    """Schema for editing an active trip. Only provided fields change."""
    destination: Optional[str] = Field(None, min_length=1, max_length=100)
    purpose: Optional[str] = Field(None, min_length=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_budget: Optional[Decimal] = None


class TripExtensionRequest(BaseModel):
    extended_end_date: date
    extension_reason: str = Field(..., min_length=1)


class TripNotesRequest(BaseModel):
    notes: Optional[str] = None


class TripReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class TripCancelRequest(BaseModel):
    reason: Optional[str] = None


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    trip_number: str
    user_id: int
    destination: str
    purpose: str
    start_date: date
    end_date: date
    duration: int
    estimated_budget: Optional[Decimal]
    extended_end_date: Optional[date]
    extension_reason: Optional[str]
    extension_requested_at: Optional[datetime]
    status: TripStatus
    rejection_reason: Optional[str]
    total_advance: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class TripStatusHistoryResponse(BaseModel):
    id: int
    trip_id: int
    old_status: Optional[TripStatus]
    new_status: TripStatus
    changed_by: int
    notes: Optional[str]
    changed_at: datetime

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for trip list."""
    trips: List[TripResponse]
    total: int


class TripStatisticsResponse(BaseModel):
    total_trips: int
    by_status: Dict[str, int]
    total_advance: Decimal
    total_expenses: Decimal

"""
Settlement schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from travel_backend.app.models.settlement_enums import SettlementStatus, SettlementType


class SettlementCreate(BaseModel):
    trip_id: int


class SettlementProcess(BaseModel):
    """Schema for recording the settlement transfer."""
    settlement_date: Optional[date] = None
    transfer_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class SettlementResponse(BaseModel):
    """Schema for settlement response."""
    id: int
    settlement_number: str
    trip_id: int
    total_advance: Decimal
    total_receipts: Decimal
    balance: Decimal
    settlement_type: SettlementType
    settlement_amount: Decimal
    status: SettlementStatus
    settlement_date: Optional[date]
    transfer_reference: Optional[str]
    processed_by: Optional[int]
    processed_at: Optional[datetime]
    notes: Optional[str]
    completed_by: Optional[int]
    completed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    total_advance: Decimal
    total_receipts: Decimal
    balance: Decimal
    settlement_type: SettlementType
    settlement_amount: Decimal

    class Config:
        from_attributes = True


class SettlementSummaryResponse(BaseModel):
    """Live balance of a trip and its stored snapshot, if any."""
    trip_id: int
    balance: BalanceResponse
    settlement: Optional[SettlementResponse] = None

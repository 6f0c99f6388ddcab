"""
Receipt schemas.

Uploads arrive as multipart forms, so only the JSON-bodied actions and the
response are modelled here.
"""

from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class ReceiptVerification(BaseModel):
    notes: Optional[str] = None


class ReceiptResponse(BaseModel):
    """Schema for receipt response."""
    id: int
    receipt_number: str
    trip_id: int
    advance_id: Optional[int]
    receipt_date: date
    amount: Decimal
    category: str
    merchant_name: Optional[str]
    description: str
    file_name: str
    file_size: int
    is_verified: bool
    verified_by: Optional[int]
    verified_at: Optional[datetime]
    verification_notes: Optional[str]
    uploaded_at: datetime

    class Config:
        from_attributes = True

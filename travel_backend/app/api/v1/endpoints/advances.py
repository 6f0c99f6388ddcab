"""
Advance API Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.dependencies import get_current_actor
from travel_backend.app.db.session import get_db
from travel_backend.app.domain.advances.advance_service import AdvanceService
from travel_backend.app.domain.authorization import Actor
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.schemas.advance import (
    AdvanceCreate,
    AdvanceAreaApproval,
    AdvanceRegionalApproval,
    AdvanceTransfer,
    AdvanceRejection,
    AdvanceResponse,
    AdvanceStatusHistoryResponse,
)

router = APIRouter(prefix="/advances", tags=["Advances"])


@router.get("", response_model=List[AdvanceResponse])
async def list_advances(
    trip_id: Optional[int] = Query(None),
    status_filter: Optional[AdvanceStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await AdvanceService.list_advances(db, actor, trip_id, status_filter)


@router.post("", response_model=AdvanceResponse, status_code=status.HTTP_201_CREATED)
async def request_advance(
    payload: AdvanceCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Request an advance for one of the current employee's trips."""
    advance = await AdvanceService.request_advance(
        db, payload.trip_id, payload.request_type, payload.requested_amount, actor,
        reason=payload.request_reason
    )
    await db.commit()
    return advance


@router.get("/{advance_id}", response_model=AdvanceResponse)
async def get_advance(
    advance_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await AdvanceService.get_advance(db, advance_id, actor)


@router.get("/{advance_id}/history", response_model=List[AdvanceStatusHistoryResponse])
async def advance_history(
    advance_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await AdvanceService.history(db, advance_id, actor)


@router.delete("/{advance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_advance(
    advance_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Withdraw a pending advance request."""
    await AdvanceService.delete_advance(db, advance_id, actor)
    await db.commit()


@router.post("/{advance_id}/approve-area", response_model=AdvanceResponse)
async def approve_by_area(
    advance_id: int,
    payload: AdvanceAreaApproval,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    advance = await AdvanceService.approve_by_area(db, advance_id, payload.approved_amount, actor, payload.notes)
    await db.commit()
    return advance


@router.post("/{advance_id}/approve-regional", response_model=AdvanceResponse)
async def approve_by_regional(
    advance_id: int,
    payload: AdvanceRegionalApproval = AdvanceRegionalApproval(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    advance = await AdvanceService.approve_by_regional(db, advance_id, actor, payload.notes)
    await db.commit()
    return advance


@router.post("/{advance_id}/transfer", response_model=AdvanceResponse)
async def mark_transferred(
    advance_id: int,
    payload: AdvanceTransfer,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Record the bank transfer of an approved advance."""
    advance = await AdvanceService.mark_transferred(
        db, advance_id, payload.transfer_reference, actor,
        transfer_date=payload.transfer_date, notes=payload.notes
    )
    await db.commit()
    return advance


@router.post("/{advance_id}/reject", response_model=AdvanceResponse)
async def reject_advance(
    advance_id: int,
    payload: AdvanceRejection,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    advance = await AdvanceService.reject(db, advance_id, payload.rejection_reason, actor)
    await db.commit()
    return advance

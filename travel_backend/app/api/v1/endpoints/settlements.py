"""
Settlement API Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.dependencies import get_current_actor
from travel_backend.app.core.guards import require_finance
from travel_backend.app.db.session import get_db
from travel_backend.app.domain.authorization import Actor
from travel_backend.app.domain.settlements.settlement_service import SettlementService
from travel_backend.app.models.settlement_enums import SettlementStatus
from travel_backend.app.schemas.settlement import (
    SettlementCreate,
    SettlementProcess,
    SettlementResponse,
    SettlementSummaryResponse,
    BalanceResponse,
)

router = APIRouter(prefix="/settlements", tags=["Settlements"])


@router.get("", response_model=List[SettlementResponse])
async def list_settlements(
    status_filter: Optional[SettlementStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await SettlementService.list_settlements(db, actor, status_filter)


@router.get("/trips/{trip_id}", response_model=SettlementSummaryResponse)
async def trip_settlement_summary(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Live balance of a trip plus its settlement snapshot, if one exists."""
    balance, settlement = await SettlementService.summary(db, trip_id, actor)
    return SettlementSummaryResponse(
        trip_id=trip_id,
        balance=BalanceResponse.model_validate(balance),
        settlement=SettlementResponse.model_validate(settlement) if settlement else None,
    )


@router.post("", response_model=SettlementResponse, status_code=status.HTTP_201_CREATED)
async def create_settlement(
    payload: SettlementCreate,
    actor: Actor = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    settlement = await SettlementService.create_settlement(db, payload.trip_id, actor)
    await db.commit()
    return settlement


@router.get("/{settlement_id}", response_model=SettlementResponse)
async def get_settlement(
    settlement_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await SettlementService.get_settlement(db, settlement_id, actor)


@router.post("/{settlement_id}/process", response_model=SettlementResponse)
async def process_settlement(
    settlement_id: int,
    payload: SettlementProcess,
    actor: Actor = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    """Record the settlement transfer."""
    settlement = await SettlementService.process(
        db, settlement_id, actor,
        settlement_date=payload.settlement_date,
        transfer_reference=payload.transfer_reference,
        notes=payload.notes,
    )
    await db.commit()
    return settlement


@router.post("/{settlement_id}/complete", response_model=SettlementResponse)
async def complete_settlement(
    settlement_id: int,
    actor: Actor = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    settlement = await SettlementService.complete(db, settlement_id, actor)
    await db.commit()
    return settlement

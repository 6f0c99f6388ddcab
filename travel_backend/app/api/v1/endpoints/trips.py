"""
Trip API Endpoints.

Thin layer over TripService: resolve the actor, call the service, commit.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.dependencies import get_current_actor, get_file_store
from travel_backend.app.db.session import get_db
from travel_backend.app.domain.authorization import Actor
from travel_backend.app.domain.trips.queries import totals_for
from travel_backend.app.domain.trips.trip_service import TripService
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.trip_enums import TripStatus
from travel_backend.app.schemas.trip import (
    TripCreate,
    TripUpdate,
    TripExtensionRequest,
    TripNotesRequest,
    TripReasonRequest,
    TripCancelRequest,
    TripResponse,
    TripListResponse,
    TripStatusHistoryResponse,
    TripStatisticsResponse,
)
from travel_backend.app.services.file_storage import FileStore, commit_and_release

router = APIRouter(prefix="/trips", tags=["Trips"])


async def render_trips(db: AsyncSession, trips: List[Trip]) -> List[TripResponse]:
    """Attach the derived totals to each trip."""
    totals = await totals_for(db, [t.id for t in trips])
    return [
        TripResponse.model_validate(trip).model_copy(update={
            "total_advance": totals[trip.id].total_advance,
            "total_expenses": totals[trip.id].total_expenses,
        })
        for trip in trips
    ]


async def render_trip(db: AsyncSession, trip: Trip) -> TripResponse:
    return (await render_trips(db, [trip]))[0]


@router.get("", response_model=TripListResponse)
async def list_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    start_from: Optional[date] = Query(None),
    start_to: Optional[date] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """List trips visible to the current user."""
    trips = await TripService.list_trips(db, actor, status_filter, start_from, start_to)
    return TripListResponse(trips=await render_trips(db, trips), total=len(trips))


@router.get("/statistics", response_model=TripStatisticsResponse)
async def trip_statistics(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await TripService.statistics(db, actor)


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Create a new active trip for the current employee."""
    trip = await TripService.create_trip(
        db, actor,
        destination=payload.destination,
        purpose=payload.purpose,
        start_date=payload.start_date,
        end_date=payload.end_date,
        estimated_budget=payload.estimated_budget,
    )
    await db.commit()
    return await render_trip(db, trip)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.get_trip(db, trip_id, actor)
    return await render_trip(db, trip)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: int,
    payload: TripUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.update_trip(db, trip_id, payload.model_dump(exclude_unset=True), actor)
    await db.commit()
    return await render_trip(db, trip)


@router.get("/{trip_id}/history", response_model=List[TripStatusHistoryResponse])
async def trip_history(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Chronological status history of a trip."""
    return await TripService.history(db, trip_id, actor)


@router.post("/{trip_id}/extension", response_model=TripResponse)
async def request_extension(
    trip_id: int,
    payload: TripExtensionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.request_extension(
        db, trip_id, payload.extended_end_date, payload.extension_reason, actor
    )
    await db.commit()
    return await render_trip(db, trip)


@router.delete("/{trip_id}/extension", response_model=TripResponse)
async def cancel_extension(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.cancel_extension(db, trip_id, actor)
    await db.commit()
    return await render_trip(db, trip)


@router.post("/{trip_id}/submit", response_model=TripResponse)
async def submit_trip(
    trip_id: int,
    payload: TripNotesRequest = TripNotesRequest(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Submit the trip for Finance review."""
    trip = await TripService.submit_for_review(db, trip_id, actor, payload.notes)
    await db.commit()
    return await render_trip(db, trip)


@router.post("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: int,
    payload: TripCancelRequest = TripCancelRequest(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.cancel(db, trip_id, actor, payload.reason)
    await db.commit()
    return await render_trip(db, trip)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    file_store: FileStore = Depends(get_file_store)
):
    """Permanently delete a cancelled trip."""
    await TripService.purge_trip(db, trip_id, actor, file_store)
    await commit_and_release(db)


# --- Finance review ---

@router.post("/{trip_id}/review/start", response_model=TripResponse)
async def begin_area_review(
    trip_id: int,
    payload: TripNotesRequest = TripNotesRequest(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.begin_area_review(db, trip_id, actor, payload.notes)
    await db.commit()
    return await render_trip(db, trip)


@router.post("/{trip_id}/review/approve-area", response_model=TripResponse)
async def approve_trip_by_area(
    trip_id: int,
    payload: TripNotesRequest = TripNotesRequest(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.approve_by_area(db, trip_id, actor, payload.notes)
    await db.commit()
    return await render_trip(db, trip)


@router.post("/{trip_id}/review/reject", response_model=TripResponse)
async def reject_trip_settlement(
    trip_id: int,
    payload: TripReasonRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.reject_settlement(db, trip_id, payload.reason, actor)
    await db.commit()
    return await render_trip(db, trip)


@router.post("/{trip_id}/review/approve-regional", response_model=TripResponse)
async def approve_trip_by_regional(
    trip_id: int,
    payload: TripNotesRequest = TripNotesRequest(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.approve_by_regional(db, trip_id, actor, payload.notes)
    await db.commit()
    return await render_trip(db, trip)

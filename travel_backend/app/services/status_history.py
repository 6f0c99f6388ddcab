"""
Status history ledger for trips and advances.

Append-only: entries record transitions that the domain services already
validated. Nothing here checks business rules, and nothing ever updates an
existing entry.
"""

from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import utcnow
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.status_history import TripStatusHistory, AdvanceStatusHistory
from travel_backend.app.models.trip_enums import TripStatus


async def record_trip_status(
    db: AsyncSession,
    trip_id: int,
    old_status: Optional[TripStatus],
    new_status: TripStatus,
    actor_id: int,
    notes: Optional[str] = None,
    timestamp: Optional[datetime] = None
) -> TripStatusHistory:
    """
    Append a trip status entry.

    Args:
        db: Database session
        trip_id: Trip the transition happened on
        old_status: Status before the transition (None for creation)
        new_status: Status after the transition
        actor_id: User who caused the transition
        notes: Free text (reason, extension details, ...)
        timestamp: When it happened, defaults to now

    Returns:
        Created TripStatusHistory instance
    """
    entry = TripStatusHistory(
        trip_id=trip_id,
        old_status=old_status,
        new_status=new_status,
        changed_by=actor_id,
        notes=notes,
        changed_at=timestamp or utcnow()
    )
    db.add(entry)
    await db.flush()
    return entry


async def record_advance_status(
    db: AsyncSession,
    advance_id: int,
    old_status: Optional[AdvanceStatus],
    new_status: AdvanceStatus,
    actor_id: int,
    notes: Optional[str] = None,
    timestamp: Optional[datetime] = None
) -> AdvanceStatusHistory:
    """Append an advance status entry. Same contract as record_trip_status."""
    entry = AdvanceStatusHistory(
        advance_id=advance_id,
        old_status=old_status,
        new_status=new_status,
        changed_by=actor_id,
        notes=notes,
        changed_at=timestamp or utcnow()
    )
    db.add(entry)
    await db.flush()
    return entry


async def list_trip_history(db: AsyncSession, trip_id: int) -> List[TripStatusHistory]:
    """Chronological audit trail of a trip (oldest first)."""
    result = await db.execute(
        select(TripStatusHistory)
        .where(TripStatusHistory.trip_id == trip_id)
        .order_by(TripStatusHistory.changed_at, TripStatusHistory.id)
    )
    return list(result.scalars().all())


async def list_advance_history(db: AsyncSession, advance_id: int) -> List[AdvanceStatusHistory]:
    """Chronological audit trail of an advance (oldest first)."""
    result = await db.execute(
        select(AdvanceStatusHistory)
        .where(AdvanceStatusHistory.advance_id == advance_id)
        .order_by(AdvanceStatusHistory.changed_at, AdvanceStatusHistory.id)
    )
    return list(result.scalars().all())


async def purge_advance_history(db: AsyncSession, advance_ids: List[int]) -> int:
    """Remove the entries of advances that are being hard-deleted."""
    if not advance_ids:
        return 0
    result = await db.execute(
        delete(AdvanceStatusHistory).where(AdvanceStatusHistory.advance_id.in_(advance_ids))
    )
    return result.rowcount


async def purge_trip_history(db: AsyncSession, trip_id: int) -> int:
    """Remove the entries of a trip that is being hard-deleted."""
    result = await db.execute(
        delete(TripStatusHistory).where(TripStatusHistory.trip_id == trip_id)
    )
    return result.rowcount

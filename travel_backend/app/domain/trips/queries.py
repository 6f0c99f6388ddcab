"""
Trip loading and derived totals.

Trip totals are never stored. total_advance is the sum of approved amounts of
transferred (completed) advances; total_expenses is the sum of all receipts,
verified or not.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.exceptions import NotFoundError
from travel_backend.app.domain.money import to_money, ZERO
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.receipt import Receipt
from travel_backend.app.models.trip import Trip


@dataclass(frozen=True)
class TripTotals:
    total_advance: Decimal = ZERO
    total_expenses: Decimal = ZERO


async def load_trip(db: AsyncSession, trip_id: int, for_update: bool = False) -> Trip:
    """Fetch a trip (owner eager-loaded), optionally locking the row."""
    stmt = select(Trip).where(Trip.id == trip_id)
    if for_update:
        stmt = stmt.with_for_update(of=Trip).execution_options(populate_existing=True)

    result = await db.execute(stmt)
    trip = result.scalar_one_or_none()
    if not trip:
        raise NotFoundError("Trip", trip_id)
    return trip


async def totals_for(db: AsyncSession, trip_ids: Iterable[int]) -> Dict[int, TripTotals]:
    """Derived totals for many trips in two aggregate queries."""
    ids = list(trip_ids)
    if not ids:
        return {}

    advances = await db.execute(
        select(Advance.trip_id, func.sum(Advance.approved_amount))
        .where(Advance.trip_id.in_(ids), Advance.status == AdvanceStatus.COMPLETED)
        .group_by(Advance.trip_id)
    )
    advance_sums = {trip_id: to_money(total) for trip_id, total in advances.all()}

    receipts = await db.execute(
        select(Receipt.trip_id, func.sum(Receipt.amount))
        .where(Receipt.trip_id.in_(ids))
        .group_by(Receipt.trip_id)
    )
    receipt_sums = {trip_id: to_money(total) for trip_id, total in receipts.all()}

    return {
        trip_id: TripTotals(
            total_advance=advance_sums.get(trip_id, ZERO),
            total_expenses=receipt_sums.get(trip_id, ZERO),
        )
        for trip_id in ids
    }


async def trip_totals(db: AsyncSession, trip_id: int) -> TripTotals:
    return (await totals_for(db, [trip_id]))[trip_id]

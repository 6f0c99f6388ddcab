"""
Trip Service (Domain Logic).

Trip lifecycle:

    ACTIVE -> AWAITING_REVIEW -> [UNDER_REVIEW_AREA] -> UNDER_REVIEW_REGIONAL -> COMPLETED
    ACTIVE / AWAITING_REVIEW -> CANCELLED
    AWAITING_REVIEW / UNDER_REVIEW_AREA -> ACTIVE (settlement rejected)
    UNDER_REVIEW_AREA -> COMPLETED (settlement completed)

Extensions are metadata on an ACTIVE trip, not a status. An employee has at
most one ACTIVE trip at a time.
"""

import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import utcnow, today
from travel_backend.app.core.config import settings
from travel_backend.app.core.exceptions import ConflictError, ValidationError, StateError
from travel_backend.app.domain.authorization import Actor, authorize
from travel_backend.app.domain.money import to_money
from travel_backend.app.domain.settlements.settlement_service import SettlementService
from travel_backend.app.domain.trips.queries import load_trip, totals_for
from travel_backend.app.domain.workflow import ensure_transition
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.notification import Notification
from travel_backend.app.models.receipt import Receipt
from travel_backend.app.models.settlement import Settlement
from travel_backend.app.models.status_history import TripStatusHistory
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.trip_enums import TripStatus
from travel_backend.app.services.file_storage import FileStore, schedule_delete
from travel_backend.app.services.notification_service import NotificationService
from travel_backend.app.services.numbering import next_number, TRIP_PREFIX
from travel_backend.app.services.status_history import (
    record_trip_status,
    record_advance_status,
    list_trip_history,
    purge_advance_history,
    purge_trip_history,
)

logger = logging.getLogger("travel.trips")

UPDATABLE_FIELDS = ("destination", "purpose", "start_date", "end_date", "estimated_budget")


def trip_duration(start_date: date, end_date: date) -> int:
    """Inclusive day count."""
    return (end_date - start_date).days + 1


def _validate_dates_and_budget(start_date: date, end_date: date, budget) -> None:
    if end_date < start_date:
        raise ValidationError("End date must be on or after start date")
    if budget is not None and to_money(budget) < 0:
        raise ValidationError("Estimated budget cannot be negative")


async def _other_active_trip(db: AsyncSession, user_id: int, exclude_id: Optional[int] = None) -> Optional[int]:
    query = select(Trip.id).where(Trip.user_id == user_id, Trip.status == TripStatus.ACTIVE)
    if exclude_id is not None:
        query = query.where(Trip.id != exclude_id)
    return (await db.execute(query)).scalars().first()


@asynccontextmanager
async def _single_active_trip(db: AsyncSession, user_id: int):
    """
    Run the changes that make a trip ACTIVE inside a SAVEPOINT and flush them.

    The partial unique index on trips settles concurrent requests that both
    passed the read check; the loser gets a ConflictError.
    """
    try:
        async with db.begin_nested():
            yield
            await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "Employee already has an active trip",
            details={"user_id": user_id}
        ) from exc


class TripService:

    @staticmethod
    async def _transition(
        db: AsyncSession,
        trip: Trip,
        target: TripStatus,
        actor: Actor,
        notes: Optional[str] = None
    ) -> TripStatus:
        """Apply a transition already checked with ensure_transition. Returns the old status."""
        old_status = trip.status
        if target == TripStatus.ACTIVE:
            async with _single_active_trip(db, trip.user_id):
                trip.status = target
        else:
            trip.status = target
            await db.flush()
        await record_trip_status(db, trip.id, old_status, target, actor.id, notes=notes)
        logger.info(
            "Trip %s: %s -> %s by user %s",
            trip.trip_number, old_status.value, target.value, actor.id
        )
        return old_status

    @staticmethod
    async def create_trip(
        db: AsyncSession,
        actor: Actor,
        destination: str,
        purpose: str,
        start_date: date,
        end_date: date,
        estimated_budget: Optional[Decimal] = None
    ) -> Trip:
        """
        Create a new ACTIVE trip for the actor.

        Raises:
            ConflictError: actor already has an active trip
            ValidationError: end date before start date or negative budget
        """
        # 1. Single active trip per employee
        if await _other_active_trip(db, actor.id) is not None:
            raise ConflictError(
                "You already have an active trip. Please complete or cancel it first.",
                details={"user_id": actor.id}
            )

        # 2. Validate
        _validate_dates_and_budget(start_date, end_date, estimated_budget)

        # 3. Create
        trip = Trip(
            trip_number=await next_number(db, TRIP_PREFIX),
            user_id=actor.id,
            destination=destination,
            purpose=purpose,
            start_date=start_date,
            end_date=end_date,
            duration=trip_duration(start_date, end_date),
            estimated_budget=to_money(estimated_budget) if estimated_budget is not None else None,
            status=TripStatus.ACTIVE,
        )
        async with _single_active_trip(db, actor.id):
            db.add(trip)

        # 4. History (creation entry has no old status)
        await record_trip_status(db, trip.id, None, TripStatus.ACTIVE, actor.id, notes="Trip created")

        # Make the owner available to policy checks without a lazy load
        await db.refresh(trip, attribute_names=["owner"])

        logger.info("Trip %s created by user %s", trip.trip_number, actor.id)
        return trip

    @staticmethod
    async def get_trip(db: AsyncSession, trip_id: int, actor: Actor) -> Trip:
        trip = await load_trip(db, trip_id)
        authorize(actor.policy.can_view_trip(trip), "You cannot access this trip")
        return trip

    @staticmethod
    async def update_trip(db: AsyncSession, trip_id: int, fields: Dict[str, Any], actor: Actor) -> Trip:
        """Owner edits trip details while the trip is still ACTIVE."""
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_manage_trip(trip), "Only the trip owner can edit this trip")

        if trip.status != TripStatus.ACTIVE:
            raise StateError("Only active trips can be edited", details={"status": trip.status.value})

        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        start_date = changes.get("start_date", trip.start_date)
        end_date = changes.get("end_date", trip.end_date)
        _validate_dates_and_budget(start_date, end_date, changes.get("estimated_budget"))

        if "estimated_budget" in changes and changes["estimated_budget"] is not None:
            changes["estimated_budget"] = to_money(changes["estimated_budget"])

        for key, value in changes.items():
            setattr(trip, key, value)
        trip.duration = trip_duration(start_date, end_date)

        await db.flush()
        logger.info("Trip %s updated by user %s: %s", trip.trip_number, actor.id, sorted(changes))
        return trip

    @staticmethod
    async def request_extension(
        db: AsyncSession, trip_id: int, new_end_date: date, reason: str, actor: Actor
    ) -> Trip:
        """Owner asks to stay longer. Status stays ACTIVE."""
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_manage_trip(trip), "Only the trip owner can extend this trip")

        if trip.status != TripStatus.ACTIVE:
            raise StateError("Only active trips can be extended", details={"status": trip.status.value})
        if new_end_date <= trip.end_date:
            raise ValidationError("Extended end date must be after the current end date")
        if not (reason or "").strip():
            raise ValidationError("An extension reason is required")

        trip.extended_end_date = new_end_date
        trip.extension_reason = reason
        trip.extension_requested_at = utcnow()
        await db.flush()

        await record_trip_status(
            db, trip.id, TripStatus.ACTIVE, TripStatus.ACTIVE, actor.id,
            notes=f"Extension requested until {new_end_date.isoformat()}: {reason}"
        )
        await NotificationService.trip_extension_requested(db, trip)

        logger.info("Trip %s extension requested until %s", trip.trip_number, new_end_date)
        return trip

    @staticmethod
    async def cancel_extension(db: AsyncSession, trip_id: int, actor: Actor) -> Trip:
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_manage_trip(trip), "Only the trip owner can cancel the extension")

        if trip.status != TripStatus.ACTIVE:
            raise StateError("Only active trips can change their extension", details={"status": trip.status.value})
        if not trip.has_extension:
            raise ValidationError("This trip has no extension to cancel")

        trip.extended_end_date = None
        trip.extension_reason = None
        trip.extension_requested_at = None
        await db.flush()

        await record_trip_status(
            db, trip.id, TripStatus.ACTIVE, TripStatus.ACTIVE, actor.id, notes="Extension cancelled"
        )
        await NotificationService.trip_extension_cancelled(db, trip)
        return trip

    @staticmethod
    async def submit_for_review(db: AsyncSession, trip_id: int, actor: Actor, notes: Optional[str] = None) -> Trip:
        """Owner hands the trip to Finance. ACTIVE -> AWAITING_REVIEW."""
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_manage_trip(trip), "Only the trip owner can submit this trip")

        ensure_transition("trip", trip.status, TripStatus.AWAITING_REVIEW)

        if settings.require_trip_end_before_submit:
            last_day = trip.extended_end_date or trip.end_date
            if today() < last_day:
                raise ValidationError(
                    "Trip can only be submitted after its end date",
                    details={"end_date": last_day.isoformat()}
                )

        trip.submitted_at = utcnow()
        trip.rejection_reason = None
        await TripService._transition(db, trip, TripStatus.AWAITING_REVIEW, actor, notes or "Submitted for review")
        await NotificationService.trip_status_changed(db, trip, TripStatus.AWAITING_REVIEW)
        return trip

    @staticmethod
    async def begin_area_review(db: AsyncSession, trip_id: int, actor: Actor, notes: Optional[str] = None) -> Trip:
        """Finance Area starts checking receipts. AWAITING_REVIEW -> UNDER_REVIEW_AREA."""
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_approve_area(trip), "Only Finance Area of the employee's area can review")

        ensure_transition("trip", trip.status, TripStatus.UNDER_REVIEW_AREA)
        await TripService._transition(db, trip, TripStatus.UNDER_REVIEW_AREA, actor, notes or "Receipts under review")
        return trip

    @staticmethod
    async def approve_by_area(db: AsyncSession, trip_id: int, actor: Actor, notes: Optional[str] = None) -> Trip:
        """
        Finance Area forwards the trip to Finance Regional.

        AWAITING_REVIEW or UNDER_REVIEW_AREA -> UNDER_REVIEW_REGIONAL. The
        settlement snapshot is taken here when auto_create_settlement is on.
        """
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_approve_area(trip), "Only Finance Area of the employee's area can approve")

        ensure_transition("trip", trip.status, TripStatus.UNDER_REVIEW_REGIONAL)
        await TripService._transition(
            db, trip, TripStatus.UNDER_REVIEW_REGIONAL, actor, notes or "Approved by Finance Area"
        )

        if settings.auto_create_settlement and await SettlementService.find_for_trip(db, trip.id) is None:
            await SettlementService.create_settlement(db, trip.id)

        await NotificationService.trip_status_changed(db, trip, TripStatus.UNDER_REVIEW_REGIONAL, notes)
        return trip

    @staticmethod
    async def reject_settlement(db: AsyncSession, trip_id: int, reason: str, actor: Actor) -> Trip:
        """
        Finance Area sends the trip back to the employee for correction.

        AWAITING_REVIEW or UNDER_REVIEW_AREA -> ACTIVE. A pending settlement
        snapshot is discarded so it is recomputed on the next approval.
        """
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_approve_area(trip), "Only Finance Area of the employee's area can reject")

        ensure_transition("trip", trip.status, TripStatus.ACTIVE)

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        # The owner may have opened another trip meanwhile
        if await _other_active_trip(db, trip.user_id, exclude_id=trip.id) is not None:
            raise ConflictError("Employee already has another active trip", details={"user_id": trip.user_id})

        await SettlementService.discard_pending(db, trip)

        trip.rejection_reason = reason
        await TripService._transition(db, trip, TripStatus.ACTIVE, actor, f"Settlement rejected: {reason}")
        await NotificationService.trip_status_changed(db, trip, TripStatus.ACTIVE, reason)
        return trip

    @staticmethod
    async def approve_by_regional(db: AsyncSession, trip_id: int, actor: Actor, notes: Optional[str] = None) -> Trip:
        """Finance Regional closes the review. UNDER_REVIEW_REGIONAL -> COMPLETED."""
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_approve_regional(trip), "Only Finance Regional can give final approval")

        # Under area review the trip can only close through its settlement
        if trip.status == TripStatus.UNDER_REVIEW_AREA:
            raise StateError(
                "Trip must be approved by Finance Area first",
                details={"entity": "trip", "current": trip.status.value, "target": TripStatus.COMPLETED.value}
            )
        ensure_transition("trip", trip.status, TripStatus.COMPLETED)

        trip.completed_at = utcnow()
        await TripService._transition(db, trip, TripStatus.COMPLETED, actor, notes or "Approved by Finance Regional")
        await NotificationService.trip_status_changed(db, trip, TripStatus.COMPLETED)
        return trip

    @staticmethod
    async def cancel(db: AsyncSession, trip_id: int, actor: Actor, reason: Optional[str] = None) -> Trip:
        """
        Cancel a trip that has not entered Finance review.

        Cascade on the trip's advances:
        - PENDING advances are deleted together with their history
        - APPROVED_AREA / APPROVED_REGIONAL advances are VOIDED
        - COMPLETED and REJECTED advances are kept as they are
        """
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_cancel_trip(trip), "You cannot cancel this trip")

        ensure_transition("trip", trip.status, TripStatus.CANCELLED)

        result = await db.execute(
            select(Advance)
            .where(Advance.trip_id == trip.id)
            .with_for_update(of=Advance)
            .execution_options(populate_existing=True)
        )
        advances = list(result.scalars().all())

        # 1. Drop pending requests
        pending_ids = [a.id for a in advances if a.status == AdvanceStatus.PENDING]
        if pending_ids:
            await purge_advance_history(db, pending_ids)
            await db.execute(delete(Advance).where(Advance.id.in_(pending_ids)))

        # 2. Void approved-but-not-transferred advances
        voided = 0
        for advance in advances:
            if advance.status in (AdvanceStatus.APPROVED_AREA, AdvanceStatus.APPROVED_REGIONAL):
                ensure_transition("advance", advance.status, AdvanceStatus.VOIDED)
                old_status = advance.status
                advance.status = AdvanceStatus.VOIDED
                await db.flush()
                await record_advance_status(
                    db, advance.id, old_status, AdvanceStatus.VOIDED, actor.id,
                    notes="Trip cancelled"
                )
                voided += 1

        # 3. Cancel trip
        await TripService._transition(db, trip, TripStatus.CANCELLED, actor, reason or "Trip cancelled")
        await NotificationService.trip_status_changed(db, trip, TripStatus.CANCELLED, reason)

        logger.info(
            "Trip %s cancelled: %d pending advances deleted, %d voided",
            trip.trip_number, len(pending_ids), voided
        )
        return trip

    @staticmethod
    async def purge_trip(db: AsyncSession, trip_id: int, actor: Actor, file_store: FileStore) -> None:
        """
        Hard-delete a cancelled trip and everything it owns.

        Order: advance history, advances, receipts, notifications, trip
        history, settlement, trip. Receipt files are queued for removal and
        only deleted once the caller commits through commit_and_release.
        """
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_cancel_trip(trip), "You cannot delete this trip")

        if trip.status != TripStatus.CANCELLED:
            raise StateError(
                "Only cancelled trips can be deleted",
                details={"trip_id": trip.id, "status": trip.status.value}
            )

        advance_ids = list((await db.execute(
            select(Advance.id).where(Advance.trip_id == trip.id)
        )).scalars().all())
        file_paths = list((await db.execute(
            select(Receipt.file_path).where(Receipt.trip_id == trip.id)
        )).scalars().all())

        await purge_advance_history(db, advance_ids)
        # Receipts reference advances, remove them first
        await db.execute(delete(Receipt).where(Receipt.trip_id == trip.id))
        await db.execute(delete(Advance).where(Advance.trip_id == trip.id))
        await db.execute(delete(Notification).where(Notification.trip_id == trip.id))
        await purge_trip_history(db, trip.id)
        await db.execute(delete(Settlement).where(Settlement.trip_id == trip.id))
        number = trip.trip_number
        await db.delete(trip)
        await db.flush()

        for path in file_paths:
            schedule_delete(db, file_store, path)

        logger.info(
            "Trip %s purged by user %s (%d advances, %d receipt files)",
            number, actor.id, len(advance_ids), len(file_paths)
        )

    @staticmethod
    async def history(db: AsyncSession, trip_id: int, actor: Actor) -> List[TripStatusHistory]:
        trip = await TripService.get_trip(db, trip_id, actor)
        return await list_trip_history(db, trip.id)

    @staticmethod
    async def list_trips(
        db: AsyncSession,
        actor: Actor,
        status: Optional[TripStatus] = None,
        start_from: Optional[date] = None,
        start_to: Optional[date] = None
    ) -> List[Trip]:
        """Trips visible to the actor, newest first."""
        query = select(Trip).where(actor.policy.scope_trips())
        if status:
            query = query.where(Trip.status == status)
        if start_from:
            query = query.where(Trip.start_date >= start_from)
        if start_to:
            query = query.where(Trip.start_date <= start_to)
        query = query.order_by(Trip.created_at.desc(), Trip.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def statistics(db: AsyncSession, actor: Actor) -> Dict[str, Any]:
        """Counts per status and money totals over the actor's visible trips."""
        trip_ids_and_status = (await db.execute(
            select(Trip.id, Trip.status).where(actor.policy.scope_trips())
        )).all()

        by_status = Counter(status.value for _, status in trip_ids_and_status)
        totals = await totals_for(db, [trip_id for trip_id, _ in trip_ids_and_status])

        return {
            "total_trips": len(trip_ids_and_status),
            "by_status": {status.value: by_status.get(status.value, 0) for status in TripStatus},
            "total_advance": to_money(sum((t.total_advance for t in totals.values()), Decimal("0"))),
            "total_expenses": to_money(sum((t.total_expenses for t in totals.values()), Decimal("0"))),
        }

"""
Advance Service (Domain Logic).

Two-tier approval of cash advances:

    PENDING -> APPROVED_AREA -> APPROVED_REGIONAL -> COMPLETED (transferred)

Finance can reject at any gate before the transfer. Trip cancellation voids
approved advances (see TripService.cancel). Every transition is written to the
advance status history and announced to the trip owner.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import utcnow, today
from travel_backend.app.core.exceptions import ValidationError, NotFoundError, StateError
from travel_backend.app.domain.authorization import Actor, authorize
from travel_backend.app.domain.money import to_money
from travel_backend.app.domain.trips.queries import load_trip
from travel_backend.app.domain.workflow import ensure_transition
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.advance_enums import AdvanceStatus, AdvanceRequestType
from travel_backend.app.models.status_history import AdvanceStatusHistory
from travel_backend.app.models.trip_enums import TripStatus
from travel_backend.app.services.notification_service import NotificationService
from travel_backend.app.services.numbering import next_number, ADVANCE_PREFIX
from travel_backend.app.services.status_history import record_advance_status, list_advance_history

logger = logging.getLogger("travel.advances")


class AdvanceService:

    @staticmethod
    async def _load(db: AsyncSession, advance_id: int, for_update: bool = False) -> Advance:
        stmt = select(Advance).where(Advance.id == advance_id)
        if for_update:
            stmt = stmt.with_for_update(of=Advance).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        advance = result.scalar_one_or_none()
        if not advance:
            raise NotFoundError("Advance", advance_id)
        return advance

    @staticmethod
    async def _transition(
        db: AsyncSession,
        advance: Advance,
        target: AdvanceStatus,
        actor: Actor,
        notes: Optional[str] = None
    ) -> None:
        """Apply a validated transition: flush, write history, notify."""
        old_status = advance.status
        advance.status = target
        await db.flush()
        await record_advance_status(db, advance.id, old_status, target, actor.id, notes=notes)
        await NotificationService.advance_status_changed(db, advance, target, notes)
        logger.info(
            "Advance %s: %s -> %s by user %s",
            advance.advance_number, old_status.value, target.value, actor.id
        )

    @staticmethod
    async def request_advance(
        db: AsyncSession,
        trip_id: int,
        request_type: AdvanceRequestType,
        amount: Decimal,
        actor: Actor,
        reason: Optional[str] = None
    ) -> Advance:
        """
        Employee requests an advance for their active trip.

        Raises:
            AuthorizationError: actor does not own the trip
            ValidationError: trip not active, negative amount, duplicate
                initial advance, or additional advance without a reason
        """
        # 1. Lock trip so concurrent initial requests serialize
        trip = await load_trip(db, trip_id, for_update=True)
        authorize(actor.policy.can_manage_trip(trip), "Only the trip owner can request advances")

        # 2. Validate request
        if trip.status != TripStatus.ACTIVE:
            raise ValidationError(
                "Advances can only be requested for active trips",
                details={"trip_id": trip.id, "status": trip.status.value}
            )

        amount = to_money(amount)
        if amount < 0:
            raise ValidationError("Advance amount cannot be negative")

        if request_type == AdvanceRequestType.INITIAL:
            existing = await db.execute(
                select(Advance.id).where(
                    Advance.trip_id == trip.id,
                    Advance.request_type == AdvanceRequestType.INITIAL,
                    Advance.status != AdvanceStatus.REJECTED
                )
            )
            if existing.first() is not None:
                raise ValidationError(
                    "Initial advance already exists for this trip. Request an additional advance instead.",
                    details={"trip_id": trip.id}
                )
        elif not (reason or "").strip():
            raise ValidationError("A reason is required for additional advances")

        # 3. Create
        advance = Advance(
            advance_number=await next_number(db, ADVANCE_PREFIX),
            trip_id=trip.id,
            request_type=request_type,
            requested_amount=amount,
            request_reason=reason,
            status=AdvanceStatus.PENDING,
            requested_at=utcnow(),
        )
        advance.trip = trip
        db.add(advance)
        await db.flush()

        # 4. History
        await record_advance_status(
            db, advance.id, None, AdvanceStatus.PENDING, actor.id,
            notes=f"{request_type.value.capitalize()} advance requested"
        )

        logger.info("Advance %s requested for trip %s: %s", advance.advance_number, trip.trip_number, amount)
        return advance

    @staticmethod
    async def approve_by_area(
        db: AsyncSession,
        advance_id: int,
        approved_amount: Decimal,
        actor: Actor,
        notes: Optional[str] = None
    ) -> Advance:
        """
        Finance Area fixes the approved amount. PENDING -> APPROVED_AREA.

        The approved amount may be lower or higher than the requested one.
        """
        advance = await AdvanceService._load(db, advance_id, for_update=True)
        authorize(actor.policy.can_approve_area(advance.trip), "Only Finance Area of the employee's area can approve")

        ensure_transition("advance", advance.status, AdvanceStatus.APPROVED_AREA)

        approved_amount = to_money(approved_amount)
        if approved_amount < 0:
            raise ValidationError("Approved amount cannot be negative")

        advance.approved_amount = approved_amount
        advance.approved_by_area = actor.id
        advance.approved_at_area = utcnow()
        if notes:
            advance.notes = notes

        await AdvanceService._transition(db, advance, AdvanceStatus.APPROVED_AREA, actor, notes)
        return advance

    @staticmethod
    async def approve_by_regional(
        db: AsyncSession, advance_id: int, actor: Actor, notes: Optional[str] = None
    ) -> Advance:
        """Finance Regional clears the advance for transfer. APPROVED_AREA -> APPROVED_REGIONAL."""
        advance = await AdvanceService._load(db, advance_id, for_update=True)
        authorize(actor.policy.can_approve_regional(advance.trip), "Only Finance Regional can approve")

        ensure_transition("advance", advance.status, AdvanceStatus.APPROVED_REGIONAL)

        advance.approved_by_regional = actor.id
        advance.approved_at_regional = utcnow()
        if notes:
            advance.notes = notes

        await AdvanceService._transition(db, advance, AdvanceStatus.APPROVED_REGIONAL, actor, notes)
        return advance

    @staticmethod
    async def mark_transferred(
        db: AsyncSession,
        advance_id: int,
        transfer_reference: str,
        actor: Actor,
        transfer_date: Optional[date] = None,
        notes: Optional[str] = None
    ) -> Advance:
        """
        Record the bank transfer. APPROVED_REGIONAL -> COMPLETED.

        From here on the approved amount counts toward the trip's total_advance.
        """
        advance = await AdvanceService._load(db, advance_id, for_update=True)
        authorize(actor.policy.can_handle_finance(advance.trip), "Only finance can record transfers")

        ensure_transition("advance", advance.status, AdvanceStatus.COMPLETED)

        reference = (transfer_reference or "").strip()
        if not reference:
            raise ValidationError("Transfer reference is required")

        advance.transfer_reference = reference
        advance.transfer_date = transfer_date or today()
        if notes:
            advance.notes = notes

        await AdvanceService._transition(
            db, advance, AdvanceStatus.COMPLETED, actor,
            notes or f"Transferred, reference {reference}"
        )
        return advance

    @staticmethod
    async def reject(db: AsyncSession, advance_id: int, reason: str, actor: Actor) -> Advance:
        """Finance rejects an advance that has not been transferred yet."""
        advance = await AdvanceService._load(db, advance_id, for_update=True)
        authorize(actor.policy.can_handle_finance(advance.trip), "Only finance can reject advances")

        ensure_transition("advance", advance.status, AdvanceStatus.REJECTED)

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        advance.rejection_reason = reason
        await AdvanceService._transition(db, advance, AdvanceStatus.REJECTED, actor, reason)
        return advance

    @staticmethod
    async def delete_advance(db: AsyncSession, advance_id: int, actor: Actor) -> None:
        """Owner withdraws a pending request. Removes the advance and its history."""
        advance = await AdvanceService._load(db, advance_id, for_update=True)
        authorize(actor.policy.can_manage_trip(advance.trip), "Only the requesting employee can delete this advance")

        if advance.status != AdvanceStatus.PENDING:
            raise StateError(
                "Only pending advances can be deleted",
                details={"advance_id": advance.id, "status": advance.status.value}
            )

        number = advance.advance_number
        await db.execute(delete(AdvanceStatusHistory).where(AdvanceStatusHistory.advance_id == advance.id))
        await db.delete(advance)
        await db.flush()
        logger.info("Advance %s deleted by user %s", number, actor.id)

    @staticmethod
    async def get_advance(db: AsyncSession, advance_id: int, actor: Actor) -> Advance:
        advance = await AdvanceService._load(db, advance_id)
        authorize(actor.policy.can_view_trip(advance.trip), "You cannot access this advance")
        return advance

    @staticmethod
    async def history(db: AsyncSession, advance_id: int, actor: Actor) -> List[AdvanceStatusHistory]:
        advance = await AdvanceService.get_advance(db, advance_id, actor)
        return await list_advance_history(db, advance.id)

    @staticmethod
    async def list_advances(
        db: AsyncSession,
        actor: Actor,
        trip_id: Optional[int] = None,
        status: Optional[AdvanceStatus] = None
    ) -> List[Advance]:
        """Advances visible to the actor, newest first."""
        query = select(Advance).where(Advance.trip.has(actor.policy.scope_trips()))
        if trip_id:
            query = query.where(Advance.trip_id == trip_id)
        if status:
            query = query.where(Advance.status == status)
        query = query.order_by(Advance.requested_at.desc(), Advance.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

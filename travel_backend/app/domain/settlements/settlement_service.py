"""
Settlement Service (Domain Logic).

Reconciles what the company transferred to the employee (completed advances)
against what the employee proved to have spent (verified receipts).

    balance = total_advance - total_receipts
    balance > 0  -> REFUND   (employee returns the difference)
    balance < 0  -> PAYMENT  (company reimburses the difference)
    balance == 0 -> BALANCED

The settlement row is a snapshot taken at creation. Completing it closes the
trip.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import utcnow, today
from travel_backend.app.core.exceptions import ConflictError, StateError, ValidationError, NotFoundError
from travel_backend.app.domain.authorization import Actor, authorize
from travel_backend.app.domain.money import to_money, ZERO
from travel_backend.app.domain.trips.queries import load_trip
from travel_backend.app.domain.workflow import ensure_transition
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.receipt import Receipt
from travel_backend.app.models.settlement import Settlement
from travel_backend.app.models.settlement_enums import SettlementStatus, SettlementType
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.trip_enums import TripStatus, REVIEW_TRIP_STATUSES
from travel_backend.app.services.notification_service import NotificationService
from travel_backend.app.services.numbering import next_number, SETTLEMENT_PREFIX
from travel_backend.app.services.status_history import record_trip_status

logger = logging.getLogger("travel.settlements")


@dataclass(frozen=True)
class BalanceSummary:
    total_advance: Decimal
    total_receipts: Decimal
    balance: Decimal
    settlement_type: SettlementType
    settlement_amount: Decimal


def classify_balance(total_advance, total_receipts) -> BalanceSummary:
    """Pure reconciliation of the two totals."""
    total_advance = to_money(total_advance)
    total_receipts = to_money(total_receipts)
    balance = total_advance - total_receipts

    if balance > ZERO:
        settlement_type = SettlementType.REFUND
    elif balance < ZERO:
        settlement_type = SettlementType.PAYMENT
    else:
        settlement_type = SettlementType.BALANCED

    return BalanceSummary(
        total_advance=total_advance,
        total_receipts=total_receipts,
        balance=balance,
        settlement_type=settlement_type,
        settlement_amount=abs(balance),
    )


class SettlementService:

    @staticmethod
    async def compute_balance(db: AsyncSession, trip_id: int) -> BalanceSummary:
        """
        Live balance of a trip.

        Only advances whose funds were transferred (COMPLETED) count, and only
        receipts Finance has verified.
        """
        advance_total = await db.execute(
            select(func.sum(Advance.approved_amount)).where(
                Advance.trip_id == trip_id,
                Advance.status == AdvanceStatus.COMPLETED
            )
        )
        receipt_total = await db.execute(
            select(func.sum(Receipt.amount)).where(
                Receipt.trip_id == trip_id,
                Receipt.is_verified == True
            )
        )
        return classify_balance(advance_total.scalar_one(), receipt_total.scalar_one())

    @staticmethod
    async def find_for_trip(db: AsyncSession, trip_id: int, for_update: bool = False) -> Optional[Settlement]:
        stmt = select(Settlement).where(Settlement.trip_id == trip_id)
        if for_update:
            stmt = stmt.with_for_update(of=Settlement).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_settlement(db: AsyncSession, trip_id: int, actor: Optional[Actor] = None) -> Settlement:
        """
        Snapshot the balance of a trip under review.

        ``actor`` is None when the snapshot is taken automatically as part of
        the Finance Area approval.

        Raises:
            ConflictError: a settlement already exists for the trip
            StateError: the trip has not entered review
        """
        # 1. Lock trip
        trip = await load_trip(db, trip_id, for_update=True)
        if actor is not None:
            authorize(actor.policy.can_handle_finance(trip), "Only finance can create settlements for this trip")

        # 2. One settlement per trip
        if await SettlementService.find_for_trip(db, trip_id):
            raise ConflictError("Settlement already exists for this trip", details={"trip_id": trip_id})

        if trip.status not in REVIEW_TRIP_STATUSES:
            raise StateError(
                f"Trip must be under review to create a settlement (current: '{trip.status.value}')",
                details={"trip_id": trip_id, "status": trip.status.value}
            )

        # 3. Snapshot
        summary = await SettlementService.compute_balance(db, trip_id)
        settlement = Settlement(
            settlement_number=await next_number(db, SETTLEMENT_PREFIX),
            trip_id=trip.id,
            total_advance=summary.total_advance,
            total_receipts=summary.total_receipts,
            balance=summary.balance,
            settlement_type=summary.settlement_type,
            settlement_amount=summary.settlement_amount,
            status=SettlementStatus.PENDING,
        )
        settlement.trip = trip
        db.add(settlement)
        await db.flush()

        logger.info(
            "Settlement %s created for trip %s: %s %s",
            settlement.settlement_number, trip.trip_number,
            summary.settlement_type.value, summary.settlement_amount
        )
        return settlement

    @staticmethod
    async def discard_pending(db: AsyncSession, trip: Trip) -> bool:
        """
        Drop the snapshot of a trip bounced back to the employee.

        Returns True if a pending snapshot was removed. A processed or completed
        settlement cannot be discarded.
        """
        settlement = await SettlementService.find_for_trip(db, trip.id, for_update=True)
        if settlement is None:
            return False
        if settlement.status != SettlementStatus.PENDING:
            raise StateError(
                "Settlement has already been processed",
                details={"settlement_id": settlement.id, "status": settlement.status.value}
            )
        await db.delete(settlement)
        await db.flush()
        logger.info("Pending settlement %s discarded for trip %s", settlement.settlement_number, trip.trip_number)
        return True

    @staticmethod
    async def get_settlement(
        db: AsyncSession, settlement_id: int, actor: Actor, for_update: bool = False
    ) -> Settlement:
        stmt = select(Settlement).where(Settlement.id == settlement_id)
        if for_update:
            stmt = stmt.with_for_update(of=Settlement).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        settlement = result.scalar_one_or_none()
        if not settlement:
            raise NotFoundError("Settlement", settlement_id)

        authorize(actor.policy.can_view_trip(settlement.trip), "You cannot access this settlement")
        return settlement

    @staticmethod
    async def process(
        db: AsyncSession,
        settlement_id: int,
        actor: Actor,
        settlement_date: Optional[date] = None,
        transfer_reference: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Settlement:
        """Record the money transfer. PENDING -> PROCESSED."""
        settlement = await SettlementService.get_settlement(db, settlement_id, actor, for_update=True)
        authorize(actor.policy.can_handle_finance(settlement.trip), "Only finance can process settlements")

        ensure_transition("settlement", settlement.status, SettlementStatus.PROCESSED)

        reference = (transfer_reference or "").strip()
        if settlement.settlement_type != SettlementType.BALANCED and not reference:
            raise ValidationError("Transfer reference is required for refund and payment settlements")

        settlement.status = SettlementStatus.PROCESSED
        settlement.settlement_date = settlement_date or today()
        settlement.transfer_reference = reference or None
        settlement.notes = notes
        settlement.processed_by = actor.id
        settlement.processed_at = utcnow()
        await db.flush()

        logger.info("Settlement %s processed by user %s", settlement.settlement_number, actor.id)
        return settlement

    @staticmethod
    async def complete(db: AsyncSession, settlement_id: int, actor: Actor) -> Settlement:
        """
        Close the settlement. PROCESSED -> COMPLETED.

        The trip follows to COMPLETED if Finance Regional has not closed it yet.
        """
        settlement = await SettlementService.get_settlement(db, settlement_id, actor, for_update=True)
        authorize(actor.policy.can_handle_finance(settlement.trip), "Only finance can complete settlements")

        ensure_transition("settlement", settlement.status, SettlementStatus.COMPLETED)

        trip = await load_trip(db, settlement.trip_id, for_update=True)

        now = utcnow()
        settlement.status = SettlementStatus.COMPLETED
        settlement.completed_by = actor.id
        settlement.completed_at = now

        if trip.status != TripStatus.COMPLETED:
            ensure_transition("trip", trip.status, TripStatus.COMPLETED)
            old_status = trip.status
            trip.status = TripStatus.COMPLETED
            trip.completed_at = now
            await db.flush()
            await record_trip_status(
                db, trip.id, old_status, TripStatus.COMPLETED, actor.id,
                notes=f"Settlement {settlement.settlement_number} completed", timestamp=now
            )
            await NotificationService.trip_status_changed(db, trip, TripStatus.COMPLETED)
        else:
            await db.flush()

        logger.info("Settlement %s completed by user %s", settlement.settlement_number, actor.id)
        return settlement

    @staticmethod
    async def summary(db: AsyncSession, trip_id: int, actor: Actor) -> Tuple[BalanceSummary, Optional[Settlement]]:
        """Live balance plus the stored snapshot, if any."""
        trip = await load_trip(db, trip_id)
        authorize(actor.policy.can_view_trip(trip), "You cannot access this trip")
        return (
            await SettlementService.compute_balance(db, trip_id),
            await SettlementService.find_for_trip(db, trip_id),
        )

    @staticmethod
    async def list_settlements(
        db: AsyncSession, actor: Actor, status: Optional[SettlementStatus] = None
    ) -> List[Settlement]:
        query = select(Settlement).where(Settlement.trip.has(actor.policy.scope_trips()))
        if status:
            query = query.where(Settlement.status == status)
        query = query.order_by(Settlement.created_at.desc(), Settlement.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

"""
Receipt Service (Domain Logic).

Employees upload and amend receipts; Finance verifies them. A verified
receipt is frozen (amount, category and file) until Finance unverifies it.
Only verified receipts count toward the settlement balance.
"""

import logging
from datetime import date
from decimal import Decimal
from pathlib import PurePath
from typing import Optional, List, Dict, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import utcnow
from travel_backend.app.core.config import settings
from travel_backend.app.core.exceptions import ValidationError, StateError, NotFoundError
from travel_backend.app.domain.authorization import Actor, authorize
from travel_backend.app.domain.money import to_money
from travel_backend.app.domain.trips.queries import load_trip
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.receipt import Receipt
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.trip_enums import TERMINAL_TRIP_STATUSES
from travel_backend.app.services.file_storage import FileStore, schedule_delete
from travel_backend.app.services.notification_service import NotificationService
from travel_backend.app.services.numbering import next_number, RECEIPT_PREFIX

logger = logging.getLogger("travel.receipts")

UPDATABLE_FIELDS = ("receipt_date", "amount", "category", "merchant_name", "description", "advance_id")


def validate_receipt_file(file_name: str, content: bytes) -> None:
    """Check extension and size against the configured limits."""
    extension = PurePath(file_name or "").suffix.lower().lstrip(".")
    allowed = [e.lower() for e in settings.allowed_receipt_extensions]
    if extension not in allowed:
        raise ValidationError(
            f"Receipt file must be one of: {', '.join(allowed)}",
            details={"file_name": file_name}
        )
    if not content:
        raise ValidationError("Receipt file is empty")
    if len(content) > settings.max_receipt_bytes:
        raise ValidationError(
            "Receipt file is too large",
            details={"size": len(content), "max_size": settings.max_receipt_bytes}
        )


def _validate_amount(amount) -> Decimal:
    amount = to_money(amount)
    if amount < 0:
        raise ValidationError("Receipt amount cannot be negative")
    return amount


async def _check_advance_link(db: AsyncSession, trip: Trip, advance_id: Optional[int]) -> None:
    if advance_id is None:
        return
    result = await db.execute(select(Advance.trip_id).where(Advance.id == advance_id))
    advance_trip_id = result.scalar_one_or_none()
    if advance_trip_id != trip.id:
        raise ValidationError(
            "Linked advance does not belong to this trip",
            details={"advance_id": advance_id, "trip_id": trip.id}
        )


def _ensure_trip_open(trip: Trip) -> None:
    if trip.status in TERMINAL_TRIP_STATUSES:
        raise StateError(
            f"Receipts cannot be changed on a {trip.status.value} trip",
            details={"trip_id": trip.id, "status": trip.status.value}
        )


class ReceiptService:

    @staticmethod
    async def _load(db: AsyncSession, receipt_id: int, for_update: bool = False) -> Receipt:
        stmt = select(Receipt).where(Receipt.id == receipt_id)
        if for_update:
            stmt = stmt.with_for_update(of=Receipt).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise NotFoundError("Receipt", receipt_id)
        return receipt

    @staticmethod
    async def upload_receipt(
        db: AsyncSession,
        trip_id: int,
        receipt_date: date,
        amount: Decimal,
        category: str,
        description: str,
        file_name: str,
        content: bytes,
        actor: Actor,
        file_store: FileStore,
        merchant_name: Optional[str] = None,
        advance_id: Optional[int] = None
    ) -> Receipt:
        """
        Store the file and register the receipt against the trip.

        The file is written first; if the database work fails afterwards the
        stored file is released again.
        """
        # 1. Validate
        trip = await load_trip(db, trip_id)
        authorize(actor.policy.can_manage_trip(trip), "Only the trip owner can upload receipts")
        _ensure_trip_open(trip)

        amount = _validate_amount(amount)
        validate_receipt_file(file_name, content)
        await _check_advance_link(db, trip, advance_id)

        # 2. Store file
        stored_path = file_store.store(content, file_name)

        # 3. Persist
        try:
            receipt = Receipt(
                receipt_number=await next_number(db, RECEIPT_PREFIX),
                trip_id=trip.id,
                advance_id=advance_id,
                receipt_date=receipt_date,
                amount=amount,
                category=category,
                merchant_name=merchant_name,
                description=description,
                file_path=stored_path,
                file_name=file_name,
                file_size=len(content),
                is_verified=False,
                uploaded_at=utcnow(),
            )
            receipt.trip = trip
            db.add(receipt)
            await db.flush()
        except Exception:
            file_store.delete(stored_path)
            raise

        logger.info("Receipt %s uploaded for trip %s: %s", receipt.receipt_number, trip.trip_number, amount)
        return receipt

    @staticmethod
    async def update_receipt(
        db: AsyncSession,
        receipt_id: int,
        fields: Dict[str, Any],
        actor: Actor,
        file_store: FileStore,
        file_name: Optional[str] = None,
        content: Optional[bytes] = None
    ) -> Receipt:
        """Amend an unverified receipt, optionally replacing its file."""
        receipt = await ReceiptService._load(db, receipt_id, for_update=True)
        authorize(actor.policy.can_manage_trip(receipt.trip), "Only the trip owner can update receipts")
        _ensure_trip_open(receipt.trip)

        if receipt.is_verified:
            raise StateError("Cannot update verified receipt", details={"receipt_id": receipt.id})

        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        if "amount" in changes:
            changes["amount"] = _validate_amount(changes["amount"])
        if "advance_id" in changes:
            await _check_advance_link(db, receipt.trip, changes["advance_id"])

        old_path = None
        if content is not None:
            validate_receipt_file(file_name, content)
            old_path = receipt.file_path
            receipt.file_path = file_store.store(content, file_name)
            receipt.file_name = file_name
            receipt.file_size = len(content)

        for key, value in changes.items():
            setattr(receipt, key, value)

        try:
            await db.flush()
        except Exception:
            if old_path is not None:
                file_store.delete(receipt.file_path)
            raise

        if old_path is not None:
            schedule_delete(db, file_store, old_path)

        logger.info("Receipt %s updated by user %s", receipt.receipt_number, actor.id)
        return receipt

    @staticmethod
    async def delete_receipt(db: AsyncSession, receipt_id: int, actor: Actor, file_store: FileStore) -> None:
        receipt = await ReceiptService._load(db, receipt_id, for_update=True)
        authorize(actor.policy.can_manage_trip(receipt.trip), "Only the trip owner can delete receipts")
        _ensure_trip_open(receipt.trip)

        if receipt.is_verified:
            raise StateError("Cannot delete verified receipt", details={"receipt_id": receipt.id})

        path, number = receipt.file_path, receipt.receipt_number
        await db.delete(receipt)
        await db.flush()
        schedule_delete(db, file_store, path)
        logger.info("Receipt %s deleted by user %s", number, actor.id)

    @staticmethod
    async def verify(db: AsyncSession, receipt_id: int, actor: Actor, notes: Optional[str] = None) -> Receipt:
        """Finance confirms the receipt. Verifying twice is rejected."""
        receipt = await ReceiptService._load(db, receipt_id, for_update=True)
        authorize(actor.policy.can_handle_finance(receipt.trip), "Only finance can verify receipts")

        if receipt.is_verified:
            raise StateError("Receipt is already verified", details={"receipt_id": receipt.id})

        receipt.is_verified = True
        receipt.verified_by = actor.id
        receipt.verified_at = utcnow()
        receipt.verification_notes = notes
        await db.flush()

        await NotificationService.receipt_verified(db, receipt)
        logger.info("Receipt %s verified by user %s", receipt.receipt_number, actor.id)
        return receipt

    @staticmethod
    async def unverify(db: AsyncSession, receipt_id: int, actor: Actor, notes: Optional[str] = None) -> Receipt:
        """Finance reopens a verified receipt so the owner can correct it."""
        receipt = await ReceiptService._load(db, receipt_id, for_update=True)
        authorize(actor.policy.can_handle_finance(receipt.trip), "Only finance can unverify receipts")

        if not receipt.is_verified:
            raise StateError("Receipt is not verified", details={"receipt_id": receipt.id})

        receipt.is_verified = False
        receipt.verified_by = None
        receipt.verified_at = None
        if notes:
            receipt.verification_notes = notes
        await db.flush()

        logger.info("Receipt %s unverified by user %s", receipt.receipt_number, actor.id)
        return receipt

    @staticmethod
    async def get_receipt(db: AsyncSession, receipt_id: int, actor: Actor) -> Receipt:
        receipt = await ReceiptService._load(db, receipt_id)
        authorize(actor.policy.can_view_trip(receipt.trip), "You cannot access this receipt")
        return receipt

    @staticmethod
    async def list_receipts(
        db: AsyncSession,
        actor: Actor,
        trip_id: Optional[int] = None,
        is_verified: Optional[bool] = None
    ) -> List[Receipt]:
        query = select(Receipt).where(Receipt.trip.has(actor.policy.scope_trips()))
        if trip_id:
            query = query.where(Receipt.trip_id == trip_id)
        if is_verified is not None:
            query = query.where(Receipt.is_verified == is_verified)
        query = query.order_by(Receipt.receipt_date.desc(), Receipt.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

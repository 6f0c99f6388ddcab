"""
Notification Service.

Handles creation and state management of in-app notifications for trip
owners. Creation is fire-and-forget: a failing notification must never undo
the workflow step that triggered it.
"""

import logging
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import utcnow
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.notification import Notification, NotificationType
from travel_backend.app.models.receipt import Receipt
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.trip_enums import TripStatus

logger = logging.getLogger("travel.notifications")


def format_rupiah(amount) -> str:
    """Format an amount as ``Rp 1.500.000``."""
    whole = int(Decimal(str(amount or 0)))
    return "Rp " + f"{whole:,}".replace(",", ".")


def _trip_status_content(trip: Trip, status: TripStatus, notes: Optional[str]):
    if status == TripStatus.AWAITING_REVIEW:
        return (
            NotificationType.INFO,
            "Trip Submitted for Review",
            f"Your trip to {trip.destination} has been submitted for review. "
            "Finance Area will check your receipts before approval.",
        )
    if status == TripStatus.UNDER_REVIEW_REGIONAL:
        return (
            NotificationType.SUCCESS,
            "Trip Approved by Finance Area",
            f"Your trip to {trip.destination} has been approved by Finance Area "
            "and forwarded to Finance Regional for final approval.",
        )
    if status == TripStatus.COMPLETED:
        return (
            NotificationType.SUCCESS,
            "Trip Completed Successfully",
            f"Your trip to {trip.destination} has been completed and approved. You can now start a new trip.",
        )
    if status == TripStatus.ACTIVE:
        reason = f" Reason: {notes}." if notes else ""
        return (
            NotificationType.ERROR,
            "Settlement Rejected",
            f"Your trip settlement was rejected.{reason} Please upload correct receipts and resubmit.",
        )
    if status == TripStatus.CANCELLED:
        suffix = f" {notes}" if notes else ""
        return (
            NotificationType.WARNING,
            "Trip Cancelled",
            f"Your trip to {trip.destination} has been cancelled.{suffix}",
        )
    return (
        NotificationType.INFO,
        "Trip Status Updated",
        f"Your trip status has been updated to: {status.value}",
    )


def _advance_status_content(advance: Advance, status: AdvanceStatus, notes: Optional[str]):
    if status == AdvanceStatus.APPROVED_AREA:
        return (
            NotificationType.SUCCESS,
            "Advance Approved by Finance Area",
            f"Your advance request of {format_rupiah(advance.approved_amount)} has been approved "
            "by Finance Area. Forwarded to Finance Regional.",
        )
    if status == AdvanceStatus.APPROVED_REGIONAL:
        return (
            NotificationType.SUCCESS,
            "Advance Approved by Finance Regional",
            "Your advance request has been approved by Finance Regional. "
            "Finance will transfer the funds to your account soon.",
        )
    if status == AdvanceStatus.COMPLETED:
        return (
            NotificationType.SUCCESS,
            "Advance Transferred",
            f"Advance of {format_rupiah(advance.approved_amount)} has been transferred to your account.",
        )
    if status == AdvanceStatus.REJECTED:
        message = (
            f"Your advance request was rejected. Reason: {notes}" if notes
            else "Your advance request was rejected. Please contact Finance for details."
        )
        return NotificationType.ERROR, "Advance Rejected", message
    return (
        NotificationType.INFO,
        "Advance Status Updated",
        f"Your advance status has been updated to: {status.value}",
    )


class NotificationService:

    @staticmethod
    async def _insert(db: AsyncSession, notification: Notification) -> Notification:
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def notify(
        db: AsyncSession,
        user_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        trip_id: Optional[int] = None,
        advance_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[Notification]:
        """
        Create a single notification inside a SAVEPOINT.

        Returns the notification, or None if it could not be written. The
        failure is logged and the surrounding transaction stays usable.
        """
        notif = Notification(
            user_id=user_id,
            trip_id=trip_id,
            advance_id=advance_id,
            type=type,
            title=title,
            message=message,
            metadata_payload=metadata
        )
        try:
            async with db.begin_nested():
                await NotificationService._insert(db, notif)
        except Exception:
            logger.exception("Failed to create notification '%s' for user %s", title, user_id)
            return None
        return notif

    @staticmethod
    async def trip_status_changed(
        db: AsyncSession, trip: Trip, status: TripStatus, notes: Optional[str] = None
    ) -> Optional[Notification]:
        kind, title, message = _trip_status_content(trip, status, notes)
        return await NotificationService.notify(
            db, trip.user_id, title, message, type=kind, trip_id=trip.id,
            metadata={"trip_number": trip.trip_number, "status": status.value}
        )

    @staticmethod
    async def trip_extension_requested(db: AsyncSession, trip: Trip) -> Optional[Notification]:
        return await NotificationService.notify(
            db, trip.user_id,
            "Trip Extension Requested",
            f"Your extension request for trip to {trip.destination} until "
            f"{trip.extended_end_date:%d %b %Y} has been submitted.",
            trip_id=trip.id
        )

    @staticmethod
    async def trip_extension_cancelled(db: AsyncSession, trip: Trip) -> Optional[Notification]:
        return await NotificationService.notify(
            db, trip.user_id,
            "Trip Extension Cancelled",
            f"Your trip extension for {trip.destination} has been cancelled. Original end date applies.",
            trip_id=trip.id
        )

    @staticmethod
    async def advance_status_changed(
        db: AsyncSession, advance: Advance, status: AdvanceStatus, notes: Optional[str] = None
    ) -> Optional[Notification]:
        kind, title, message = _advance_status_content(advance, status, notes)
        return await NotificationService.notify(
            db, advance.trip.user_id, title, message, type=kind,
            trip_id=advance.trip_id, advance_id=advance.id,
            metadata={"advance_number": advance.advance_number, "status": status.value}
        )

    @staticmethod
    async def receipt_verified(db: AsyncSession, receipt: Receipt) -> Optional[Notification]:
        return await NotificationService.notify(
            db, receipt.trip.user_id,
            "Receipt Verified",
            f"Your receipt {receipt.receipt_number} for {format_rupiah(receipt.amount)} "
            "has been verified by Finance.",
            type=NotificationType.SUCCESS,
            trip_id=receipt.trip_id
        )

    @staticmethod
    async def list_for_user(
        db: AsyncSession, user_id: int, unread_only: bool = False, limit: int = 50
    ) -> List[Notification]:
        """Newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def unread_count(db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read == False
            )
        )
        return result.scalar_one()

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def delete(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Remove one of the user's notifications."""
        stmt = delete(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        """Mark all notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount

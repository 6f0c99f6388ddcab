"""
Failure Injection Tests.

Side effects (notifications, file storage, numbering) must fail without
corrupting the workflow step around them.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from travel_backend.app.core.exceptions import ConflictError, StorageError
from travel_backend.app.domain.advances.advance_service import AdvanceService
from travel_backend.app.domain.trips.trip_service import TripService
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.notification import Notification
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.trip_enums import TripStatus
from travel_backend.app.domain.receipts.receipt_service import ReceiptService
from travel_backend.app.services.file_storage import LocalFileStore, commit_and_release
from travel_backend.app.services.notification_service import NotificationService
from travel_backend.app.services.numbering import next_number, ADVANCE_PREFIX, TRIP_PREFIX
from travel_backend.app.services.status_history import list_advance_history
from travel_backend.tests.builders import create_trip, request_initial, upload_receipt


@pytest.mark.asyncio
async def test_notification_failure_keeps_transaction_usable(db_session, actors):
    """A notification for a missing user is dropped; the session keeps working."""
    result = await NotificationService.notify(db_session, 99999, "Ghost", "Nobody home")

    assert result is None
    trip = await create_trip(db_session, actors.employee)
    assert trip.id is not None
    count = await db_session.scalar(select(func.count(Notification.id)).where(Notification.user_id == 99999))
    assert count == 0


@pytest.mark.asyncio
async def test_approval_survives_notification_outage(db_session, actors, mocker):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)
    mocker.patch.object(NotificationService, "_insert", side_effect=RuntimeError("notifications down"))

    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("500000"), actors.finance_area)
    await db_session.commit()

    assert advance.status == AdvanceStatus.APPROVED_AREA
    assert [h.new_status for h in await list_advance_history(db_session, advance.id)][-1] == AdvanceStatus.APPROVED_AREA
    assert await db_session.scalar(select(func.count(Notification.id))) == 0


@pytest.mark.asyncio
async def test_upload_releases_file_when_database_fails(db_session, actors, file_store, mocker):
    trip = await create_trip(db_session, actors.employee)
    mocker.patch(
        "travel_backend.app.domain.receipts.receipt_service.next_number",
        side_effect=RuntimeError("sequence unavailable")
    )

    with pytest.raises(RuntimeError):
        await upload_receipt(db_session, trip, actors.employee, file_store)

    stored = [p for p in file_store.root.rglob("*") if p.is_file()]
    assert stored == []


def test_storage_error_when_root_is_not_a_directory(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = LocalFileStore(blocker)

    with pytest.raises(StorageError):
        store.store(b"data", "hotel.pdf")


def test_storage_rejects_paths_outside_root(tmp_path):
    store = LocalFileStore(tmp_path / "receipts")

    with pytest.raises(StorageError, match="Unsafe storage path"):
        store.delete("../outside.pdf")
    with pytest.raises(StorageError):
        store.exists("../../etc/passwd")


def test_storage_sanitizes_names(tmp_path):
    store = LocalFileStore(tmp_path / "receipts")

    path = store.store(b"data", "../../my hotel (1).pdf")

    assert ".." not in path
    assert path.endswith("_my_hotel__1_.pdf")
    assert store.exists(path)


@pytest.mark.asyncio
async def test_numbers_are_sequential_per_prefix_and_day(db_session):
    day = date(2026, 10, 18)

    first = await next_number(db_session, ADVANCE_PREFIX, on=day)
    second = await next_number(db_session, ADVANCE_PREFIX, on=day)
    other_prefix = await next_number(db_session, TRIP_PREFIX, on=day)
    next_day = await next_number(db_session, ADVANCE_PREFIX, on=date(2026, 10, 19))

    assert first == "ADV-20261018-0001"
    assert second == "ADV-20261018-0002"
    assert other_prefix == "TRP-20261018-0001"
    assert next_day == "ADV-20261019-0001"


@pytest.mark.asyncio
async def test_rolled_back_number_is_reused(db_session):
    day = date(2026, 10, 18)
    await next_number(db_session, ADVANCE_PREFIX, on=day)
    await db_session.commit()

    await next_number(db_session, ADVANCE_PREFIX, on=day)
    await db_session.rollback()

    assert await next_number(db_session, ADVANCE_PREFIX, on=day) == "ADV-20261018-0002"


@pytest.mark.asyncio
async def test_database_rejects_second_active_trip(db_session, actors):
    await create_trip(db_session, actors.employee)
    db_session.add(Trip(
        trip_number="TRP-RAW-0001",
        user_id=actors.employee.id,
        destination="Bandung",
        purpose="Written around the service",
        start_date=date(2026, 10, 1),
        end_date=date(2026, 10, 2),
        duration=2,
        status=TripStatus.ACTIVE,
    ))

    with pytest.raises(IntegrityError):
        await db_session.flush()


@pytest.mark.asyncio
async def test_concurrent_create_maps_to_conflict(db_session, actors, mocker):
    """Both requests pass the read check; the index decides."""
    await create_trip(db_session, actors.employee)
    mocker.patch("travel_backend.app.domain.trips.trip_service._other_active_trip", return_value=None)

    with pytest.raises(ConflictError):
        await create_trip(db_session, actors.employee, destination="Bandung")

    active = await db_session.scalar(
        select(func.count(Trip.id)).where(Trip.user_id == actors.employee.id, Trip.status == TripStatus.ACTIVE)
    )
    assert active == 1


@pytest.mark.asyncio
async def test_concurrent_reject_maps_to_conflict(db_session, actors, mocker):
    trip = await create_trip(db_session, actors.employee)
    await TripService.submit_for_review(db_session, trip.id, actors.employee)
    await create_trip(db_session, actors.employee, destination="Bandung")
    mocker.patch("travel_backend.app.domain.trips.trip_service._other_active_trip", return_value=None)

    with pytest.raises(ConflictError):
        await TripService.reject_settlement(db_session, trip.id, "Wrong receipts", actors.finance_area)

    status = await db_session.scalar(select(Trip.status).where(Trip.id == trip.id))
    assert status == TripStatus.AWAITING_REVIEW


@pytest.mark.asyncio
async def test_file_release_failure_keeps_commit(db_session, actors, file_store, mocker):
    trip = await create_trip(db_session, actors.employee)
    trip_id = trip.id
    receipt = await upload_receipt(db_session, trip, actors.employee, file_store)
    path = receipt.file_path
    await ReceiptService.delete_receipt(db_session, receipt.id, actors.employee, file_store)
    mocker.patch.object(LocalFileStore, "delete", side_effect=StorageError("disk gone"))

    await commit_and_release(db_session)

    assert file_store.exists(path)
    assert await ReceiptService.list_receipts(db_session, actors.employee, trip_id=trip_id) == []

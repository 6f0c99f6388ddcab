"""
Advance lifecycle tests.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select, func

from travel_backend.app.core.exceptions import AuthorizationError, StateError, ValidationError
from travel_backend.app.domain.advances.advance_service import AdvanceService
from travel_backend.app.domain.trips.queries import trip_totals
from travel_backend.app.domain.trips.trip_service import TripService
from travel_backend.app.models.advance_enums import AdvanceStatus, AdvanceRequestType
from travel_backend.app.models.notification import Notification
from travel_backend.app.models.status_history import AdvanceStatusHistory
from travel_backend.app.services.status_history import list_advance_history
from travel_backend.tests.builders import create_trip, request_initial, transferred_advance


@pytest.mark.asyncio
async def test_request_creates_pending_advance_with_history(db_session, actors):
    trip = await create_trip(db_session, actors.employee)

    advance = await request_initial(db_session, trip, actors.employee)

    assert advance.status == AdvanceStatus.PENDING
    assert advance.advance_number.startswith("ADV-")
    assert advance.approved_amount is None
    history = await list_advance_history(db_session, advance.id)
    assert [(h.old_status, h.new_status) for h in history] == [(None, AdvanceStatus.PENDING)]


@pytest.mark.asyncio
async def test_only_one_open_initial_advance_per_trip(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    await request_initial(db_session, trip, actors.employee)

    with pytest.raises(ValidationError):
        await request_initial(db_session, trip, actors.employee)


@pytest.mark.asyncio
async def test_new_initial_allowed_after_rejection(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    first = await request_initial(db_session, trip, actors.employee)
    await AdvanceService.reject(db_session, first.id, "Amount too high", actors.finance_area)

    second = await request_initial(db_session, trip, actors.employee, Decimal("250000"))

    assert second.status == AdvanceStatus.PENDING


@pytest.mark.asyncio
async def test_additional_advance_requires_reason(db_session, actors):
    trip = await create_trip(db_session, actors.employee)

    with pytest.raises(ValidationError):
        await AdvanceService.request_advance(
            db_session, trip.id, AdvanceRequestType.ADDITIONAL, Decimal("100000"), actors.employee
        )


@pytest.mark.asyncio
async def test_negative_amount_rejected(db_session, actors):
    trip = await create_trip(db_session, actors.employee)

    with pytest.raises(ValidationError):
        await request_initial(db_session, trip, actors.employee, Decimal("-1"))


@pytest.mark.asyncio
async def test_request_requires_active_trip(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    await TripService.submit_for_review(db_session, trip.id, actors.employee)

    with pytest.raises(ValidationError):
        await request_initial(db_session, trip, actors.employee)


@pytest.mark.asyncio
async def test_only_owner_can_request(db_session, actors):
    trip = await create_trip(db_session, actors.employee)

    with pytest.raises(AuthorizationError):
        await request_initial(db_session, trip, actors.other_employee)


@pytest.mark.asyncio
async def test_full_approval_chain(db_session, actors):
    trip = await create_trip(db_session, actors.employee)

    advance = await transferred_advance(db_session, trip, actors, Decimal("500000"))

    assert advance.status == AdvanceStatus.COMPLETED
    assert advance.approved_by_area == actors.finance_area.id
    assert advance.approved_by_regional == actors.finance_regional.id
    assert advance.transfer_reference == "TRF-001"
    assert advance.transfer_date is not None
    statuses = [h.new_status for h in await list_advance_history(db_session, advance.id)]
    assert statuses == [
        AdvanceStatus.PENDING,
        AdvanceStatus.APPROVED_AREA,
        AdvanceStatus.APPROVED_REGIONAL,
        AdvanceStatus.COMPLETED,
    ]
    assert (await trip_totals(db_session, trip.id)).total_advance == Decimal("500000")


@pytest.mark.asyncio
async def test_area_may_approve_a_different_amount(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee, Decimal("500000"))

    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("650000"), actors.finance_area)

    assert advance.requested_amount == Decimal("500000")
    assert advance.approved_amount == Decimal("650000")


@pytest.mark.asyncio
async def test_total_advance_counts_only_transferred(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)
    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("500000"), actors.finance_area)
    await AdvanceService.approve_by_regional(db_session, advance.id, actors.finance_regional)

    assert (await trip_totals(db_session, trip.id)).total_advance == Decimal("0")


@pytest.mark.asyncio
async def test_double_area_approval_fails_without_history(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)
    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("500000"), actors.finance_area)
    before = len(await list_advance_history(db_session, advance.id))

    with pytest.raises(StateError):
        await AdvanceService.approve_by_area(db_session, advance.id, Decimal("500000"), actors.finance_area)

    assert len(await list_advance_history(db_session, advance.id)) == before
    assert advance.status == AdvanceStatus.APPROVED_AREA


@pytest.mark.asyncio
async def test_regional_approval_requires_area_first(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)

    with pytest.raises(StateError):
        await AdvanceService.approve_by_regional(db_session, advance.id, actors.finance_regional)


@pytest.mark.asyncio
async def test_approval_roles_are_enforced(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)

    with pytest.raises(AuthorizationError):
        await AdvanceService.approve_by_area(db_session, advance.id, Decimal("1"), actors.employee)
    with pytest.raises(AuthorizationError):
        await AdvanceService.approve_by_area(db_session, advance.id, Decimal("1"), actors.finance_regional)
    # Finance Area from another area
    with pytest.raises(AuthorizationError):
        await AdvanceService.approve_by_area(db_session, advance.id, Decimal("1"), actors.other_finance_area)

    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("1"), actors.finance_area)
    with pytest.raises(AuthorizationError):
        await AdvanceService.approve_by_regional(db_session, advance.id, actors.finance_area)


@pytest.mark.asyncio
async def test_transfer_requires_reference(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)
    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("500000"), actors.finance_area)
    await AdvanceService.approve_by_regional(db_session, advance.id, actors.finance_regional)

    with pytest.raises(ValidationError):
        await AdvanceService.mark_transferred(db_session, advance.id, "  ", actors.finance_regional)


@pytest.mark.asyncio
async def test_completed_advance_cannot_be_rejected(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await transferred_advance(db_session, trip, actors)

    with pytest.raises(StateError):
        await AdvanceService.reject(db_session, advance.id, "Too late", actors.finance_regional)


@pytest.mark.asyncio
async def test_reject_stores_reason_and_notifies_owner(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)

    await AdvanceService.reject(db_session, advance.id, "Missing itinerary", actors.finance_area)

    assert advance.status == AdvanceStatus.REJECTED
    assert advance.rejection_reason == "Missing itinerary"
    result = await db_session.execute(
        select(Notification).where(Notification.advance_id == advance.id)
    )
    notification = result.scalar_one()
    assert notification.user_id == actors.employee.id
    assert notification.title == "Advance Rejected"
    assert "Missing itinerary" in notification.message


@pytest.mark.asyncio
async def test_delete_pending_advance_removes_history(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)
    advance_id = advance.id

    await AdvanceService.delete_advance(db_session, advance_id, actors.employee)

    count = await db_session.execute(
        select(func.count(AdvanceStatusHistory.id)).where(AdvanceStatusHistory.advance_id == advance_id)
    )
    assert count.scalar_one() == 0
    assert await AdvanceService.list_advances(db_session, actors.employee, trip_id=trip.id) == []


@pytest.mark.asyncio
async def test_delete_rules(db_session, actors):
    trip = await create_trip(db_session, actors.employee)
    advance = await request_initial(db_session, trip, actors.employee)

    with pytest.raises(AuthorizationError):
        await AdvanceService.delete_advance(db_session, advance.id, actors.finance_area)

    await AdvanceService.approve_by_area(db_session, advance.id, Decimal("500000"), actors.finance_area)
    with pytest.raises(StateError):
        await AdvanceService.delete_advance(db_session, advance.id, actors.employee)


@pytest.mark.asyncio
async def test_list_advances_is_scoped(db_session, actors):
    jkt_trip = await create_trip(db_session, actors.employee)
    sby_trip = await create_trip(db_session, actors.other_employee, destination="Bali")
    jkt_advance = await request_initial(db_session, jkt_trip, actors.employee)
    await request_initial(db_session, sby_trip, actors.other_employee)

    area_view = await AdvanceService.list_advances(db_session, actors.finance_area)
    regional_view = await AdvanceService.list_advances(db_session, actors.finance_regional)
    pending_only = await AdvanceService.list_advances(
        db_session, actors.finance_regional, status=AdvanceStatus.APPROVED_AREA
    )

    assert [a.id for a in area_view] == [jkt_advance.id]
    assert len(regional_view) == 2
    assert pending_only == []

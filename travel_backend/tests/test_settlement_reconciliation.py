"""
Settlement reconciliation tests.
"""

from decimal import Decimal

import pytest

from travel_backend.app.core.exceptions import ConflictError, StateError, ValidationError, AuthorizationError
from travel_backend.app.domain.receipts.receipt_service import ReceiptService
from travel_backend.app.domain.settlements.settlement_service import SettlementService, classify_balance
from travel_backend.app.domain.trips.queries import trip_totals
from travel_backend.app.domain.trips.trip_service import TripService
from travel_backend.app.models.settlement_enums import SettlementStatus, SettlementType
from travel_backend.app.models.trip_enums import TripStatus
from travel_backend.app.services.status_history import list_trip_history
from travel_backend.tests.builders import create_trip, transferred_advance, upload_receipt


@pytest.mark.parametrize("advance,receipts,expected_type,expected_amount", [
    ("500000", "300000", SettlementType.REFUND, "200000"),
    ("500000", "650000", SettlementType.PAYMENT, "150000"),
    ("500000", "500000", SettlementType.BALANCED, "0"),
    ("0", "125000.50", SettlementType.PAYMENT, "125000.50"),
])
def test_classify_balance(advance, receipts, expected_type, expected_amount):
    summary = classify_balance(Decimal(advance), Decimal(receipts))

    assert summary.settlement_type == expected_type
    assert summary.settlement_amount == Decimal(expected_amount)
    assert summary.balance == Decimal(advance) - Decimal(receipts)


async def _trip_in_review(db, actors, file_store, verify=True):
    """Trip with a 500.000 transferred advance and a 300.000 receipt, under area review."""
    trip = await create_trip(db, actors.employee)
    await transferred_advance(db, trip, actors, Decimal("500000"))
    receipt = await upload_receipt(db, trip, actors.employee, file_store, amount=Decimal("300000"))
    if verify:
        await ReceiptService.verify(db, receipt.id, actors.finance_area)
    await TripService.submit_for_review(db, trip.id, actors.employee)
    await TripService.begin_area_review(db, trip.id, actors.finance_area)
    return trip


@pytest.mark.asyncio
async def test_refund_scenario(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)

    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    assert settlement.settlement_number.startswith("STL-")
    assert settlement.status == SettlementStatus.PENDING
    assert settlement.total_advance == Decimal("500000")
    assert settlement.total_receipts == Decimal("300000")
    assert settlement.balance == Decimal("200000")
    assert settlement.settlement_type == SettlementType.REFUND
    assert settlement.settlement_amount == Decimal("200000")
    assert (await trip_totals(db_session, trip.id)).total_advance == Decimal("500000")


@pytest.mark.asyncio
async def test_unverified_receipts_do_not_reduce_balance(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store, verify=False)

    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_regional)

    assert settlement.total_receipts == Decimal("0")
    assert settlement.settlement_amount == Decimal("500000")
    assert settlement.settlement_type == SettlementType.REFUND


@pytest.mark.asyncio
async def test_settlement_requires_review(db_session, actors):
    trip = await create_trip(db_session, actors.employee)

    with pytest.raises(StateError):
        await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    await TripService.submit_for_review(db_session, trip.id, actors.employee)
    with pytest.raises(StateError):
        await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)


@pytest.mark.asyncio
async def test_one_settlement_per_trip(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    with pytest.raises(ConflictError):
        await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)


@pytest.mark.asyncio
async def test_employee_cannot_create_settlement(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)

    with pytest.raises(AuthorizationError):
        await SettlementService.create_settlement(db_session, trip.id, actors.employee)


@pytest.mark.asyncio
async def test_process_requires_reference_unless_balanced(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    with pytest.raises(ValidationError):
        await SettlementService.process(db_session, settlement.id, actors.finance_area)

    await SettlementService.process(db_session, settlement.id, actors.finance_area, transfer_reference="RFD-77")
    assert settlement.status == SettlementStatus.PROCESSED
    assert settlement.transfer_reference == "RFD-77"
    assert settlement.settlement_date is not None
    assert settlement.processed_by == actors.finance_area.id


@pytest.mark.asyncio
async def test_balanced_settlement_needs_no_reference(db_session, actors, file_store):
    trip = await create_trip(db_session, actors.employee)
    await TripService.submit_for_review(db_session, trip.id, actors.employee)
    await TripService.begin_area_review(db_session, trip.id, actors.finance_area)
    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    await SettlementService.process(db_session, settlement.id, actors.finance_area)

    assert settlement.settlement_type == SettlementType.BALANCED
    assert settlement.transfer_reference is None


@pytest.mark.asyncio
async def test_complete_closes_the_trip(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    await TripService.approve_by_area(db_session, trip.id, actors.finance_area)
    settlement = await SettlementService.find_for_trip(db_session, trip.id)
    await SettlementService.process(db_session, settlement.id, actors.finance_regional, transfer_reference="RFD-1")

    await SettlementService.complete(db_session, settlement.id, actors.finance_regional)

    assert settlement.status == SettlementStatus.COMPLETED
    assert settlement.completed_by == actors.finance_regional.id
    assert trip.status == TripStatus.COMPLETED
    assert trip.completed_at is not None
    assert (await list_trip_history(db_session, trip.id))[-1].new_status == TripStatus.COMPLETED


@pytest.mark.asyncio
async def test_complete_closes_trip_still_under_area_review(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)
    await SettlementService.process(db_session, settlement.id, actors.finance_area, transfer_reference="RFD-2")

    await SettlementService.complete(db_session, settlement.id, actors.finance_area)

    assert settlement.status == SettlementStatus.COMPLETED
    assert trip.status == TripStatus.COMPLETED
    history = await list_trip_history(db_session, trip.id)
    assert (history[-1].old_status, history[-1].new_status) == (TripStatus.UNDER_REVIEW_AREA, TripStatus.COMPLETED)


@pytest.mark.asyncio
async def test_settlement_status_only_moves_forward(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    with pytest.raises(StateError):
        await SettlementService.complete(db_session, settlement.id, actors.finance_area)

    await SettlementService.process(db_session, settlement.id, actors.finance_area, transfer_reference="RFD-3")
    with pytest.raises(StateError):
        await SettlementService.process(db_session, settlement.id, actors.finance_area, transfer_reference="RFD-3")


@pytest.mark.asyncio
async def test_rejection_discards_pending_snapshot(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    await TripService.reject_settlement(db_session, trip.id, "Missing taxi receipt", actors.finance_area)

    assert await SettlementService.find_for_trip(db_session, trip.id) is None


@pytest.mark.asyncio
async def test_rejection_blocked_once_processed(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)
    await SettlementService.process(db_session, settlement.id, actors.finance_area, transfer_reference="RFD-4")

    with pytest.raises(StateError):
        await TripService.reject_settlement(db_session, trip.id, "Too late", actors.finance_area)
    assert trip.status == TripStatus.UNDER_REVIEW_AREA


@pytest.mark.asyncio
async def test_summary_combines_live_balance_and_snapshot(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)

    live, stored = await SettlementService.summary(db_session, trip.id, actors.employee)
    assert stored is None
    assert live.balance == Decimal("200000")

    with pytest.raises(AuthorizationError):
        await SettlementService.summary(db_session, trip.id, actors.other_employee)


@pytest.mark.asyncio
async def test_list_settlements_scoped(db_session, actors, file_store):
    trip = await _trip_in_review(db_session, actors, file_store)
    settlement = await SettlementService.create_settlement(db_session, trip.id, actors.finance_area)

    assert [s.id for s in await SettlementService.list_settlements(db_session, actors.finance_area)] == [settlement.id]
    assert await SettlementService.list_settlements(db_session, actors.other_finance_area) == []
    assert await SettlementService.list_settlements(
        db_session, actors.finance_regional, status=SettlementStatus.COMPLETED
    ) == []

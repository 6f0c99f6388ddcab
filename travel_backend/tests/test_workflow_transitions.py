"""
Transition table tests.
"""

import pytest

from travel_backend.app.core.exceptions import StateError
from travel_backend.app.domain.workflow import (
    ADVANCE_TRANSITIONS,
    TRIP_TRANSITIONS,
    SETTLEMENT_TRANSITIONS,
    can_transition,
    ensure_transition,
)
from travel_backend.app.models.advance_enums import AdvanceStatus, TERMINAL_ADVANCE_STATUSES
from travel_backend.app.models.settlement_enums import SettlementStatus
from travel_backend.app.models.trip_enums import TripStatus, TERMINAL_TRIP_STATUSES


def test_every_status_has_a_row():
    assert set(ADVANCE_TRANSITIONS) == set(AdvanceStatus)
    assert set(TRIP_TRANSITIONS) == set(TripStatus)
    assert set(SETTLEMENT_TRANSITIONS) == set(SettlementStatus)


def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_ADVANCE_STATUSES:
        assert ADVANCE_TRANSITIONS[status] == frozenset()
    for status in TERMINAL_TRIP_STATUSES:
        assert TRIP_TRANSITIONS[status] == frozenset()
    assert SETTLEMENT_TRANSITIONS[SettlementStatus.COMPLETED] == frozenset()


def test_advance_happy_path():
    path = [
        AdvanceStatus.PENDING,
        AdvanceStatus.APPROVED_AREA,
        AdvanceStatus.APPROVED_REGIONAL,
        AdvanceStatus.COMPLETED,
    ]
    for current, target in zip(path, path[1:]):
        assert can_transition("advance", current, target)


@pytest.mark.parametrize("current", [
    AdvanceStatus.PENDING, AdvanceStatus.APPROVED_AREA, AdvanceStatus.APPROVED_REGIONAL
])
def test_advance_can_be_rejected_before_transfer(current):
    assert can_transition("advance", current, AdvanceStatus.REJECTED)


def test_pending_advance_cannot_be_voided():
    assert not can_transition("advance", AdvanceStatus.PENDING, AdvanceStatus.VOIDED)


def test_advance_cannot_skip_area_approval():
    with pytest.raises(StateError) as exc:
        ensure_transition("advance", AdvanceStatus.PENDING, AdvanceStatus.APPROVED_REGIONAL)

    assert exc.value.details["current"] == "pending"
    assert exc.value.details["target"] == "approved_regional"


def test_trip_bounce_back_only_from_review():
    assert can_transition("trip", TripStatus.AWAITING_REVIEW, TripStatus.ACTIVE)
    assert can_transition("trip", TripStatus.UNDER_REVIEW_AREA, TripStatus.ACTIVE)
    assert not can_transition("trip", TripStatus.UNDER_REVIEW_REGIONAL, TripStatus.ACTIVE)


def test_trip_cannot_be_cancelled_once_in_finance_review():
    assert can_transition("trip", TripStatus.ACTIVE, TripStatus.CANCELLED)
    assert can_transition("trip", TripStatus.AWAITING_REVIEW, TripStatus.CANCELLED)
    assert not can_transition("trip", TripStatus.UNDER_REVIEW_AREA, TripStatus.CANCELLED)
    assert not can_transition("trip", TripStatus.UNDER_REVIEW_REGIONAL, TripStatus.CANCELLED)


def test_settlement_has_no_reverse_transitions():
    assert not can_transition("settlement", SettlementStatus.PROCESSED, SettlementStatus.PENDING)
    assert not can_transition("settlement", SettlementStatus.PENDING, SettlementStatus.COMPLETED)
    with pytest.raises(StateError):
        ensure_transition("settlement", SettlementStatus.COMPLETED, SettlementStatus.PROCESSED)


def test_settlement_completion_can_close_trip_under_area_review():
    assert can_transition("trip", TripStatus.UNDER_REVIEW_AREA, TripStatus.COMPLETED)
    assert not can_transition("trip", TripStatus.AWAITING_REVIEW, TripStatus.COMPLETED)

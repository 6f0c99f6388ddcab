"""
Workflow transition tables.

Each entity has one table mapping a status to the statuses it may move to.
Terminal statuses have no outgoing edges. Every status change in the domain
services goes through ``ensure_transition``.
"""

from travel_backend.app.core.exceptions import StateError
from travel_backend.app.models.advance_enums import AdvanceStatus
from travel_backend.app.models.settlement_enums import SettlementStatus
from travel_backend.app.models.trip_enums import TripStatus


ADVANCE_TRANSITIONS: dict[AdvanceStatus, frozenset[AdvanceStatus]] = {
    AdvanceStatus.PENDING: frozenset({
        AdvanceStatus.APPROVED_AREA,
        AdvanceStatus.REJECTED,
    }),
    AdvanceStatus.APPROVED_AREA: frozenset({
        AdvanceStatus.APPROVED_REGIONAL,
        AdvanceStatus.REJECTED,
        AdvanceStatus.VOIDED,
    }),
    AdvanceStatus.APPROVED_REGIONAL: frozenset({
        AdvanceStatus.COMPLETED,
        AdvanceStatus.REJECTED,
        AdvanceStatus.VOIDED,
    }),
    AdvanceStatus.COMPLETED: frozenset(),
    AdvanceStatus.REJECTED: frozenset(),
    AdvanceStatus.VOIDED: frozenset(),
}

TRIP_TRANSITIONS: dict[TripStatus, frozenset[TripStatus]] = {
    TripStatus.ACTIVE: frozenset({
        TripStatus.AWAITING_REVIEW,
        TripStatus.CANCELLED,
    }),
    TripStatus.AWAITING_REVIEW: frozenset({
        TripStatus.UNDER_REVIEW_AREA,
        TripStatus.UNDER_REVIEW_REGIONAL,
        TripStatus.ACTIVE,
        TripStatus.CANCELLED,
    }),
    TripStatus.UNDER_REVIEW_AREA: frozenset({
        TripStatus.UNDER_REVIEW_REGIONAL,
        TripStatus.ACTIVE,
        TripStatus.COMPLETED,  # settlement completed
    }),
    TripStatus.UNDER_REVIEW_REGIONAL: frozenset({
        TripStatus.COMPLETED,
    }),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

SETTLEMENT_TRANSITIONS: dict[SettlementStatus, frozenset[SettlementStatus]] = {
    SettlementStatus.PENDING: frozenset({SettlementStatus.PROCESSED}),
    SettlementStatus.PROCESSED: frozenset({SettlementStatus.COMPLETED}),
    SettlementStatus.COMPLETED: frozenset(),
}

_TABLES = {
    "advance": ADVANCE_TRANSITIONS,
    "trip": TRIP_TRANSITIONS,
    "settlement": SETTLEMENT_TRANSITIONS,
}


def can_transition(entity: str, current, target) -> bool:
    return target in _TABLES[entity].get(current, frozenset())


def ensure_transition(entity: str, current, target) -> None:
    """Raise StateError unless ``current -> target`` is an edge of the entity's table."""
    if not can_transition(entity, current, target):
        raise StateError(
            f"Cannot move {entity} from '{current.value}' to '{target.value}'",
            details={"entity": entity, "current": current.value, "target": target.value}
        )

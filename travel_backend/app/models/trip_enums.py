"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    ACTIVE = "active"  # Trip in progress, advances and receipts allowed
    AWAITING_REVIEW = "awaiting_review"  # Submitted by employee
    UNDER_REVIEW_AREA = "under_review_area"  # Finance Area checking receipts
    UNDER_REVIEW_REGIONAL = "under_review_regional"  # Forwarded to Finance Regional
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_TRIP_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})

# Statuses in which a settlement snapshot may exist for the trip
REVIEW_TRIP_STATUSES = frozenset({
    TripStatus.UNDER_REVIEW_AREA,
    TripStatus.UNDER_REVIEW_REGIONAL,
    TripStatus.COMPLETED,
})

"""
Advance enumerations.
"""

import enum


class AdvanceStatus(str, enum.Enum):
    """Advance status enumeration."""
    PENDING = "pending"  # Requested, waiting for Finance Area
    APPROVED_AREA = "approved_area"  # Amount fixed by Finance Area
    APPROVED_REGIONAL = "approved_regional"  # Cleared for transfer
    COMPLETED = "completed"  # Funds transferred
    REJECTED = "rejected"
    VOIDED = "voided"  # Trip cancelled after approval


class AdvanceRequestType(str, enum.Enum):
    """Advance request type enumeration."""
    INITIAL = "initial"
    ADDITIONAL = "additional"


TERMINAL_ADVANCE_STATUSES = frozenset({
    AdvanceStatus.COMPLETED,
    AdvanceStatus.REJECTED,
    AdvanceStatus.VOIDED,
})

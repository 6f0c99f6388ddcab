"""
Settlement enumerations.
"""

import enum


class SettlementStatus(str, enum.Enum):
    """Settlement status enumeration."""
    PENDING = "pending"  # Snapshot taken, waiting for finance
    PROCESSED = "processed"  # Transfer recorded
    COMPLETED = "completed"  # Closed, trip completed


class SettlementType(str, enum.Enum):
    """Direction of the money flow after reconciliation."""
    REFUND = "refund"  # Employee returns unspent advance
    PAYMENT = "payment"  # Company reimburses the employee
    BALANCED = "balanced"

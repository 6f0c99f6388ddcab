"""
User roles enumeration.

Defines the role types for the travel expense approval chain.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        EMPLOYEE: Owns trips, requests advances, uploads receipts
        FINANCE_AREA: First-tier approver scoped to an area code
        FINANCE_REGIONAL: Second-tier approver, unscoped
    """
    EMPLOYEE = "employee"
    FINANCE_AREA = "finance_area"
    FINANCE_REGIONAL = "finance_regional"


FINANCE_ROLES = frozenset({UserRole.FINANCE_AREA, UserRole.FINANCE_REGIONAL})

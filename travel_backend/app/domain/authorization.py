"""
Role-based authorization policies.

Every domain operation resolves the caller into an ``Actor`` and asks the
actor's policy whether the action is allowed on the trip involved. Advances,
receipts and settlements inherit the scope of the trip they belong to.

Scope rules:
- Employees act only on their own trips.
- Finance Area approvers see trips whose owner shares their area code.
- Finance Regional approvers are unscoped.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import false, true

from travel_backend.app.core.exceptions import AuthorizationError
from travel_backend.app.models.enums import UserRole, FINANCE_ROLES
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.user import User


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of a domain operation."""
    id: int
    role: UserRole
    area_code: Optional[str] = None

    @property
    def is_finance(self) -> bool:
        return self.role in FINANCE_ROLES

    @property
    def policy(self) -> "AuthorizationPolicy":
        return policy_for(self)


class AuthorizationPolicy:
    """
    Base policy: denies everything except what a subclass grants.

    Predicates take the trip the action targets. The trip's ``owner``
    relationship must be loaded (it is eager-loaded on every Trip query).
    """

    def __init__(self, actor: Actor):
        self.actor = actor

    def is_owner(self, trip: Trip) -> bool:
        return trip.user_id == self.actor.id

    def can_view_trip(self, trip: Trip) -> bool:
        return False

    def can_manage_trip(self, trip: Trip) -> bool:
        """Owner-side actions: edit, extend, submit, request advances, upload receipts."""
        return False

    def can_cancel_trip(self, trip: Trip) -> bool:
        return self.can_manage_trip(trip)

    def can_approve_area(self, trip: Trip) -> bool:
        return False

    def can_approve_regional(self, trip: Trip) -> bool:
        return False

    def can_handle_finance(self, trip: Trip) -> bool:
        """Finance desk actions: transfers, rejections, receipt verification, settlements."""
        return False

    def scope_trips(self):
        """SQL predicate restricting a Trip query to what this actor may see."""
        return false()


class EmployeePolicy(AuthorizationPolicy):

    def can_view_trip(self, trip: Trip) -> bool:
        return self.is_owner(trip)

    def can_manage_trip(self, trip: Trip) -> bool:
        return self.is_owner(trip)

    def scope_trips(self):
        return Trip.user_id == self.actor.id


class FinanceAreaPolicy(AuthorizationPolicy):

    def _in_area(self, trip: Trip) -> bool:
        if not self.actor.area_code:
            return False
        return trip.owner is not None and trip.owner.area_code == self.actor.area_code

    def can_view_trip(self, trip: Trip) -> bool:
        return self._in_area(trip)

    def can_cancel_trip(self, trip: Trip) -> bool:
        return self._in_area(trip)

    def can_approve_area(self, trip: Trip) -> bool:
        return self._in_area(trip)

    def can_handle_finance(self, trip: Trip) -> bool:
        return self._in_area(trip)

    def scope_trips(self):
        if not self.actor.area_code:
            return false()
        return Trip.owner.has(User.area_code == self.actor.area_code)


class FinanceRegionalPolicy(AuthorizationPolicy):

    def can_view_trip(self, trip: Trip) -> bool:
        return True

    def can_cancel_trip(self, trip: Trip) -> bool:
        return True

    def can_approve_regional(self, trip: Trip) -> bool:
        return True

    def can_handle_finance(self, trip: Trip) -> bool:
        return True

    def scope_trips(self):
        return true()


_POLICIES = {
    UserRole.EMPLOYEE: EmployeePolicy,
    UserRole.FINANCE_AREA: FinanceAreaPolicy,
    UserRole.FINANCE_REGIONAL: FinanceRegionalPolicy,
}


def policy_for(actor: Actor) -> AuthorizationPolicy:
    return _POLICIES.get(actor.role, AuthorizationPolicy)(actor)


def authorize(allowed: bool, message: str = "Insufficient permissions"):
    """Raise AuthorizationError unless the policy check passed."""
    if not allowed:
        raise AuthorizationError(message)

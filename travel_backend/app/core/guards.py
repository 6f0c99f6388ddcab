"""
Security guards for role-based access control.

Coarse role gates for endpoints. Ownership and area scoping are decided by
the domain policies in ``travel_backend.app.domain.authorization``.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from travel_backend.app.models.enums import UserRole, FINANCE_ROLES
from travel_backend.app.core.dependencies import get_current_actor
from travel_backend.app.domain.authorization import Actor


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/settlements/{settlement_id}/process")
        async def process(actor: Actor = Depends(require_role([UserRole.FINANCE_AREA]))):
            ...

    Raises:
        HTTPException 403 if the actor's role is not in allowed_roles
    """
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        return actor

    return role_checker


require_employee = require_role([UserRole.EMPLOYEE])
require_finance = require_role(sorted(FINANCE_ROLES, key=lambda r: r.value))

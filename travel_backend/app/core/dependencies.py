"""
Authentication dependencies for FastAPI.

This module resolves the bearer token into the ``Actor`` the domain
services authorize against, and provides the receipt file store.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from travel_backend.app.core.config import settings
from travel_backend.app.core.jwt import decode_access_token
from travel_backend.app.db.session import get_db
from travel_backend.app.domain.authorization import Actor
from travel_backend.app.models.user import User
from travel_backend.app.services.file_storage import FileStore, LocalFileStore

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Actor:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Verifies the user still exists and is active (real-time check)
    3. Builds the Actor from the stored account, so role or area changes
       apply without waiting for the token to expire

    Raises:
        HTTPException: 401 if authentication fails, 403 if the account is inactive
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return Actor(id=user.id, role=user.role, area_code=user.area_code)


def get_file_store() -> FileStore:
    """Receipt file store rooted at the configured storage directory."""
    return LocalFileStore(settings.receipt_storage_dir)

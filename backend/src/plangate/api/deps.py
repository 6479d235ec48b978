"""FastAPI dependencies for database sessions, authentication and services."""
from typing import Optional
from uuid import UUID

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.auth.jwt import jwt_auth
from plangate.config import settings
from plangate.database import get_db
from plangate.integrations.notification_service import NotificationService
from plangate.models.user import UserRole
from plangate.services.waitlist_service import WaitlistService

logger = structlog.get_logger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)

__all__ = [
    "get_db",
    "get_current_user",
    "current_user_id",
    "get_notifier",
    "get_waitlist_service",
]


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, str]:
    """
    Get current authenticated user from the bearer token.

    Returns:
        dict: ``sub``, ``email`` and ``role`` (defaults to ``user``)

    Raises:
        HTTPException: 401 if the token is missing, expired or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials

    try:
        payload = jwt_auth.verify_access_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "sub": payload["sub"],
        "email": payload.get("email"),
        "role": payload.get("role", UserRole.USER.value),
    }


def current_user_id(current_user: dict) -> UUID:
    """
    Parse the ``sub`` claim as a user id.

    Raises:
        HTTPException: 401 if the claim is not a UUID
    """
    try:
        return UUID(current_user["sub"])
    except (KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid subject claim",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_notifier() -> NotificationService:
    """Notification service for waitlist emails."""
    return NotificationService(api_key=settings.notification_api_key)


async def get_waitlist_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
) -> WaitlistService:
    """Waitlist service bound to the request's session."""
    return WaitlistService(db, notifier=notifier)

"""Role checks for endpoints restricted to administrators."""
from functools import wraps
from typing import Callable

import structlog
from fastapi import HTTPException, status

from plangate.models.user import UserRole

logger = structlog.get_logger(__name__)


def is_admin(current_user: dict | None) -> bool:
    """Whether the authenticated caller carries the admin role."""
    return bool(current_user) and current_user.get("role") == UserRole.ADMIN.value


def require_roles(*required_roles: UserRole):
    """
    Decorator to require one of the given roles for endpoint access.

    Usage:
        @require_roles(UserRole.ADMIN)
        async def list_waitlist(..., current_user: dict = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 without an authenticated user, 403 for any other role
    """
    allowed = {role.value for role in required_roles}

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            current_user = kwargs.get("current_user")

            if not current_user:
                logger.error("rbac_missing_current_user", endpoint=func.__name__)
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authentication required",
                )

            if current_user.get("role") not in allowed:
                logger.warning(
                    "rbac_permission_denied",
                    user_id=current_user.get("sub"),
                    user_role=current_user.get("role"),
                    required_roles=sorted(allowed),
                    endpoint=func.__name__,
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Forbidden",
                )

            return await func(*args, **kwargs)

        return wrapper
    return decorator

"""Access tokens for API tests, signed the way the auth provider signs them."""
from datetime import datetime, timedelta

import jwt

from plangate.config import settings
from plangate.models.user import User, UserRole


def make_token(user: User, role: UserRole | None = None, expires_in: timedelta = timedelta(hours=1)) -> str:
    now = datetime.utcnow()
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "role": (role or user.role).value,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(user: User, role: UserRole | None = None) -> dict[str, str]:
    """Bearer authorization header for ``user``."""
    return {"Authorization": f"Bearer {make_token(user, role)}"}

"""HS256 bearer token issue/verify, signed with SECRET_KEY."""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from crewplan.core.config import settings


def create_access_token(user_id: uuid.UUID, expires_in: timedelta = timedelta(hours=12)) -> str:
    """Issue a token whose `sub` is the user id. Used by the login flow and tests."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """Decode and verify a bearer token. Raises JWTError on any failure."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if not payload.get("sub"):
        raise JWTError("Token missing subject claim")
    return payload

"""FastAPI auth dependencies: get_current_user, require_permission."""

import uuid

import sentry_sdk
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.auth.jwt import verify_token
from crewplan.auth.rbac import check_permission
from crewplan.core.database import get_db
from crewplan.models.core import User
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()

# auto_error=False so a missing header yields 401 rather than 403
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Verify the bearer JWT and resolve the calling user.

    Decodes JWT -> `sub` claim (user id) -> loads the User row.
    Always checks is_active and is_deleted.
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    try:
        payload = verify_token(credentials.credentials)
        user_id = uuid.UUID(payload["sub"])
    except (JWTError, ValueError) as e:
        logger.warning("jwt_verification_failed", error=str(e))
        raise _unauthorized("Invalid or expired token") from e

    stmt = select(User).where(
        User.id == user_id,
        User.is_active.is_(True),
        User.is_deleted.is_(False),
    )
    user = (await db.execute(stmt)).scalar_one_or_none()
    if user is None:
        logger.warning("user_not_found_for_token", user_id=str(user_id))
        raise _unauthorized("User not found or inactive")

    # Enrich Sentry scope with identity (PII-free: no email)
    sentry_sdk.set_user({"id": str(user.id)})
    sentry_sdk.set_tag("user_role", user.role.value)

    return CurrentUser(user_id=user.id, role=user.role, email=user.email)


def require_permission(action: str, resource_type: str):
    """
    Dependency factory: checks a specific (action, resource_type) permission.

    Usage:
        @router.put("/{project_id}", dependencies=[Depends(require_permission("edit", "schedule"))])
    """

    async def _check_perm(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not check_permission(current_user.role, action, resource_type):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action} on {resource_type}",
            )
        return current_user

    return _check_perm

"""Auth API router: profile and permissions."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.auth.dependencies import get_current_user
from crewplan.auth.rbac import get_permissions_for_role
from crewplan.core.database import get_db
from crewplan.models.core import User
from crewplan.models.workforce import Worker
from crewplan.schemas.auth import CurrentUser, PermissionMatrixResponse, UserProfileResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=UserProfileResponse)
async def get_me(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return current user profile, linked worker and permissions."""
    stmt = (
        select(User, Worker.id)
        .outerjoin(Worker, (Worker.user_id == User.id) & Worker.is_deleted.is_(False))
        .where(User.id == current_user.user_id)
    )
    row = (await db.execute(stmt)).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user, worker_id = row.tuple()
    return UserProfileResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        worker_id=worker_id,
        permissions=get_permissions_for_role(current_user.role),
    )


@router.get("/permissions", response_model=PermissionMatrixResponse)
async def get_permissions(
    current_user: CurrentUser = Depends(get_current_user),
):
    """Return the current user's permission matrix."""
    return PermissionMatrixResponse(
        role=current_user.role,
        permissions=get_permissions_for_role(current_user.role),
    )

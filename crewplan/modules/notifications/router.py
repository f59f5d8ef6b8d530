"""Notifications API router: list, unread count, mark read."""

import math
import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.auth.dependencies import require_permission
from crewplan.core.database import get_db
from crewplan.models.enums import NotificationType
from crewplan.modules.notifications import service
from crewplan.modules.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    MarkAllReadResponse,
    UnreadCountResponse,
)
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_to_response(n) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        type=n.type,
        title=n.title,
        message=n.message,
        link=n.link,
        project_id=n.project_id,
        schedule_item_id=n.schedule_item_id,
        is_read=n.is_read,
        created_at=n.created_at,
    )


# ── Fixed-path routes (before /{id}) ─────────────────────────────────────────


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    type: list[NotificationType] | None = Query(None),
    alerts_only: bool = Query(False, description="Only resource conflict and overdue task alerts"),
    project_id: uuid.UUID | None = Query(None),
    is_read: bool | None = Query(None),
    current_user: CurrentUser = Depends(require_permission("view", "notification")),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the current user."""
    types = list(service.SCHEDULE_ALERT_TYPES) if alerts_only else type
    notifications, total = await service.list_notifications(
        db, current_user.user_id, types=types, project_id=project_id,
        is_read=is_read, page=page, page_size=page_size,
    )
    return NotificationListResponse(
        items=[_notification_to_response(n) for n in notifications],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=max(1, math.ceil(total / page_size)),
    )


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    project_id: uuid.UUID | None = Query(None),
    current_user: CurrentUser = Depends(require_permission("view", "notification")),
    db: AsyncSession = Depends(get_db),
):
    count = await service.mark_all_read(db, current_user.user_id, project_id=project_id)
    await db.commit()
    return MarkAllReadResponse(marked_read=count)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: CurrentUser = Depends(require_permission("view", "notification")),
    db: AsyncSession = Depends(get_db),
):
    counts = await service.get_unread_counts(db, current_user.user_id)
    return UnreadCountResponse(
        count=sum(counts.values()),
        resource_conflicts=counts.get(NotificationType.RESOURCE_CONFLICT, 0),
        overdue_tasks=counts.get(NotificationType.TASK_OVERDUE, 0),
    )


# ── Parameterised routes ─────────────────────────────────────────────────────


@router.put("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    notification_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission("view", "notification")),
    db: AsyncSession = Depends(get_db),
):
    """Mark one notification as read."""
    updated = await service.mark_read(db, notification_id, current_user.user_id)
    if not updated:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()

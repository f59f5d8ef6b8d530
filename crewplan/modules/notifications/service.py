"""Notification service: scheduling alerts for project owners and their inbox."""

import uuid
from collections.abc import Sequence

import structlog
from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.models.core import Notification
from crewplan.models.enums import NotificationType

logger = structlog.get_logger()

# Raised by the scheduling core; the rest are general messages.
SCHEDULE_ALERT_TYPES: tuple[NotificationType, ...] = (
    NotificationType.RESOURCE_CONFLICT,
    NotificationType.TASK_OVERDUE,
)


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    type: NotificationType,
    title: str,
    message: str,
    link: str | None = None,
    project_id: uuid.UUID | None = None,
    schedule_item_id: uuid.UUID | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        project_id=project_id,
        schedule_item_id=schedule_item_id,
    )
    db.add(notification)
    await db.flush()
    logger.info(
        "notification.created",
        notification_id=str(notification.id),
        user_id=str(user_id),
        type=type.value,
        project_id=str(project_id) if project_id else None,
        schedule_item_id=str(schedule_item_id) if schedule_item_id else None,
    )
    return notification


def _inbox(
    user_id: uuid.UUID,
    types: Sequence[NotificationType] | None = None,
    project_id: uuid.UUID | None = None,
) -> Select:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if types:
        stmt = stmt.where(Notification.type.in_(list(types)))
    if project_id is not None:
        stmt = stmt.where(Notification.project_id == project_id)
    return stmt


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    types: Sequence[NotificationType] | None = None,
    project_id: uuid.UUID | None = None,
    is_read: bool | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Notification], int]:
    """
    One page of the user's inbox, newest first, with its unpaged total.

    ``types`` narrows to those notification types (``SCHEDULE_ALERT_TYPES``
    for conflict and overdue alerts only); ``project_id`` to alerts about
    one project.
    """
    base = _inbox(user_id, types, project_id)
    if is_read is not None:
        base = base.where(Notification.is_read == is_read)

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0

    stmt = (
        base.order_by(Notification.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list((await db.execute(stmt)).scalars().all()), total


async def mark_read(db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """False when the notification is missing or belongs to someone else."""
    notification = await db.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        return False
    notification.is_read = True
    await db.flush()
    return True


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID | None = None) -> int:
    """Mark the user's unread notifications read, optionally for one project. Returns the count."""
    stmt = update(Notification).where(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    )
    if project_id is not None:
        stmt = stmt.where(Notification.project_id == project_id)
    result = await db.execute(stmt.values(is_read=True))
    await db.flush()
    logger.info(
        "notification.marked_all_read",
        user_id=str(user_id),
        project_id=str(project_id) if project_id else None,
        count=result.rowcount,
    )
    return result.rowcount


async def get_unread_counts(db: AsyncSession, user_id: uuid.UUID) -> dict[NotificationType, int]:
    """Unread notifications per type; types with nothing unread are omitted."""
    stmt = (
        select(Notification.type, func.count())
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .group_by(Notification.type)
    )
    return {type_: count for type_, count in (await db.execute(stmt)).all()}

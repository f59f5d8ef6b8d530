"""Notification Pydantic schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from crewplan.models.enums import NotificationType


class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    link: str | None
    project_id: uuid.UUID | None = None
    schedule_item_id: uuid.UUID | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class UnreadCountResponse(BaseModel):
    count: int
    resource_conflicts: int = 0
    overdue_tasks: int = 0


class MarkAllReadResponse(BaseModel):
    marked_read: int

"""Core models: User, Notification."""

import uuid

from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from crewplan.models.base import BaseModel, TimestampedModel
from crewplan.models.enums import NotificationType, UserRole


class User(BaseModel):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_email", "email", unique=True),
        Index("ix_users_role", "role"),
    )

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(nullable=False, default=UserRole.VIEWER)
    is_active: Mapped[bool] = mapped_column(default=True, server_default="1", nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role.value})>"


class Notification(TimestampedModel):
    """Outbound record. Append-only from the scheduling core's point of view."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_id_is_read", "user_id", "is_read"),
        Index("ix_notifications_user_id_project_id", "user_id", "project_id"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[NotificationType] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(1000))
    is_read: Mapped[bool] = mapped_column(default=False, server_default="0", nullable=False)
    # Scheduling alerts point at the project and task they are about. No FK:
    # the alert outlives an archived or deleted task.
    project_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    schedule_item_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

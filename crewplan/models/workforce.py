"""Workforce models: Worker (owned by HR, read-only to scheduling)."""

import uuid

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from crewplan.models.base import BaseModel


class Worker(BaseModel):
    __tablename__ = "workers"
    __table_args__ = (
        Index("ix_workers_user_id", "user_id", unique=True),
    )

    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Optional login; workers on site often have none
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    is_active: Mapped[bool] = mapped_column(default=True, server_default="1", nullable=False)

    def __repr__(self) -> str:
        return f"<Worker(id={self.id}, name={self.display_name!r})>"

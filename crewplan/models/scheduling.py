"""Scheduling models: TaskTemplate, Schedule, ScheduleItem, ScheduleItemAssignment, ProgressReport."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crewplan.models.base import AuditMixin, BaseModel, TimestampedModel
from crewplan.models.enums import ScheduleItemStatus, ScheduleStatus
from crewplan.models.workforce import Worker


class TaskTemplate(BaseModel):
    """Productivity reference data. Written only by catalog maintenance."""

    __tablename__ = "task_templates"
    __table_args__ = (
        Index("ix_task_templates_key", "key", unique=True),
    )

    key: Mapped[str] = mapped_column(String(64), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    hours_per_unit: Mapped[float] = mapped_column(nullable=False)
    complexity_factor: Mapped[float] = mapped_column(nullable=False, default=1.0)
    unit_label: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<TaskTemplate(key={self.key!r}, hours_per_unit={self.hours_per_unit})>"


class Schedule(BaseModel, AuditMixin):
    __tablename__ = "schedules"
    __table_args__ = (
        # At most one schedule per project
        Index("ix_schedules_project_id", "project_id", unique=True),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    note: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ScheduleStatus] = mapped_column(
        nullable=False, default=ScheduleStatus.DRAFT
    )


class ScheduleItem(BaseModel):
    __tablename__ = "schedule_items"
    __table_args__ = (
        Index("ix_schedule_items_schedule_id_position", "schedule_id", "position"),
        Index("ix_schedule_items_planned_range", "planned_start", "planned_end"),
        Index("ix_schedule_items_status", "status"),
    )

    schedule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("schedules.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    unit: Mapped[str | None] = mapped_column(String(50))
    quantity: Mapped[float | None] = mapped_column()
    template_key: Mapped[str | None] = mapped_column(String(64))
    planned_start: Mapped[datetime | None] = mapped_column()
    planned_end: Mapped[datetime | None] = mapped_column()
    status: Mapped[ScheduleItemStatus] = mapped_column(
        nullable=False, default=ScheduleItemStatus.DRAFT
    )
    estimated_hours: Mapped[float] = mapped_column(nullable=False, default=8.0)
    percent_complete: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    has_conflict: Mapped[bool] = mapped_column(default=False, server_default="0", nullable=False)
    conflict_note: Mapped[str | None] = mapped_column(Text)
    note: Mapped[str | None] = mapped_column(Text)
    quote_line_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("quote_lines.id", ondelete="SET NULL")
    )
    completed_at: Mapped[datetime | None] = mapped_column()
    overdue_notified_at: Mapped[datetime | None] = mapped_column()
    archived_at: Mapped[datetime | None] = mapped_column()

    assignments: Mapped[list["ScheduleItemAssignment"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ScheduleItemAssignment.created_at",
    )

    @property
    def worker_ids(self) -> list[uuid.UUID]:
        return [a.worker_id for a in self.assignments]

    def __repr__(self) -> str:
        return f"<ScheduleItem(id={self.id}, title={self.title!r}, status={self.status.value})>"


class ScheduleItemAssignment(TimestampedModel):
    """Join entity between ScheduleItem and Worker."""

    __tablename__ = "schedule_item_assignments"
    __table_args__ = (
        UniqueConstraint("item_id", "worker_id", name="uq_schedule_item_assignments_item_worker"),
        Index("ix_schedule_item_assignments_worker_id", "worker_id"),
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("schedule_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    worker_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workers.id"),
        nullable=False,
    )
    hours_per_day: Mapped[float] = mapped_column(nullable=False, default=8.0)

    item: Mapped["ScheduleItem"] = relationship(back_populates="assignments")
    worker: Mapped[Worker] = relationship(lazy="selectin")


class ProgressReport(TimestampedModel):
    """Append-only progress log. Its FK keeps reported items from being hard-deleted."""

    __tablename__ = "progress_reports"
    __table_args__ = (
        Index("ix_progress_reports_item_id_created_at", "item_id", "created_at"),
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("schedule_items.id"),
        nullable=False,
    )
    worker_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workers.id"),
        nullable=False,
    )
    percent: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str | None] = mapped_column(Text)

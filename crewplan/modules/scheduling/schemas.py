"""Schedule builder Pydantic schemas."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from crewplan.models.enums import ScheduleItemStatus, ScheduleStatus


def _naive_utc(value: datetime | None) -> datetime | None:
    # Stored timestamps are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ── Requests ─────────────────────────────────────────────────────────────────


class ScheduleItemFields(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    unit: str | None = None
    quantity: float | None = None
    template_key: str | None = None
    planned_start: datetime | None = None
    planned_end: datetime | None = None
    worker_ids: list[uuid.UUID] = Field(default_factory=list)
    note: str | None = None

    @field_validator("planned_start", "planned_end")
    @classmethod
    def _to_naive_utc(cls, v: datetime | None) -> datetime | None:
        return _naive_utc(v)

    @field_validator("worker_ids")
    @classmethod
    def _dedupe_workers(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        return list(dict.fromkeys(v))


class ScheduleItemInput(ScheduleItemFields):
    """One row of a full schedule save. A known id updates that row in place."""

    id: uuid.UUID | None = None


class ScheduleSaveRequest(BaseModel):
    note: str | None = None
    items: list[ScheduleItemInput] = Field(default_factory=list)
    status: ScheduleStatus = ScheduleStatus.DRAFT


class ScheduleItemCreate(ScheduleItemFields):
    """A single manually entered task."""


class ItemStatusUpdate(BaseModel):
    status: ScheduleItemStatus


class ExtractRequest(BaseModel):
    labour_only: bool = False


class AvailabilityRequest(BaseModel):
    worker_ids: list[uuid.UUID] = Field(min_length=1)
    start: datetime
    end: datetime
    exclude_project_id: uuid.UUID | None = None
    exclude_item_id: uuid.UUID | None = None
    buffer_days: int = Field(0, ge=0, le=14)

    @field_validator("start", "end")
    @classmethod
    def _to_naive_utc(cls, v: datetime) -> datetime:
        return _naive_utc(v)


# ── Responses ────────────────────────────────────────────────────────────────


class ConflictResponse(BaseModel):
    item_id: uuid.UUID
    other_item_id: uuid.UUID
    other_item_title: str
    other_project_id: uuid.UUID
    other_project_name: str
    other_project_number: str
    other_start: datetime | None
    other_end: datetime | None
    worker_ids: list[uuid.UUID]
    worker_names: list[str]


class ScheduleItemResponse(BaseModel):
    id: uuid.UUID
    position: int
    title: str
    description: str | None
    unit: str | None
    quantity: float | None
    template_key: str | None
    planned_start: datetime | None
    planned_end: datetime | None
    status: ScheduleItemStatus
    estimated_hours: float
    percent_complete: int
    has_conflict: bool
    conflict_note: str | None
    note: str | None
    quote_line_id: uuid.UUID | None
    completed_at: datetime | None
    worker_ids: list[uuid.UUID]
    conflicts: list[ConflictResponse] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    note: str | None
    status: ScheduleStatus
    items: list[ScheduleItemResponse]
    created_at: datetime
    updated_at: datetime


class ScheduleSaveResponse(BaseModel):
    schedule_id: uuid.UUID
    status: ScheduleStatus
    items: list[ScheduleItemResponse]
    conflicts: list[ConflictResponse]
    conflict_check_failures: int = 0
    archived_item_ids: list[uuid.UUID] = Field(default_factory=list)


class WorkerTaskResponse(ScheduleItemResponse):
    project_id: uuid.UUID
    project_name: str
    project_number: str


class OverdueSweepResponse(BaseModel):
    notified: int
    item_ids: list[uuid.UUID]


class BusyWorker(BaseModel):
    worker_id: uuid.UUID
    worker_name: str
    item_id: uuid.UUID
    project_id: uuid.UUID
    project_name: str
    project_number: str
    start: datetime | None
    end: datetime | None


class AvailabilityResponse(BaseModel):
    busy_worker_ids: list[uuid.UUID]
    details: list[BusyWorker]


class WorkerReliabilityResponse(BaseModel):
    worker_id: uuid.UUID
    worker_name: str
    total_assigned: int
    completed_on_time: int
    completed_late: int
    active_overdue: int
    active_on_track: int
    reliability_pct: int


class ReliabilityReportResponse(BaseModel):
    project_id: uuid.UUID | None
    generated_at: datetime
    workers: list[WorkerReliabilityResponse]

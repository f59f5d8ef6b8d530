"""Progress tracker schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from crewplan.models.enums import ScheduleItemStatus


class ProgressCreate(BaseModel):
    # Range is checked by the service so out-of-range values surface as a 400
    percent: int
    worker_id: uuid.UUID | None = None
    note: str | None = None


class ProgressReportResponse(BaseModel):
    id: uuid.UUID
    item_id: uuid.UUID
    worker_id: uuid.UUID
    percent: int
    note: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProgressSubmitResponse(BaseModel):
    report: ProgressReportResponse
    item_id: uuid.UUID
    percent_complete: int
    status: ScheduleItemStatus
    completed_at: datetime | None

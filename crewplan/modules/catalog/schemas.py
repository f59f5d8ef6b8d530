"""Productivity catalog schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel


class TemplateResponse(BaseModel):
    id: uuid.UUID
    key: str
    label: str
    hours_per_unit: float
    complexity_factor: float
    unit_label: str
    updated_at: datetime

    model_config = {"from_attributes": True}


class TemplateUpsert(BaseModel):
    label: str
    hours_per_unit: float
    complexity_factor: float = 1.0
    unit_label: str


class EstimateRequest(BaseModel):
    template_key: str | None = None
    quantity: float | None = None
    assignee_count: int = 1
    planned_start: datetime | None = None


class EstimateResponse(BaseModel):
    template_key: str | None
    estimated_hours: float
    duration_days: int | None
    planned_start: datetime
    planned_end: datetime | None

"""Schedule builder API router: save/activate, extract from quote, task lifecycle, reports."""

import uuid
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.auth.dependencies import require_permission
from crewplan.auth.rbac import check_permission
from crewplan.core.database import get_db
from crewplan.core.errors import DomainError, http_error
from crewplan.models.enums import ScheduleStatus
from crewplan.modules.scheduling import service
from crewplan.modules.scheduling.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    ExtractRequest,
    ItemStatusUpdate,
    OverdueSweepResponse,
    ReliabilityReportResponse,
    ScheduleItemCreate,
    ScheduleItemResponse,
    ScheduleResponse,
    ScheduleSaveRequest,
    ScheduleSaveResponse,
    WorkerTaskResponse,
)
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/schedules", tags=["scheduling"])


# ── Fixed-path routes (before /{project_id}) ─────────────────────────────────


@router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(
    body: AvailabilityRequest,
    current_user: CurrentUser = Depends(require_permission("view", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityResponse:
    """Report which workers are already booked on other projects in a window."""
    try:
        return await service.check_availability(db, body)
    except DomainError as exc:
        raise http_error(exc)


@router.get("/workers/{worker_id}/tasks", response_model=list[WorkerTaskResponse])
async def list_worker_tasks(
    worker_id: uuid.UUID,
    as_of: datetime | None = Query(None),
    current_user: CurrentUser = Depends(require_permission("view", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> list[WorkerTaskResponse]:
    try:
        return await service.list_worker_tasks(db, worker_id, as_of)
    except DomainError as exc:
        raise http_error(exc)


@router.patch("/items/{item_id}/status", response_model=ScheduleItemResponse)
async def update_item_status(
    item_id: uuid.UUID,
    body: ItemStatusUpdate,
    current_user: CurrentUser = Depends(require_permission("edit", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> ScheduleItemResponse:
    try:
        result = await service.update_item_status(db, current_user, item_id, body.status)
        await db.commit()
        return result
    except DomainError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.error("scheduling.update_item_status.error", item_id=str(item_id), error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to update task status")


@router.post("/overdue-sweep", response_model=OverdueSweepResponse)
async def run_overdue_sweep(
    current_user: CurrentUser = Depends(require_permission("manage", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> OverdueSweepResponse:
    """Notify responsible users about overdue tasks. Safe to call repeatedly."""
    result = await service.notify_overdue_items(db)
    await db.commit()
    return result


@router.get("/reports/reliability", response_model=ReliabilityReportResponse)
async def get_reliability_report(
    project_id: uuid.UUID | None = Query(None),
    current_user: CurrentUser = Depends(require_permission("view", "report")),
    db: AsyncSession = Depends(get_db),
) -> ReliabilityReportResponse:
    try:
        return await service.schedule_reliability(db, project_id)
    except DomainError as exc:
        raise http_error(exc)


# ── Per-project routes ───────────────────────────────────────────────────────


@router.get("/{project_id}", response_model=ScheduleResponse | None)
async def get_schedule(
    project_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission("view", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> ScheduleResponse | None:
    """Current schedule of a project, or null when none exists yet."""
    try:
        return await service.get_schedule(db, project_id)
    except DomainError as exc:
        raise http_error(exc)


@router.put("/{project_id}", response_model=ScheduleSaveResponse)
async def save_schedule(
    project_id: uuid.UUID,
    body: ScheduleSaveRequest,
    current_user: CurrentUser = Depends(require_permission("edit", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> ScheduleSaveResponse:
    """Save the full item set of a project's schedule; status=active activates it."""
    if body.status == ScheduleStatus.ACTIVE and not check_permission(
        current_user.role, "activate", "schedule"
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied: activate on schedule",
        )
    try:
        result = await service.save_schedule(db, current_user, project_id, body)
        await db.commit()
        return result
    except DomainError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.error("scheduling.save_schedule.error", project_id=str(project_id), error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to save schedule")


@router.post(
    "/{project_id}/extract-from-quote",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def extract_from_quote(
    project_id: uuid.UUID,
    body: ExtractRequest | None = None,
    current_user: CurrentUser = Depends(require_permission("create", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> ScheduleResponse:
    """Create a draft schedule from the project's quote lines."""
    labour_only = body.labour_only if body else False
    try:
        result = await service.extract_from_quote(db, current_user, project_id, labour_only)
        await db.commit()
        return result
    except DomainError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.error("scheduling.extract_from_quote.error", project_id=str(project_id), error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to extract schedule from quote")


@router.post(
    "/{project_id}/items",
    response_model=ScheduleItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    project_id: uuid.UUID,
    body: ScheduleItemCreate,
    current_user: CurrentUser = Depends(require_permission("create", "schedule")),
    db: AsyncSession = Depends(get_db),
) -> ScheduleItemResponse:
    """Add a single manually entered task to the project's schedule."""
    try:
        result = await service.add_item(db, current_user, project_id, body)
        await db.commit()
        return result
    except DomainError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.error("scheduling.add_item.error", project_id=str(project_id), error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to add task")

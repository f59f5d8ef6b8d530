"""Progress tracker API router."""

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.auth.dependencies import require_permission
from crewplan.core.database import get_db
from crewplan.core.errors import DomainError, http_error
from crewplan.modules.progress import service
from crewplan.modules.progress.schemas import (
    ProgressCreate,
    ProgressReportResponse,
    ProgressSubmitResponse,
)
from crewplan.modules.scheduling import service as scheduling_service
from crewplan.modules.scheduling.schemas import WorkerTaskResponse
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/my-tasks", response_model=list[WorkerTaskResponse])
async def list_my_tasks(
    current_user: CurrentUser = Depends(require_permission("view", "progress")),
    db: AsyncSession = Depends(get_db),
) -> list[WorkerTaskResponse]:
    """Started, unfinished tasks of the worker linked to the caller."""
    try:
        worker = await service.worker_for_user(db, current_user.user_id)
        return await scheduling_service.list_worker_tasks(db, worker.id)
    except DomainError as exc:
        raise http_error(exc)


@router.post(
    "/items/{item_id}",
    response_model=ProgressSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_progress(
    item_id: uuid.UUID,
    body: ProgressCreate,
    current_user: CurrentUser = Depends(require_permission("report", "progress")),
    db: AsyncSession = Depends(get_db),
) -> ProgressSubmitResponse:
    try:
        result = await service.submit_progress(
            db, current_user, item_id, body.percent, worker_id=body.worker_id, note=body.note
        )
        await db.commit()
        return result
    except DomainError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.error("progress.submit.error", item_id=str(item_id), error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to submit progress")


@router.get("/items/{item_id}", response_model=list[ProgressReportResponse])
async def list_progress(
    item_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission("view", "progress")),
    db: AsyncSession = Depends(get_db),
) -> list[ProgressReportResponse]:
    try:
        return await service.list_progress(db, item_id)
    except DomainError as exc:
        raise http_error(exc)

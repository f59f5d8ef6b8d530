"""Progress tracker: append reports and project the latest one onto the task."""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.core.errors import NotFoundError, ValidationError
from crewplan.models.base import utcnow
from crewplan.models.enums import ScheduleItemStatus
from crewplan.models.scheduling import ProgressReport, ScheduleItem
from crewplan.models.workforce import Worker
from crewplan.modules.progress.schemas import ProgressReportResponse, ProgressSubmitResponse
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()


async def worker_for_user(db: AsyncSession, user_id: uuid.UUID) -> Worker:
    """The worker record linked to a login."""
    stmt = select(Worker).where(
        Worker.user_id == user_id,
        Worker.is_deleted.is_(False),
    )
    worker = (await db.execute(stmt)).scalar_one_or_none()
    if worker is None:
        raise NotFoundError("No worker is linked to the current user")
    return worker


async def submit_progress(
    db: AsyncSession,
    caller: CurrentUser,
    item_id: uuid.UUID,
    percent: int,
    worker_id: uuid.UUID | None = None,
    note: str | None = None,
) -> ProgressSubmitResponse:
    """
    Append a progress report and update the task's percent and status.

    The task keeps the most recent report only (last write wins): two workers
    reporting on one task overwrite each other's percentage. Whether the
    reporting worker is assigned to the task is not checked here.
    """
    if percent < 0 or percent > 100:
        raise ValidationError(
            f"Percent must be between 0 and 100, got {percent}",
            [{"reason": "percent_out_of_range", "percent": percent}],
        )

    stmt = select(ScheduleItem).where(
        ScheduleItem.id == item_id,
        ScheduleItem.is_deleted.is_(False),
    )
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFoundError(f"Task {item_id} not found")

    if worker_id is None:
        worker = await worker_for_user(db, caller.user_id)
    else:
        worker = await db.get(Worker, worker_id)
        if worker is None or worker.is_deleted:
            raise NotFoundError(f"Worker {worker_id} not found")

    report = ProgressReport(
        id=uuid.uuid4(),
        item_id=item.id,
        worker_id=worker.id,
        percent=percent,
        note=note,
    )
    db.add(report)

    item.percent_complete = percent
    if percent == 100:
        item.status = ScheduleItemStatus.DONE
        item.completed_at = utcnow()
    else:
        item.status = ScheduleItemStatus.IN_PROGRESS
        item.completed_at = None
    await db.flush()

    logger.info(
        "progress.submitted",
        item_id=str(item.id),
        worker_id=str(worker.id),
        percent=percent,
        status=item.status.value,
    )
    return ProgressSubmitResponse(
        report=ProgressReportResponse.model_validate(report),
        item_id=item.id,
        percent_complete=item.percent_complete,
        status=item.status,
        completed_at=item.completed_at,
    )


async def list_progress(db: AsyncSession, item_id: uuid.UUID) -> list[ProgressReportResponse]:
    """Report history of a task, newest first. Archived tasks keep their history."""
    item = await db.get(ScheduleItem, item_id)
    if item is None:
        raise NotFoundError(f"Task {item_id} not found")
    stmt = (
        select(ProgressReport)
        .where(ProgressReport.item_id == item_id)
        .order_by(ProgressReport.created_at.desc())
    )
    return [ProgressReportResponse.model_validate(r) for r in (await db.execute(stmt)).scalars().all()]

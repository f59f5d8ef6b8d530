"""Schedule builder service: save, extract from quote, per-item lifecycle, reports."""

import math
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.core.errors import ConflictPolicyError, NotFoundError, ValidationError
from crewplan.models.base import utcnow
from crewplan.models.enums import (
    NotificationType,
    QuoteLineType,
    ScheduleItemStatus,
    ScheduleStatus,
)
from crewplan.models.projects import Project, Quote, QuoteLine
from crewplan.models.scheduling import (
    ProgressReport,
    Schedule,
    ScheduleItem,
    ScheduleItemAssignment,
)
from crewplan.models.workforce import Worker
from crewplan.modules.catalog.defaults import infer_template_key
from crewplan.modules.catalog.service import build_engine
from crewplan.modules.notifications.service import create_notification
from crewplan.modules.scheduling.conflicts import (
    ConflictCheck,
    ConflictDetector,
    ConflictHit,
    ConflictReport,
    find_overlapping,
)
from crewplan.modules.scheduling.engine import Estimate, EstimationEngine
from crewplan.modules.scheduling.reliability import ItemOutcome, compute_reliability
from crewplan.modules.scheduling.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    BusyWorker,
    ConflictResponse,
    OverdueSweepResponse,
    ReliabilityReportResponse,
    ScheduleItemCreate,
    ScheduleItemInput,
    ScheduleItemResponse,
    ScheduleResponse,
    ScheduleSaveRequest,
    ScheduleSaveResponse,
    WorkerReliabilityResponse,
    WorkerTaskResponse,
)
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()

# Statuses a schedule save may move between; anything past these is left alone
_PLANNING_STATUSES = {ScheduleItemStatus.DRAFT, ScheduleItemStatus.ACTIVE}

# Committed, unfinished work
_OPEN_STATUSES = (
    ScheduleItemStatus.ACTIVE,
    ScheduleItemStatus.IN_PROGRESS,
    ScheduleItemStatus.ON_HOLD,
)


# ── Helpers ──────────────────────────────────────────────────────────────────


@dataclass
class _PlannedItem:
    source: ScheduleItemInput
    estimate: Estimate
    planned_start: datetime | None
    planned_end: datetime | None


def _conflict_to_response(hit: ConflictHit) -> ConflictResponse:
    return ConflictResponse(
        item_id=hit.item_id,
        other_item_id=hit.other_item_id,
        other_item_title=hit.other_item_title,
        other_project_id=hit.other_project_id,
        other_project_name=hit.other_project_name,
        other_project_number=hit.other_project_number,
        other_start=hit.other_start,
        other_end=hit.other_end,
        worker_ids=list(hit.worker_ids),
        worker_names=list(hit.worker_names),
    )


def _item_to_response(item: ScheduleItem) -> ScheduleItemResponse:
    return ScheduleItemResponse(
        id=item.id,
        position=item.position,
        title=item.title,
        description=item.description,
        unit=item.unit,
        quantity=item.quantity,
        template_key=item.template_key,
        planned_start=item.planned_start,
        planned_end=item.planned_end,
        status=item.status,
        estimated_hours=item.estimated_hours,
        percent_complete=item.percent_complete,
        has_conflict=item.has_conflict,
        conflict_note=item.conflict_note,
        note=item.note,
        quote_line_id=item.quote_line_id,
        completed_at=item.completed_at,
        worker_ids=item.worker_ids,
    )


def _annotate(
    response: ScheduleItemResponse, report: ConflictReport, flag_candidates: bool
) -> ScheduleItemResponse:
    hits = report.for_item(response.id)
    response.conflicts = [_conflict_to_response(h) for h in hits]
    if hits and flag_candidates:
        response.has_conflict = True
    return response


async def _get_project(db: AsyncSession, project_id: uuid.UUID) -> Project:
    stmt = select(Project).where(Project.id == project_id, Project.is_deleted.is_(False))
    project = (await db.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


async def _get_schedule(db: AsyncSession, project_id: uuid.UUID) -> Schedule | None:
    stmt = select(Schedule).where(
        Schedule.project_id == project_id,
        Schedule.is_deleted.is_(False),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _create_schedule(
    db: AsyncSession, caller: CurrentUser, project_id: uuid.UUID, note: str | None = None
) -> Schedule:
    schedule = Schedule(
        id=uuid.uuid4(),
        project_id=project_id,
        note=note,
        status=ScheduleStatus.DRAFT,
        created_by=caller.user_id,
        updated_by=caller.user_id,
    )
    db.add(schedule)
    await db.flush()
    return schedule


async def _load_items(db: AsyncSession, schedule_id: uuid.UUID) -> list[ScheduleItem]:
    stmt = (
        select(ScheduleItem)
        .where(
            ScheduleItem.schedule_id == schedule_id,
            ScheduleItem.is_deleted.is_(False),
        )
        .order_by(ScheduleItem.position, ScheduleItem.created_at)
    )
    return list((await db.execute(stmt)).scalars().all())


async def _get_item(db: AsyncSession, item_id: uuid.UUID) -> ScheduleItem:
    stmt = select(ScheduleItem).where(
        ScheduleItem.id == item_id,
        ScheduleItem.is_deleted.is_(False),
    )
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFoundError(f"Task {item_id} not found")
    return item


async def _load_workers(db: AsyncSession, worker_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Worker]:
    """Active workers by id. Unknown or inactive ids are a validation error."""
    wanted = set(worker_ids)
    if not wanted:
        return {}
    stmt = select(Worker).where(
        Worker.id.in_(wanted),
        Worker.is_deleted.is_(False),
        Worker.is_active.is_(True),
    )
    workers = {w.id: w for w in (await db.execute(stmt)).scalars().all()}
    missing = wanted - workers.keys()
    if missing:
        raise ValidationError(
            "Unknown or inactive worker(s) assigned",
            [{"reason": "unknown_worker", "worker_id": str(w)} for w in sorted(missing, key=str)],
        )
    return workers


def _sync_assignments(item: ScheduleItem, workers: Sequence[Worker]) -> None:
    """Make the item's assignment rows match ``workers``; removed rows are orphan-deleted."""
    desired = {w.id: w for w in workers}
    for assignment in list(item.assignments):
        if assignment.worker_id not in desired:
            item.assignments.remove(assignment)
    present = {a.worker_id for a in item.assignments}
    for worker_id, worker in desired.items():
        if worker_id not in present:
            item.assignments.append(
                ScheduleItemAssignment(id=uuid.uuid4(), worker_id=worker_id, worker=worker)
            )


def _next_status(current: ScheduleItemStatus | None, target: ScheduleStatus) -> ScheduleItemStatus:
    if current is None or current in _PLANNING_STATUSES:
        return ScheduleItemStatus.ACTIVE if target == ScheduleStatus.ACTIVE else ScheduleItemStatus.DRAFT
    return current


def _positive_quantity(quantity: float | None) -> float | None:
    if quantity is None or not math.isfinite(quantity) or quantity <= 0:
        return None
    return quantity


# ── Validation ───────────────────────────────────────────────────────────────


def validate_activation(items: Sequence[ScheduleItemInput]) -> None:
    """
    Reject activation if any item lacks an assignee or a planned start.

    Every failing item is reported at once so the caller can fix them in a
    single pass.
    """
    issues: list[dict] = []
    for position, item in enumerate(items):
        if not item.worker_ids:
            issues.append({"position": position, "title": item.title, "reason": "missing_assignees"})
        if item.planned_start is None:
            issues.append({"position": position, "title": item.title, "reason": "missing_start_date"})
    if not issues:
        return

    parts = []
    no_workers = [i["title"] for i in issues if i["reason"] == "missing_assignees"]
    no_start = [i["title"] for i in issues if i["reason"] == "missing_start_date"]
    if no_workers:
        parts.append("no assigned workers: " + ", ".join(no_workers))
    if no_start:
        parts.append("no start date: " + ", ".join(no_start))
    raise ValidationError("Cannot activate schedule. Tasks with " + "; ".join(parts), issues)


def _plan_items(engine: EstimationEngine, items: Sequence[ScheduleItemInput]) -> list[_PlannedItem]:
    """
    Estimate every item and settle its dates.

    A caller-supplied planned_end always wins. Otherwise the computed end is
    used, and only when the caller gave a planned_start.
    """
    planned: list[_PlannedItem] = []
    issues: list[dict] = []
    for position, item in enumerate(items):
        try:
            estimate = engine.estimate(
                item.template_key,
                item.quantity,
                assignee_count=len(item.worker_ids),
                planned_start=item.planned_start,
            )
        except ValidationError as exc:
            reason = exc.issues[0]["reason"] if exc.issues else "invalid_item"
            issues.append({"position": position, "title": item.title, "reason": reason, "message": exc.message})
            continue

        start = item.planned_start
        if item.planned_end is not None:
            end = item.planned_end
        elif start is not None:
            end = estimate.planned_end
        else:
            end = None

        if start is not None and end is not None and end < start:
            issues.append({"position": position, "title": item.title, "reason": "end_before_start"})
            continue
        planned.append(_PlannedItem(source=item, estimate=estimate, planned_start=start, planned_end=end))

    if issues:
        raise ValidationError("Schedule contains invalid tasks", issues)
    return planned


def _match_existing(
    existing: Sequence[ScheduleItem], items: Sequence[ScheduleItemInput]
) -> list[ScheduleItem | None]:
    """Pair each input with a stored item: by id first, then by exact title."""
    by_id = {it.id: it for it in existing}
    matched: list[ScheduleItem | None] = [None] * len(items)
    taken: set[uuid.UUID] = set()

    for idx, item in enumerate(items):
        if item.id is not None and item.id in by_id:
            matched[idx] = by_id[item.id]
            taken.add(item.id)

    for idx, item in enumerate(items):
        if matched[idx] is not None or item.id is not None:
            continue
        for candidate in existing:
            if candidate.id not in taken and candidate.title == item.title:
                matched[idx] = candidate
                taken.add(candidate.id)
                break
    return matched


async def _check_new_ids(
    db: AsyncSession, items: Sequence[ScheduleItemInput], existing: Sequence[ScheduleItem]
) -> None:
    """Supplied ids are either this schedule's live items or brand new."""
    seen: set[uuid.UUID] = set()
    for item in items:
        if item.id is None:
            continue
        if item.id in seen:
            raise ValidationError(f"Task id {item.id} appears more than once")
        seen.add(item.id)

    unknown = seen - {it.id for it in existing}
    if not unknown:
        return
    taken = (await db.execute(select(ScheduleItem.id).where(ScheduleItem.id.in_(unknown)))).scalars().all()
    if taken:
        raise ValidationError(
            "Task id(s) belong to another schedule or an archived task",
            [{"reason": "foreign_item_id", "item_id": str(i)} for i in taken],
        )


async def _retire_items(db: AsyncSession, removed: Sequence[ScheduleItem]) -> list[uuid.UUID]:
    """Hard-delete dropped items; archive those that already carry progress history."""
    if not removed:
        return []
    ids = [it.id for it in removed]
    stmt = select(ProgressReport.item_id).where(ProgressReport.item_id.in_(ids)).distinct()
    reported = set((await db.execute(stmt)).scalars().all())

    archived: list[uuid.UUID] = []
    now = utcnow()
    for item in removed:
        if item.id in reported:
            item.is_deleted = True
            item.archived_at = now
            archived.append(item.id)
        else:
            await db.delete(item)
    return archived


# ── Read ─────────────────────────────────────────────────────────────────────


async def get_schedule(db: AsyncSession, project_id: uuid.UUID) -> ScheduleResponse | None:
    """Current schedule of a project with live items in order, or None."""
    await _get_project(db, project_id)
    schedule = await _get_schedule(db, project_id)
    if schedule is None:
        return None
    items = await _load_items(db, schedule.id)
    return ScheduleResponse(
        id=schedule.id,
        project_id=schedule.project_id,
        note=schedule.note,
        status=schedule.status,
        items=[_item_to_response(it) for it in items],
        created_at=schedule.created_at,
        updated_at=schedule.updated_at,
    )


# ── Save ─────────────────────────────────────────────────────────────────────


async def save_schedule(
    db: AsyncSession,
    caller: CurrentUser,
    project_id: uuid.UUID,
    body: ScheduleSaveRequest,
) -> ScheduleSaveResponse:
    """
    Replace a project's schedule items in one atomic step, then run conflict detection.

    Activation is validated before anything is written. Items are upserted by
    id, then by exact title; dropped items are deleted or, if they have
    progress history, archived. Conflict detection runs afterwards and never
    fails the save.
    """
    if body.status == ScheduleStatus.ACTIVE:
        try:
            validate_activation(body.items)
        except ValidationError as exc:
            logger.info(
                "schedule.activation_rejected",
                project_id=str(project_id),
                issues=len(exc.issues),
            )
            raise

    project = await _get_project(db, project_id)
    workers = await _load_workers(db, (w for it in body.items for w in it.worker_ids))
    engine = await build_engine(db, (it.template_key for it in body.items))
    plans = _plan_items(engine, body.items)

    async with db.begin_nested():
        schedule = await _get_schedule(db, project_id)
        if schedule is None:
            schedule = await _create_schedule(db, caller, project_id, body.note)
        schedule.note = body.note
        schedule.status = body.status
        schedule.updated_by = caller.user_id

        existing = await _load_items(db, schedule.id)
        await _check_new_ids(db, body.items, existing)
        matched = _match_existing(existing, body.items)

        saved: list[ScheduleItem] = []
        for position, (plan, current) in enumerate(zip(plans, matched)):
            source = plan.source
            item = current
            if item is None:
                item = ScheduleItem(
                    id=source.id or uuid.uuid4(), schedule_id=schedule.id, assignments=[]
                )
                db.add(item)
            else:
                moved = (
                    item.planned_start != plan.planned_start
                    or item.planned_end != plan.planned_end
                    or set(item.worker_ids) != set(source.worker_ids)
                )
                if moved:
                    item.has_conflict = False
                    item.conflict_note = None

            item.position = position
            item.title = source.title
            item.description = source.description
            item.unit = source.unit
            item.quantity = source.quantity
            item.template_key = plan.estimate.template_key or source.template_key
            item.planned_start = plan.planned_start
            item.planned_end = plan.planned_end
            item.estimated_hours = plan.estimate.estimated_hours
            item.note = source.note
            item.status = _next_status(current.status if current else None, body.status)
            _sync_assignments(item, [workers[w] for w in source.worker_ids])
            saved.append(item)

        kept = {it.id for it in saved}
        archived = await _retire_items(db, [it for it in existing if it.id not in kept])
        await db.flush()

    logger.info(
        "schedule.saved",
        project_id=str(project_id),
        schedule_id=str(schedule.id),
        status=body.status.value,
        items=len(saved),
        archived=len(archived),
    )

    responses = [_item_to_response(it) for it in saved]
    detector = ConflictDetector(db)
    report = await detector.run([ConflictCheck.from_item(it) for it in saved], project)

    return ScheduleSaveResponse(
        schedule_id=schedule.id,
        status=schedule.status,
        items=[_annotate(r, report, detector.flag_candidates) for r in responses],
        conflicts=[_conflict_to_response(h) for h in report.hits],
        conflict_check_failures=len(report.failures),
        archived_item_ids=archived,
    )


# ── Extract from quote ───────────────────────────────────────────────────────


def _is_labour(line: QuoteLine) -> bool:
    meta = line.meta or {}
    return line.item_type == QuoteLineType.LABOUR or meta.get("is_labour") is True


async def extract_from_quote(
    db: AsyncSession,
    caller: CurrentUser,
    project_id: uuid.UUID,
    labour_only: bool = False,
) -> ScheduleResponse:
    """
    Build a DRAFT schedule with one item per quote line.

    Refuses to touch a schedule that is active or already has items.
    """
    await _get_project(db, project_id)
    schedule = await _get_schedule(db, project_id)
    if schedule is not None:
        if schedule.status == ScheduleStatus.ACTIVE or await _load_items(db, schedule.id):
            raise ConflictPolicyError(
                "A schedule already exists for this project",
                [{"schedule_id": str(schedule.id), "status": schedule.status.value}],
            )

    stmt = select(Quote).where(Quote.project_id == project_id, Quote.is_deleted.is_(False))
    quote = (await db.execute(stmt)).scalar_one_or_none()
    if quote is None:
        raise NotFoundError("No quote found for project")

    stmt = (
        select(QuoteLine)
        .where(QuoteLine.quote_id == quote.id, QuoteLine.is_deleted.is_(False))
        .order_by(QuoteLine.position, QuoteLine.created_at)
    )
    lines = list((await db.execute(stmt)).scalars().all())
    if labour_only:
        lines = [ln for ln in lines if _is_labour(ln)]

    keys = [infer_template_key(ln.unit, ln.description) for ln in lines]
    engine = await build_engine(db, keys)

    async with db.begin_nested():
        if schedule is None:
            schedule = await _create_schedule(db, caller, project_id)
        schedule.updated_by = caller.user_id

        items: list[ScheduleItem] = []
        for position, (line, key) in enumerate(zip(lines, keys)):
            meta = line.meta or {}
            quantity = _positive_quantity(line.quantity)
            estimate = engine.estimate(key if quantity is not None else None, quantity)
            expected = meta.get("expected_hours")
            hours = float(expected) if isinstance(expected, (int, float)) else estimate.estimated_hours
            item = ScheduleItem(
                id=uuid.uuid4(),
                schedule_id=schedule.id,
                position=position,
                title=line.description or meta.get("title") or "Labour task",
                description=meta.get("note") or line.description,
                unit=line.unit,
                quantity=line.quantity,
                template_key=key,
                status=ScheduleItemStatus.DRAFT,
                estimated_hours=hours,
                quote_line_id=line.id,
                assignments=[],
            )
            db.add(item)
            items.append(item)
        await db.flush()

    logger.info(
        "schedule.extracted_from_quote",
        project_id=str(project_id),
        schedule_id=str(schedule.id),
        items=len(items),
        labour_only=labour_only,
    )
    return ScheduleResponse(
        id=schedule.id,
        project_id=schedule.project_id,
        note=schedule.note,
        status=schedule.status,
        items=[_item_to_response(it) for it in items],
        created_at=schedule.created_at,
        updated_at=schedule.updated_at,
    )


# ── Single items ─────────────────────────────────────────────────────────────


async def add_item(
    db: AsyncSession,
    caller: CurrentUser,
    project_id: uuid.UUID,
    body: ScheduleItemCreate,
) -> ScheduleItemResponse:
    """Append one manually entered task. The start defaults to now."""
    project = await _get_project(db, project_id)
    workers = await _load_workers(db, body.worker_ids)
    engine = await build_engine(db, [body.template_key])
    estimate = engine.estimate(
        body.template_key,
        body.quantity,
        assignee_count=len(body.worker_ids),
        planned_start=body.planned_start,
    )
    start = estimate.planned_start
    end = body.planned_end or estimate.planned_end
    if end is not None and end < start:
        raise ValidationError(
            "Planned end is before planned start",
            [{"title": body.title, "reason": "end_before_start"}],
        )

    async with db.begin_nested():
        schedule = await _get_schedule(db, project_id)
        if schedule is None:
            schedule = await _create_schedule(db, caller, project_id)

        stmt = select(func.max(ScheduleItem.position)).where(
            ScheduleItem.schedule_id == schedule.id,
            ScheduleItem.is_deleted.is_(False),
        )
        last = (await db.execute(stmt)).scalar()

        can_activate = bool(workers)
        status = (
            ScheduleItemStatus.ACTIVE
            if schedule.status == ScheduleStatus.ACTIVE and can_activate
            else ScheduleItemStatus.DRAFT
        )
        item = ScheduleItem(
            id=uuid.uuid4(),
            schedule_id=schedule.id,
            position=0 if last is None else last + 1,
            title=body.title,
            description=body.description,
            unit=body.unit,
            quantity=body.quantity,
            template_key=estimate.template_key or body.template_key,
            planned_start=start,
            planned_end=end,
            status=status,
            estimated_hours=estimate.estimated_hours,
            note=body.note,
            assignments=[],
        )
        db.add(item)
        _sync_assignments(item, [workers[w] for w in body.worker_ids])
        await db.flush()

    logger.info("schedule.item_added", project_id=str(project_id), item_id=str(item.id))

    response = _item_to_response(item)
    detector = ConflictDetector(db)
    report = await detector.run([ConflictCheck.from_item(item)], project)
    return _annotate(response, report, detector.flag_candidates)


async def update_item_status(
    db: AsyncSession,
    caller: CurrentUser,
    item_id: uuid.UUID,
    status: ScheduleItemStatus,
) -> ScheduleItemResponse:
    """Move one item to ``status``.

    DONE stamps ``completed_at`` and sets the item to 100%. Reopening a DONE
    item clears the completion and resets ``percent_complete`` to 0; the next
    progress report sets it again.
    """
    item = await _get_item(db, item_id)
    if status == ScheduleItemStatus.ACTIVE:
        issues = []
        if not item.assignments:
            issues.append({"title": item.title, "reason": "missing_assignees"})
        if item.planned_start is None:
            issues.append({"title": item.title, "reason": "missing_start_date"})
        if issues:
            raise ValidationError(f'Task "{item.title}" cannot be activated', issues)

    if status == ScheduleItemStatus.DONE:
        item.completed_at = utcnow()
        item.percent_complete = 100
    elif item.status == ScheduleItemStatus.DONE:
        item.completed_at = None
        item.percent_complete = 0
    item.status = status
    await db.flush()

    logger.info(
        "schedule.item_status_updated",
        item_id=str(item_id),
        status=status.value,
        user_id=str(caller.user_id),
    )
    return _item_to_response(item)


# ── Worker views ─────────────────────────────────────────────────────────────


async def list_worker_tasks(
    db: AsyncSession,
    worker_id: uuid.UUID,
    as_of: datetime | None = None,
) -> list[WorkerTaskResponse]:
    """Committed, unfinished tasks of a worker that have started by ``as_of``."""
    worker = await db.get(Worker, worker_id)
    if worker is None or worker.is_deleted:
        raise NotFoundError(f"Worker {worker_id} not found")
    as_of = as_of or utcnow()

    stmt = (
        select(ScheduleItem, Project)
        .join(Schedule, Schedule.id == ScheduleItem.schedule_id)
        .join(Project, Project.id == Schedule.project_id)
        .join(ScheduleItemAssignment, ScheduleItemAssignment.item_id == ScheduleItem.id)
        .where(
            ScheduleItemAssignment.worker_id == worker_id,
            ScheduleItem.is_deleted.is_(False),
            ScheduleItem.status.in_(_OPEN_STATUSES),
            ScheduleItem.planned_start <= as_of,
        )
        .order_by(ScheduleItem.planned_start)
    )
    tasks = []
    for item, project in (await db.execute(stmt)).all():
        base = _item_to_response(item).model_dump()
        tasks.append(
            WorkerTaskResponse(
                **base,
                project_id=project.id,
                project_name=project.name,
                project_number=project.project_number,
            )
        )
    return tasks


async def check_availability(db: AsyncSession, body: AvailabilityRequest) -> AvailabilityResponse:
    """Which of the requested workers are already booked in the window (read-only)."""
    if body.end < body.start:
        raise ValidationError("end must not be before start")
    buffer = timedelta(days=body.buffer_days)
    rows = await find_overlapping(
        db,
        body.worker_ids,
        body.start - buffer,
        body.end + buffer,
        exclude_project_id=body.exclude_project_id,
        exclude_item_id=body.exclude_item_id,
    )
    wanted = set(body.worker_ids)
    details: list[BusyWorker] = []
    for item, project in rows:
        for assignment in item.assignments:
            if assignment.worker_id not in wanted:
                continue
            details.append(
                BusyWorker(
                    worker_id=assignment.worker_id,
                    worker_name=assignment.worker.display_name,
                    item_id=item.id,
                    project_id=project.id,
                    project_name=project.name,
                    project_number=project.project_number,
                    start=item.planned_start,
                    end=item.planned_end,
                )
            )
    busy = list(dict.fromkeys(d.worker_id for d in details))
    return AvailabilityResponse(busy_worker_ids=busy, details=details)


# ── Sweeps and reports ───────────────────────────────────────────────────────


async def notify_overdue_items(db: AsyncSession, now: datetime | None = None) -> OverdueSweepResponse:
    """
    Notify the responsible user once for every committed task past its planned end.

    Idempotent: notified tasks are stamped and skipped on later runs.
    """
    now = now or utcnow()
    stmt = (
        select(ScheduleItem, Project, Schedule.created_by)
        .join(Schedule, Schedule.id == ScheduleItem.schedule_id)
        .join(Project, Project.id == Schedule.project_id)
        .where(
            ScheduleItem.planned_end < now,
            ScheduleItem.status.in_(_OPEN_STATUSES),
            ScheduleItem.is_deleted.is_(False),
            ScheduleItem.overdue_notified_at.is_(None),
        )
        .order_by(ScheduleItem.planned_end)
    )
    notified: list[uuid.UUID] = []
    for item, project, created_by in (await db.execute(stmt)).all():
        recipient = project.assigned_to_id or created_by
        if recipient is not None:
            await create_notification(
                db,
                user_id=recipient,
                type=NotificationType.TASK_OVERDUE,
                title="Task overdue",
                message=(
                    f'Task "{item.title}" on project {project.project_number} is overdue '
                    f"(planned end: {item.planned_end:%Y-%m-%d})"
                ),
                link=f"/projects/{project.id}/schedule",
                project_id=project.id,
                schedule_item_id=item.id,
            )
            notified.append(item.id)
        item.overdue_notified_at = now
    await db.flush()

    logger.info("schedule.overdue_sweep", notified=len(notified))
    return OverdueSweepResponse(notified=len(notified), item_ids=notified)


async def schedule_reliability(
    db: AsyncSession,
    project_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> ReliabilityReportResponse:
    now = now or utcnow()
    stmt = (
        select(ScheduleItem)
        .join(Schedule, Schedule.id == ScheduleItem.schedule_id)
        .where(ScheduleItem.is_deleted.is_(False), Schedule.is_deleted.is_(False))
    )
    if project_id is not None:
        await _get_project(db, project_id)
        stmt = stmt.where(Schedule.project_id == project_id)

    outcomes = []
    for item in (await db.execute(stmt)).scalars().all():
        # Rows closed before completed_at existed fall back to their last update
        completed = item.completed_at
        if completed is None and item.status == ScheduleItemStatus.DONE:
            completed = item.updated_at
        outcomes.append(
            ItemOutcome(
                status=item.status,
                planned_end=item.planned_end,
                completed_at=completed,
                workers=tuple((a.worker_id, a.worker.display_name) for a in item.assignments),
            )
        )

    ranked = compute_reliability(outcomes, now)
    return ReliabilityReportResponse(
        project_id=project_id,
        generated_at=now,
        workers=[
            WorkerReliabilityResponse(
                worker_id=r.worker_id,
                worker_name=r.worker_name,
                total_assigned=r.total_assigned,
                completed_on_time=r.completed_on_time,
                completed_late=r.completed_late,
                active_overdue=r.active_overdue,
                active_on_track=r.active_on_track,
                reliability_pct=r.reliability_pct,
            )
            for r in ranked
        ],
    )

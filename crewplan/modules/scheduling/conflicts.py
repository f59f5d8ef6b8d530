"""
Cross-project conflict detection.

Runs after a schedule has been written. Each candidate item is checked in its
own SAVEPOINT so a failure while flagging or notifying rolls back only that
check; the enclosing save is never aborted by it.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

import sentry_sdk
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.core.config import settings
from crewplan.core.errors import BestEffortFailure
from crewplan.models.enums import NotificationType, ScheduleItemStatus
from crewplan.models.projects import Project
from crewplan.models.scheduling import Schedule, ScheduleItem, ScheduleItemAssignment
from crewplan.modules.notifications.service import create_notification

logger = structlog.get_logger()


def ranges_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Inclusive overlap: touching boundaries count."""
    return start <= other_end and end >= other_start


@dataclass(frozen=True)
class ConflictCheck:
    item_id: uuid.UUID
    title: str
    planned_start: datetime | None
    planned_end: datetime | None
    worker_ids: tuple[uuid.UUID, ...]

    @property
    def checkable(self) -> bool:
        return bool(self.worker_ids) and self.planned_start is not None and self.planned_end is not None

    @classmethod
    def from_item(cls, item: ScheduleItem) -> ConflictCheck:
        return cls(
            item_id=item.id,
            title=item.title,
            planned_start=item.planned_start,
            planned_end=item.planned_end,
            worker_ids=tuple(item.worker_ids),
        )


@dataclass(frozen=True)
class ConflictHit:
    item_id: uuid.UUID  # candidate item on the project being saved
    item_title: str
    other_item_id: uuid.UUID
    other_item_title: str
    other_project_id: uuid.UUID
    other_project_name: str
    other_project_number: str
    other_start: datetime | None
    other_end: datetime | None
    worker_ids: tuple[uuid.UUID, ...]
    worker_names: tuple[str, ...]
    notified_user_id: uuid.UUID | None = None


@dataclass
class ConflictReport:
    hits: list[ConflictHit] = field(default_factory=list)
    failures: list[BestEffortFailure] = field(default_factory=list)

    def for_item(self, item_id: uuid.UUID) -> list[ConflictHit]:
        return [h for h in self.hits if h.item_id == item_id]


def conflict_note(project_number: str, task_title: str) -> str:
    return f'Double-booked by {project_number} for task "{task_title}"'


async def find_overlapping(
    db: AsyncSession,
    worker_ids: Iterable[uuid.UUID],
    start: datetime,
    end: datetime,
    exclude_project_id: uuid.UUID | None = None,
    exclude_item_id: uuid.UUID | None = None,
) -> list[tuple[ScheduleItem, Project]]:
    """Items sharing any of ``worker_ids`` whose [start, end] overlaps, DONE items excluded."""
    worker_ids = list(worker_ids)
    if not worker_ids:
        return []
    assigned = select(ScheduleItemAssignment.item_id).where(
        ScheduleItemAssignment.worker_id.in_(worker_ids)
    )
    stmt = (
        select(ScheduleItem, Project)
        .join(Schedule, Schedule.id == ScheduleItem.schedule_id)
        .join(Project, Project.id == Schedule.project_id)
        .where(
            ScheduleItem.id.in_(assigned),
            ScheduleItem.is_deleted.is_(False),
            ScheduleItem.status != ScheduleItemStatus.DONE,
            ScheduleItem.planned_start <= end,
            ScheduleItem.planned_end >= start,
            Schedule.is_deleted.is_(False),
            Project.is_deleted.is_(False),
        )
        .order_by(ScheduleItem.planned_start)
    )
    if exclude_project_id is not None:
        stmt = stmt.where(Schedule.project_id != exclude_project_id)
    if exclude_item_id is not None:
        stmt = stmt.where(ScheduleItem.id != exclude_item_id)
    return [(row[0], row[1]) for row in (await db.execute(stmt)).all()]


class ConflictDetector:
    """Flags double-booked workers on other projects and notifies their owners."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        flag_candidates: bool | None = None,
        link_template: str | None = None,
    ) -> None:
        self.db = db
        self.flag_candidates = (
            settings.CONFLICT_FLAG_CANDIDATE_ITEMS if flag_candidates is None else flag_candidates
        )
        self.link_template = link_template or settings.CONFLICT_NOTIFICATION_LINK

    async def run(self, checks: Sequence[ConflictCheck], project: Project) -> ConflictReport:
        report = ConflictReport()
        for check in checks:
            if not check.checkable:
                continue
            try:
                async with self.db.begin_nested():
                    hits = await self.check_item(check, project)
            except Exception as exc:
                failure = BestEffortFailure(
                    f"Conflict check failed for task {check.title!r}: {exc}",
                    [{"item_id": str(check.item_id), "title": check.title}],
                )
                logger.warning(
                    "conflict_detection.check_failed",
                    project_id=str(project.id),
                    item_id=str(check.item_id),
                    error=str(exc),
                )
                sentry_sdk.capture_exception(exc)
                report.failures.append(failure)
                continue
            report.hits.extend(hits)

        if report.hits:
            logger.info(
                "conflict_detection.conflicts_found",
                project_id=str(project.id),
                count=len(report.hits),
            )
        return report

    async def check_item(self, check: ConflictCheck, project: Project) -> list[ConflictHit]:
        """Flag and notify for one candidate. Writes happen in the caller's transaction."""
        rows = await find_overlapping(
            self.db,
            check.worker_ids,
            check.planned_start,
            check.planned_end,
            exclude_project_id=project.id,
        )
        hits: list[ConflictHit] = []
        for other, other_project in rows:
            workers = [a.worker for a in other.assignments if a.worker_id in check.worker_ids]
            names = tuple(w.display_name for w in workers)

            other.has_conflict = True
            other.conflict_note = conflict_note(project.project_number, check.title)

            recipient = other_project.assigned_to_id
            if recipient is not None:
                await create_notification(
                    self.db,
                    user_id=recipient,
                    type=NotificationType.RESOURCE_CONFLICT,
                    title="Resource conflict",
                    message=(
                        f"Resource Conflict Alert: Your project {other_project.project_number} "
                        f"({other_project.name}) has a conflict. Worker(s) {', '.join(names)} "
                        f"are double-booked by project {project.project_number} ({project.name}) "
                        f'for task "{check.title}" around {check.planned_start:%Y-%m-%d}.'
                    ),
                    link=self.link_template.format(project_id=other_project.id),
                    project_id=other_project.id,
                    schedule_item_id=other.id,
                )

            hits.append(
                ConflictHit(
                    item_id=check.item_id,
                    item_title=check.title,
                    other_item_id=other.id,
                    other_item_title=other.title,
                    other_project_id=other_project.id,
                    other_project_name=other_project.name,
                    other_project_number=other_project.project_number,
                    other_start=other.planned_start,
                    other_end=other.planned_end,
                    worker_ids=tuple(w.id for w in workers),
                    worker_names=names,
                    notified_user_id=recipient,
                )
            )

        if hits and self.flag_candidates:
            candidate = await self.db.get(ScheduleItem, check.item_id)
            if candidate is not None:
                first = hits[0]
                candidate.has_conflict = True
                candidate.conflict_note = conflict_note(first.other_project_number, first.other_item_title)

        await self.db.flush()
        return hits

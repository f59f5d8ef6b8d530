"""Per-worker schedule reliability: how often assigned work closes by its planned end."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from crewplan.models.enums import ScheduleItemStatus


@dataclass(frozen=True)
class ItemOutcome:
    status: ScheduleItemStatus
    planned_end: datetime | None
    completed_at: datetime | None
    workers: tuple[tuple[uuid.UUID, str], ...] = field(default_factory=tuple)


@dataclass
class WorkerReliability:
    worker_id: uuid.UUID
    worker_name: str
    total_assigned: int = 0
    completed_on_time: int = 0
    completed_late: int = 0
    active_overdue: int = 0
    active_on_track: int = 0

    @property
    def reliability_pct(self) -> int:
        closed = self.completed_on_time + self.completed_late
        if closed == 0:
            return 100
        return round(self.completed_on_time / closed * 100)


def compute_reliability(outcomes: Iterable[ItemOutcome], now: datetime) -> list[WorkerReliability]:
    """
    Tally each item against every worker assigned to it.

    DONE items count as late when ``completed_at`` is after ``planned_end``;
    unfinished items past their planned end count as overdue. Ranked by the
    number of on-time completions, best first.
    """
    stats: dict[uuid.UUID, WorkerReliability] = {}
    for outcome in outcomes:
        is_done = outcome.status == ScheduleItemStatus.DONE
        was_late = (
            is_done
            and outcome.planned_end is not None
            and outcome.completed_at is not None
            and outcome.completed_at > outcome.planned_end
        )
        is_overdue = not is_done and outcome.planned_end is not None and outcome.planned_end < now

        for worker_id, name in outcome.workers:
            entry = stats.get(worker_id)
            if entry is None:
                entry = stats[worker_id] = WorkerReliability(worker_id=worker_id, worker_name=name)
            entry.total_assigned += 1
            if is_done:
                if was_late:
                    entry.completed_late += 1
                else:
                    entry.completed_on_time += 1
            elif is_overdue:
                entry.active_overdue += 1
            else:
                entry.active_on_track += 1

    return sorted(stats.values(), key=lambda s: (-s.completed_on_time, s.worker_name))

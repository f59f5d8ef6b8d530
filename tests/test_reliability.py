"""Tests for the per-worker schedule reliability report."""

import uuid

import pytest

from crewplan.core.errors import NotFoundError
from crewplan.models.enums import ScheduleItemStatus, ScheduleStatus
from crewplan.modules.progress import service as progress_service
from crewplan.modules.scheduling import service
from crewplan.modules.scheduling.reliability import ItemOutcome, compute_reliability
from crewplan.modules.scheduling.schemas import ScheduleItemInput, ScheduleSaveRequest
from tests.conftest import ALICE_ID, BOB_ID, MANAGER, PROJECT_A_ID, PROJECT_B_ID, WORKER_USER, dt

pytestmark = pytest.mark.anyio

ANN = (uuid.UUID("00000000-0000-0000-0000-0000000000c1"), "Ann")
BEN = (uuid.UUID("00000000-0000-0000-0000-0000000000c2"), "Ben")


def _done(end, completed, *workers) -> ItemOutcome:
    return ItemOutcome(
        status=ScheduleItemStatus.DONE, planned_end=end, completed_at=completed, workers=workers
    )


def _open(end, *workers) -> ItemOutcome:
    return ItemOutcome(
        status=ScheduleItemStatus.IN_PROGRESS, planned_end=end, completed_at=None, workers=workers
    )


# ── Pure computation ─────────────────────────────────────────────────────────


class TestComputeReliability:
    def test_tallies_each_outcome(self):
        outcomes = [
            _done(dt(5), dt(4), ANN),
            _done(dt(5), dt(7), ANN),
            _open(dt(3), ANN),
            _open(dt(20), ANN),
        ]
        (ann,) = compute_reliability(outcomes, now=dt(10))
        assert ann.total_assigned == 4
        assert ann.completed_on_time == 1
        assert ann.completed_late == 1
        assert ann.active_overdue == 1
        assert ann.active_on_track == 1
        assert ann.reliability_pct == 50

    def test_completion_on_planned_end_is_on_time(self):
        (ann,) = compute_reliability([_done(dt(5), dt(5), ANN)], now=dt(10))
        assert ann.completed_on_time == 1

    def test_no_closed_work_is_fully_reliable(self):
        (ann,) = compute_reliability([_open(dt(20), ANN)], now=dt(10))
        assert ann.reliability_pct == 100

    def test_shared_item_counts_for_every_worker(self):
        ranked = compute_reliability([_done(dt(5), dt(4), ANN, BEN)], now=dt(10))
        assert {r.worker_name for r in ranked} == {"Ann", "Ben"}
        assert all(r.completed_on_time == 1 for r in ranked)

    def test_ranked_by_on_time_then_name(self):
        outcomes = [
            _done(dt(5), dt(4), BEN),
            _done(dt(6), dt(4), BEN),
            _done(dt(5), dt(4), ANN),
        ]
        ranked = compute_reliability(outcomes, now=dt(10))
        assert [r.worker_name for r in ranked] == ["Ben", "Ann"]

    def test_unassigned_items_are_skipped(self):
        assert compute_reliability([_done(dt(5), dt(4))], now=dt(10)) == []


# ── Report service ───────────────────────────────────────────────────────────


class TestScheduleReliability:
    async def test_report_over_saved_schedules(self, db, seed_data):
        body = ScheduleSaveRequest(
            status=ScheduleStatus.ACTIVE,
            items=[
                ScheduleItemInput(title="Dig", worker_ids=[ALICE_ID], planned_start=dt(1), planned_end=dt(3)),
                ScheduleItemInput(title="Wall", worker_ids=[BOB_ID], planned_start=dt(1), planned_end=dt(3)),
            ],
        )
        saved = await service.save_schedule(db, MANAGER, PROJECT_A_ID, body)
        await db.commit()
        # Closed today, long after the planned end
        await progress_service.submit_progress(db, WORKER_USER, saved.items[0].id, 100)
        await db.commit()

        report = await service.schedule_reliability(db, PROJECT_A_ID, now=dt(10))
        by_name = {w.worker_name: w for w in report.workers}
        assert by_name["Alice"].completed_late == 1
        assert by_name["Alice"].reliability_pct == 0
        assert by_name["Bob"].active_overdue == 1
        assert by_name["Bob"].reliability_pct == 100
        assert report.project_id == PROJECT_A_ID

    async def test_project_filter(self, db, seed_data):
        body = ScheduleSaveRequest(
            items=[ScheduleItemInput(title="Dig", worker_ids=[ALICE_ID], planned_start=dt(1), planned_end=dt(3))],
        )
        await service.save_schedule(db, MANAGER, PROJECT_B_ID, body)
        await db.commit()
        report = await service.schedule_reliability(db, PROJECT_A_ID, now=dt(10))
        assert report.workers == []
        everything = await service.schedule_reliability(db, now=dt(10))
        assert [w.worker_name for w in everything.workers] == ["Alice"]

    async def test_unknown_project_is_not_found(self, db, seed_data):
        with pytest.raises(NotFoundError):
            await service.schedule_reliability(db, uuid.uuid4())

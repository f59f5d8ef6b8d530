"""Tests for cross-project conflict detection and the availability check."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from crewplan.models.core import Notification
from crewplan.models.enums import NotificationType, ScheduleItemStatus, ScheduleStatus
from crewplan.models.projects import Project
from crewplan.models.scheduling import ScheduleItem
from crewplan.modules.scheduling import service
from crewplan.modules.scheduling.conflicts import ConflictCheck, ConflictDetector, conflict_note, ranges_overlap
from crewplan.modules.scheduling.schemas import (
    AvailabilityRequest,
    ScheduleItemInput,
    ScheduleSaveRequest,
)
from tests.conftest import (
    ALICE_ID,
    BOB_ID,
    MANAGER,
    MANAGER_ID,
    OWNER_B_ID,
    PROJECT_A_ID,
    PROJECT_B_ID,
    dt,
)

pytestmark = pytest.mark.anyio


async def _save(db, project_id, title, start, end, worker_ids=(ALICE_ID,), status=ScheduleStatus.ACTIVE):
    body = ScheduleSaveRequest(
        status=status,
        items=[
            ScheduleItemInput(
                title=title, worker_ids=list(worker_ids), planned_start=start, planned_end=end
            )
        ],
    )
    result = await service.save_schedule(db, MANAGER, project_id, body)
    await db.commit()
    return result


async def _notifications(db, user_id) -> list[Notification]:
    stmt = select(Notification).where(
        Notification.user_id == user_id,
        Notification.type == NotificationType.RESOURCE_CONFLICT,
    )
    return list((await db.execute(stmt)).scalars().all())


async def _fresh_item(db, item_id) -> ScheduleItem:
    stmt = select(ScheduleItem).where(ScheduleItem.id == item_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one()


# ── Pure helpers ─────────────────────────────────────────────────────────────


class TestRangesOverlap:
    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ((dt(1), dt(5)), (dt(4), dt(10)), True),
            ((dt(1), dt(5)), (dt(5), dt(10)), True),
            ((dt(4), dt(10)), (dt(1), dt(5)), True),
            ((dt(1), dt(3)), (dt(4), dt(10)), False),
            ((dt(2), dt(8)), (dt(3), dt(4)), True),
        ],
    )
    def test_inclusive_overlap(self, a, b, expected):
        assert ranges_overlap(*a, *b) is expected

    def test_conflict_note_format(self):
        assert conflict_note("P-200", "Pour slab") == 'Double-booked by P-200 for task "Pour slab"'

    def test_check_needs_workers_and_dates(self):
        ok = ConflictCheck(item_id=uuid.uuid4(), title="x", planned_start=dt(1), planned_end=dt(2), worker_ids=(ALICE_ID,))
        no_end = ConflictCheck(item_id=uuid.uuid4(), title="x", planned_start=dt(1), planned_end=None, worker_ids=(ALICE_ID,))
        no_workers = ConflictCheck(item_id=uuid.uuid4(), title="x", planned_start=dt(1), planned_end=dt(2), worker_ids=())
        assert ok.checkable
        assert not no_end.checkable
        assert not no_workers.checkable


# ── Detection during save ────────────────────────────────────────────────────


class TestConflictDetection:
    async def test_overlap_flags_foreign_item_and_notifies_its_owner(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        b_item_id = existing.items[0].id

        result = await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10))

        assert len(result.conflicts) == 1
        hit = result.conflicts[0]
        assert hit.other_item_id == b_item_id
        assert hit.other_project_number == "P-200"
        assert hit.worker_names == ["Alice"]
        assert result.conflict_check_failures == 0

        # Hits are reported on the candidate even though it is not flagged
        candidate = result.items[0]
        assert [c.other_item_id for c in candidate.conflicts] == [b_item_id]
        assert candidate.has_conflict is False

        foreign = await _fresh_item(db, b_item_id)
        assert foreign.has_conflict is True
        assert foreign.conflict_note == 'Double-booked by P-100 for task "Dig trench"'

        notes = await _notifications(db, OWNER_B_ID)
        assert len(notes) == 1
        assert "P-200" in notes[0].message
        assert "P-100" in notes[0].message
        assert "Alice" in notes[0].message
        assert "2026-03-04" in notes[0].message
        assert notes[0].link == f"/projects/{PROJECT_B_ID}/schedule"
        assert notes[0].project_id == PROJECT_B_ID
        assert notes[0].schedule_item_id == b_item_id
        assert await _notifications(db, MANAGER_ID) == []

    async def test_touching_boundaries_count_as_overlap(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        result = await _save(db, PROJECT_A_ID, "Dig trench", dt(5), dt(10))
        assert len(result.conflicts) == 1

    async def test_disjoint_ranges_do_not_conflict(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(3))
        result = await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10))

        assert result.conflicts == []
        foreign = await _fresh_item(db, existing.items[0].id)
        assert foreign.has_conflict is False
        assert await _notifications(db, OWNER_B_ID) == []

    async def test_different_workers_do_not_conflict(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5), worker_ids=(BOB_ID,))
        result = await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10), worker_ids=(ALICE_ID,))
        assert result.conflicts == []

    async def test_same_project_items_are_not_conflicts(self, db, seed_data):
        body = ScheduleSaveRequest(
            status=ScheduleStatus.ACTIVE,
            items=[
                ScheduleItemInput(title="Dig", worker_ids=[ALICE_ID], planned_start=dt(1), planned_end=dt(5)),
                ScheduleItemInput(title="Wall", worker_ids=[ALICE_ID], planned_start=dt(3), planned_end=dt(8)),
            ],
        )
        result = await service.save_schedule(db, MANAGER, PROJECT_A_ID, body)
        assert result.conflicts == []

    async def test_done_items_are_ignored(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        await service.update_item_status(db, MANAGER, existing.items[0].id, ScheduleItemStatus.DONE)
        await db.commit()

        result = await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10))
        assert result.conflicts == []

    async def test_draft_saves_are_checked_too(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        result = await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10), status=ScheduleStatus.DRAFT)
        assert len(result.conflicts) == 1

    async def test_moving_an_item_clears_its_flag(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        b_item_id = existing.items[0].id
        await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10))

        body = ScheduleSaveRequest(
            status=ScheduleStatus.ACTIVE,
            items=[
                ScheduleItemInput(
                    id=b_item_id, title="Pour slab", worker_ids=[ALICE_ID],
                    planned_start=dt(20), planned_end=dt(22),
                )
            ],
        )
        result = await service.save_schedule(db, MANAGER, PROJECT_B_ID, body)
        await db.commit()
        assert result.items[0].has_conflict is False
        assert result.items[0].conflict_note is None


class TestConflictDetectorFailures:
    async def test_notification_failure_does_not_fail_the_save(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))

        failing = AsyncMock(side_effect=RuntimeError("notification store down"))
        with patch("crewplan.modules.scheduling.conflicts.create_notification", failing):
            result = await _save(db, PROJECT_A_ID, "Dig trench", dt(4), dt(10))

        assert result.conflict_check_failures == 1
        assert result.conflicts == []
        assert len(result.items) == 1

        schedule = await service.get_schedule(db, PROJECT_A_ID)
        assert [i.title for i in schedule.items] == ["Dig trench"]
        assert schedule.status == ScheduleStatus.ACTIVE

        # The failed check's writes were rolled back with its savepoint
        foreign = await _fresh_item(db, existing.items[0].id)
        assert foreign.has_conflict is False
        assert await _notifications(db, OWNER_B_ID) == []

    async def test_flag_candidates_marks_both_sides(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        saved = await _save(db, PROJECT_A_ID, "Dig trench", dt(20), dt(22))
        a_item = await _fresh_item(db, saved.items[0].id)

        # Move the candidate into the busy window and run the detector directly
        a_item.planned_start = dt(4)
        a_item.planned_end = dt(10)
        await db.flush()

        project = await db.get(Project, PROJECT_A_ID)
        detector = ConflictDetector(db, flag_candidates=True)
        report = await detector.run([ConflictCheck.from_item(a_item)], project)
        await db.commit()

        assert len(report.hits) == 1
        assert report.hits[0].notified_user_id == OWNER_B_ID
        candidate = await _fresh_item(db, a_item.id)
        assert candidate.has_conflict is True
        assert candidate.conflict_note == 'Double-booked by P-200 for task "Pour slab"'
        foreign = await _fresh_item(db, existing.items[0].id)
        assert foreign.has_conflict is True


# ── Availability ─────────────────────────────────────────────────────────────


class TestAvailability:
    async def test_reports_busy_workers(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5), worker_ids=(ALICE_ID, BOB_ID))
        result = await service.check_availability(
            db, AvailabilityRequest(worker_ids=[ALICE_ID], start=dt(4), end=dt(6))
        )
        assert result.busy_worker_ids == [ALICE_ID]
        assert result.details[0].project_number == "P-200"
        assert result.details[0].worker_name == "Alice"

    async def test_buffer_days_widen_the_window(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        body = dict(worker_ids=[ALICE_ID], start=dt(6), end=dt(8))
        assert (await service.check_availability(db, AvailabilityRequest(**body))).busy_worker_ids == []
        widened = await service.check_availability(db, AvailabilityRequest(**body, buffer_days=1))
        assert widened.busy_worker_ids == [ALICE_ID]

    async def test_excluded_project_is_ignored(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        result = await service.check_availability(
            db,
            AvailabilityRequest(worker_ids=[ALICE_ID], start=dt(2), end=dt(3), exclude_project_id=PROJECT_B_ID),
        )
        assert result.busy_worker_ids == []

    async def test_check_is_read_only(self, db, seed_data):
        existing = await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        await service.check_availability(db, AvailabilityRequest(worker_ids=[ALICE_ID], start=dt(2), end=dt(3)))
        foreign = await _fresh_item(db, existing.items[0].id)
        assert foreign.has_conflict is False
        assert await _notifications(db, OWNER_B_ID) == []

    async def test_timezone_aware_input_is_normalised(self, db, seed_data):
        await _save(db, PROJECT_B_ID, "Pour slab", dt(1), dt(5))
        result = await service.check_availability(
            db,
            AvailabilityRequest(
                worker_ids=[ALICE_ID],
                start=datetime(2026, 3, 4, 8, tzinfo=timezone.utc),
                end=datetime(2026, 3, 6, 8, tzinfo=timezone.utc),
            ),
        )
        assert result.busy_worker_ids == [ALICE_ID]

"""HTTP-level tests: auth, permission checks and the error envelope."""

import uuid
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from crewplan.core.database import get_db
from crewplan.main import app
from crewplan.models.enums import ScheduleStatus
from crewplan.models.scheduling import ProgressReport, Schedule
from crewplan.modules.scheduling import service as scheduling_service
from crewplan.modules.scheduling.schemas import ScheduleItemInput, ScheduleSaveRequest
from tests.conftest import ALICE_ID, BOB_ID, MANAGER, PROJECT_A_ID, WORKER_USER_ID

pytestmark = pytest.mark.anyio


def _item(title, **kwargs) -> dict:
    return {"title": title, **kwargs}


async def _active_schedule(client, items) -> dict:
    resp = await client.put(f"/v1/schedules/{PROJECT_A_ID}", json={"status": "active", "items": items})
    assert resp.status_code == 200, resp.text
    return resp.json()


# ── Auth ─────────────────────────────────────────────────────────────────────


class TestAuth:
    async def test_missing_token_is_401(self, db, seed_data):
        app.dependency_overrides[get_db] = lambda: db
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                resp = await ac.get(f"/v1/schedules/{PROJECT_A_ID}")
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 401
        assert resp.json()["error"] == "http_401"

    async def test_me_includes_linked_worker(self, worker_client):
        resp = await worker_client.get("/v1/auth/me")
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == str(WORKER_USER_ID)
        assert data["worker_id"] == str(ALICE_ID)
        assert "report" in data["permissions"]["progress"]

    async def test_permissions(self, viewer_client):
        resp = await viewer_client.get("/v1/auth/permissions")
        assert resp.status_code == 200
        assert resp.json()["role"] == "viewer"


# ── Schedules ────────────────────────────────────────────────────────────────


class TestScheduleEndpoints:
    async def test_viewer_cannot_save(self, viewer_client):
        resp = await viewer_client.put(f"/v1/schedules/{PROJECT_A_ID}", json={"items": []})
        assert resp.status_code == 403

    async def test_worker_cannot_activate(self, worker_client):
        resp = await worker_client.put(f"/v1/schedules/{PROJECT_A_ID}", json={"status": "active", "items": []})
        assert resp.status_code == 403

    async def test_get_before_save_is_null(self, manager_client):
        resp = await manager_client.get(f"/v1/schedules/{PROJECT_A_ID}")
        assert resp.status_code == 200
        assert resp.json() is None

    async def test_unknown_project_is_404_envelope(self, manager_client):
        resp = await manager_client.get(f"/v1/schedules/{uuid.uuid4()}")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "not_found"
        assert "request_id" in body

    async def test_draft_save_round_trip(self, manager_client):
        resp = await manager_client.put(
            f"/v1/schedules/{PROJECT_A_ID}",
            json={
                "note": "Phase 1",
                "items": [
                    _item(
                        "Dig trench", template_key="excavation", quantity=50,
                        worker_ids=[str(ALICE_ID)], planned_start="2026-03-02T08:00:00Z",
                    )
                ],
            },
        )
        assert resp.status_code == 200, resp.text
        item = resp.json()["items"][0]
        assert item["template_key"] == "EXCAVATION"
        assert item["estimated_hours"] == 80
        assert item["planned_end"].startswith("2026-03-12T08:00:00")

        resp = await manager_client.get(f"/v1/schedules/{PROJECT_A_ID}")
        assert resp.json()["note"] == "Phase 1"

    async def test_activation_rejection_is_400_with_issues(self, db, manager_client):
        resp = await manager_client.put(
            f"/v1/schedules/{PROJECT_A_ID}",
            json={"status": "active", "items": [_item("Dig"), _item("Wall", worker_ids=[str(BOB_ID)])]},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "validation_error"
        assert "Dig" in body["message"]
        assert {i["title"] for i in body["detail"]} == {"Dig", "Wall"}
        count = (await db.execute(select(func.count()).select_from(Schedule))).scalar_one()
        assert count == 0

    async def test_draft_with_unassigned_item_saves(self, manager_client):
        resp = await manager_client.put(f"/v1/schedules/{PROJECT_A_ID}", json={"items": [_item("Unplanned")]})
        assert resp.status_code == 200, resp.text
        assert resp.json()["items"][0]["worker_ids"] == []

    async def test_add_item_without_workers_is_201(self, manager_client):
        resp = await manager_client.post(f"/v1/schedules/{PROJECT_A_ID}/items", json=_item("Snagging"))
        assert resp.status_code == 201, resp.text
        assert resp.json()["worker_ids"] == []

    async def test_empty_title_is_422(self, manager_client):
        resp = await manager_client.put(f"/v1/schedules/{PROJECT_A_ID}", json={"items": [_item("")]})
        assert resp.status_code == 422

    async def test_extract_without_quote_is_404(self, manager_client):
        resp = await manager_client.post(f"/v1/schedules/{PROJECT_A_ID}/extract-from-quote")
        assert resp.status_code == 404
        assert resp.json()["message"] == "No quote found for project"

    async def test_add_item_and_update_status(self, manager_client):
        resp = await manager_client.post(
            f"/v1/schedules/{PROJECT_A_ID}/items",
            json=_item("Snagging", worker_ids=[str(BOB_ID)]),
        )
        assert resp.status_code == 201, resp.text
        item_id = resp.json()["id"]

        resp = await manager_client.patch(f"/v1/schedules/items/{item_id}/status", json={"status": "done"})
        assert resp.status_code == 200
        assert resp.json()["percent_complete"] == 100

    async def test_availability(self, manager_client):
        await _active_schedule(
            manager_client,
            [_item("Dig", worker_ids=[str(ALICE_ID)], planned_start="2026-03-01T08:00:00", planned_end="2026-03-05T08:00:00")],
        )
        resp = await manager_client.post(
            "/v1/schedules/availability",
            json={"worker_ids": [str(ALICE_ID)], "start": "2026-03-04T00:00:00", "end": "2026-03-06T00:00:00"},
        )
        assert resp.status_code == 200
        assert resp.json()["busy_worker_ids"] == [str(ALICE_ID)]

    async def test_overdue_sweep_requires_admin(self, manager_client):
        resp = await manager_client.post("/v1/schedules/overdue-sweep")
        assert resp.status_code == 403

    async def test_overdue_sweep_as_admin(self, admin_client):
        resp = await admin_client.post("/v1/schedules/overdue-sweep")
        assert resp.status_code == 200
        assert resp.json() == {"notified": 0, "item_ids": []}

    async def test_reliability_report(self, viewer_client):
        resp = await viewer_client.get("/v1/schedules/reports/reliability")
        assert resp.status_code == 200
        assert resp.json()["workers"] == []


# ── Progress ─────────────────────────────────────────────────────────────────


class TestProgressEndpoints:
    async def test_out_of_range_is_400_without_a_row(self, db, worker_client):
        resp = await worker_client.post(f"/v1/progress/items/{uuid.uuid4()}", json={"percent": 150})
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"
        count = (await db.execute(select(func.count()).select_from(ProgressReport))).scalar_one()
        assert count == 0

    async def test_worker_reports_and_sees_tasks(self, db, worker_client):
        body = ScheduleSaveRequest(
            status=ScheduleStatus.ACTIVE,
            items=[ScheduleItemInput(title="Dig", worker_ids=[ALICE_ID], planned_start=datetime(2026, 1, 5, 8))],
        )
        saved = await scheduling_service.save_schedule(db, MANAGER, PROJECT_A_ID, body)
        await db.commit()
        item_id = saved.items[0].id

        resp = await worker_client.get("/v1/progress/my-tasks")
        assert resp.status_code == 200
        assert [t["title"] for t in resp.json()] == ["Dig"]

        resp = await worker_client.post(f"/v1/progress/items/{item_id}", json={"percent": 100})
        assert resp.status_code == 201, resp.text
        assert resp.json()["status"] == "done"

        resp = await worker_client.get(f"/v1/progress/items/{item_id}")
        assert [r["percent"] for r in resp.json()] == [100]

    async def test_viewer_cannot_report(self, viewer_client):
        resp = await viewer_client.post(f"/v1/progress/items/{uuid.uuid4()}", json={"percent": 10})
        assert resp.status_code == 403


# ── Templates ────────────────────────────────────────────────────────────────


class TestTemplateEndpoints:
    async def test_list_templates(self, viewer_client):
        resp = await viewer_client.get("/v1/templates")
        assert resp.status_code == 200
        keys = {t["key"] for t in resp.json()}
        assert {"EXCAVATION", "BUILDING", "PLASTERING"} <= keys

    async def test_get_by_alias(self, viewer_client):
        resp = await viewer_client.get("/v1/templates/brickwork")
        assert resp.status_code == 200
        assert resp.json()["key"] == "BUILDING"

    async def test_estimate_preview(self, viewer_client):
        resp = await viewer_client.post(
            "/v1/templates/estimate",
            json={"template_key": "BRICKWORK", "quantity": 200, "assignee_count": 2,
                  "planned_start": "2026-03-02T08:00:00"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["estimated_hours"] == 16
        assert data["duration_days"] == 1

    async def test_estimate_preview_rejects_bad_quantity(self, viewer_client):
        resp = await viewer_client.post("/v1/templates/estimate", json={"template_key": "EXCAVATION", "quantity": -1})
        assert resp.status_code == 400

    async def test_estimate_preview_rejects_oversized_quantity(self, viewer_client):
        resp = await viewer_client.post(
            "/v1/templates/estimate", json={"template_key": "EXCAVATION", "quantity": 1e10}
        )
        assert resp.status_code == 400
        assert resp.json()["detail"][0]["reason"] == "quantity_too_large"

    async def test_upsert_requires_admin(self, manager_client):
        resp = await manager_client.put(
            "/v1/templates/ROOFING",
            json={"label": "Roofing", "hours_per_unit": 0.7, "unit_label": "sqm"},
        )
        assert resp.status_code == 403

    async def test_upsert_as_admin(self, admin_client):
        resp = await admin_client.put(
            "/v1/templates/roofing",
            json={"label": "Roofing", "hours_per_unit": 0.7, "unit_label": "sqm"},
        )
        assert resp.status_code == 200
        assert resp.json()["key"] == "ROOFING"


class TestHealthAndHeaders:
    async def test_security_and_version_headers(self, viewer_client):
        resp = await viewer_client.get("/v1/templates")
        assert resp.headers["X-API-Version"] == "v1"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

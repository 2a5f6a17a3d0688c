"""
Tests del contrato HTTP (owners, sync, compare, health).

La app real con el record store sobre SQLite y runners de jobs falsos,
inyectados via dependency_overrides.
"""
from __future__ import annotations

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from intake_bridge.api.v1.dependencies.repository_deps import get_record_store
from intake_bridge.api.v1.dependencies.use_case_deps import get_sync_job_use_cases
from intake_bridge.application.use_cases.sync_job_use_cases import (
    JOB_APPOINTMENTS,
    JOB_LEADS,
    JOB_RECONCILE,
    SyncJobUseCases,
)


@pytest.fixture
def jobs(store, test_settings) -> SyncJobUseCases:
    runners = {
        JOB_APPOINTMENTS: lambda owner: {"owner_id": owner.id, "pages": 1},
        JOB_LEADS: lambda owner: {"owner_id": owner.id, "pages": 1},
        JOB_RECONCILE: lambda owner: {"owner_id": owner.id},
    }
    return SyncJobUseCases(store, app_settings=test_settings, runners=runners)


@pytest.fixture
def app(store, jobs):
    from main import create_application
    application = create_application()
    application.dependency_overrides[get_record_store] = lambda: store
    application.dependency_overrides[get_sync_job_use_cases] = lambda: jobs
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_owner_hides_secrets_and_upserts_by_key(client) -> None:
    body = {"name": "Clinica Sur", "intakeq_key": "key-sur"}

    created = await client.post("/api/v1/owners", json=body)
    renamed = await client.post("/api/v1/owners", json={**body, "name": "Clinica Sur Centro"})

    assert created.status_code == 201
    data = created.json()
    assert data["external_key_set"] is True
    assert data["has_appointments_credentials"] is True
    assert data["intakeq_base_url"] == "https://intakeq.com/api/v1"
    assert "intakeq_key" not in data
    assert renamed.json()["id"] == data["id"]
    assert renamed.json()["name"] == "Clinica Sur Centro"


@pytest.mark.asyncio
async def test_owner_credentials_and_stats(client, store) -> None:
    owner_id = (await client.post("/api/v1/owners", json={"name": "Clinica Este", "external_key": "este"})).json()["id"]

    crm = await client.post(
        f"/api/v1/owners/{owner_id}/crm",
        json={"vtiger_url": "https://crm.test", "vtiger_username": "admin", "vtiger_access_key": "k"},
    )
    api = await client.post(f"/api/v1/owners/{owner_id}/appointments-api", json={"intakeq_key": "iq"})
    store.upsert_appointments(owner_id, [{"source_id": "a1", "contact_email": "a@x.com", "raw_data": {}}])

    assert crm.json()["has_crm_credentials"] is True
    assert api.json()["has_appointments_credentials"] is True
    listed = (await client.get("/api/v1/owners")).json()
    assert listed[0]["total_appointments"] == 1
    assert listed[0]["unmatched_appointments"] == 1


@pytest.mark.asyncio
async def test_paged_appointments(client, store, owner) -> None:
    store.upsert_appointments(owner.id, [
        {"source_id": f"a{n}", "contact_email": "a@x.com", "raw_data": {}} for n in range(3)
    ])

    response = await client.get(f"/api/v1/owners/{owner.id}/appointments", params={"page": 2, "limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert (data["page"], data["limit"], data["total"]) == (2, 2, 3)
    assert [item["source_id"] for item in data["items"]] == ["a2"]


@pytest.mark.asyncio
async def test_listing_validates_limit_and_owner(client, owner) -> None:
    too_big = await client.get(f"/api/v1/owners/{owner.id}/leads", params={"limit": 5000})
    missing = await client.get("/api/v1/owners/999/leads")

    assert too_big.status_code == 422
    assert missing.status_code == 404
    assert missing.json()["error"] == "ENTITY_NOT_FOUND"


@pytest.mark.asyncio
async def test_start_sync_and_poll_job(client, owner) -> None:
    response = await client.post("/api/v1/sync/appointments", json={"owner_id": owner.id})

    assert response.status_code == 202
    job_id = response.json()["job_id"]

    for _ in range(200):
        status = (await client.get(f"/api/v1/sync/jobs/{job_id}")).json()
        if status["status"] != "running":
            break
        await asyncio.sleep(0.01)

    assert status["status"] == "completed"
    assert status["result"] == {"owner_id": owner.id, "pages": 1}


@pytest.mark.asyncio
async def test_sync_errors_are_mapped(client, store) -> None:
    bare = store.upsert_owner({"name": "Sin credenciales"})

    no_creds = await client.post("/api/v1/sync/leads", json={"owner_id": bare.id})
    invalid_body = await client.post("/api/v1/sync/leads", json={"owner_id": 0})
    unknown_job = await client.get("/api/v1/sync/jobs/unknown")

    assert no_creds.status_code == 400
    assert no_creds.json()["error"] == "VALIDATION_ERROR"
    assert invalid_body.status_code == 422
    assert unknown_job.status_code == 404


@pytest.mark.asyncio
async def test_cursor_endpoints(client, owner) -> None:
    cursors = await client.get(f"/api/v1/sync/{owner.id}/cursors")
    reset = await client.delete(f"/api/v1/sync/{owner.id}/cursors/leads")
    bad = await client.delete(f"/api/v1/sync/{owner.id}/cursors/contacts")

    assert cursors.status_code == 200
    assert {c["source"] for c in cursors.json()["cursors"]} == {"appointments", "leads"}
    assert reset.status_code == 200
    assert reset.json()["position_key"] == "lastOffset"
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_compare_read_only(client, store, owner) -> None:
    store.upsert_appointments(owner.id, [
        {"source_id": "a1", "contact_email": "a@x.com", "status": "Confirmed", "raw_data": {}},
        {"source_id": "a2", "contact_email": "a@x.com", "status": "Cancelled", "raw_data": {}},
    ])
    store.insert_leads_skip_duplicates(owner.id, [{"source_id": "10x1", "email": "a@x.com", "raw_data": {}}])

    response = await client.get(f"/api/v1/compare/{owner.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["write_back"] is False
    assert data["summary"]["matched_appointments"] == 2
    assert data["summary"]["confirmed"] == 1
    assert data["summary"]["cancelled"] == 1
    assert data["matched_details"][0]["appointments"][0]["source_id"] == "a1"


@pytest.mark.asyncio
async def test_compare_write_back_starts_job(client, owner) -> None:
    response = await client.post("/api/v1/compare/sync", json={"owner_id": owner.id})

    assert response.status_code == 202
    assert response.json()["kind"] == JOB_RECONCILE


@pytest.mark.asyncio
async def test_lifespan_runs_startup_and_shutdown(app, tmp_path, monkeypatch) -> None:
    from intake_bridge.core import events

    calls = []
    monkeypatch.setattr(events, "init_db", lambda: calls.append("init"))
    monkeypatch.setattr(events, "close_db", lambda: calls.append("close"))
    monkeypatch.setattr(events.settings, "LOG_FILE", str(tmp_path / "logs" / "app.log"))
    monkeypatch.setattr(events.settings, "DATA_DIR", str(tmp_path / "data"))

    async with app.router.lifespan_context(app):
        assert calls == ["init"]
        assert (tmp_path / "data").is_dir()

    assert calls == ["init", "close"]

"""
Tests del motor de sync de leads (paginación por offset contra el CRM simulado).
"""
import json
import time

import pytest

from intake_bridge.infrastructure.external.sync_common.cursor_store import LEADS_CURSOR, FileCursorStore
from intake_bridge.infrastructure.external.sync_common.types import StopReason
from intake_bridge.infrastructure.external.vtiger.lead_sync import build_lead_sync_engine
from intake_bridge.infrastructure.external.vtiger.session_manager import SESSION_CACHE_FILENAME
from intake_bridge.infrastructure.external.vtiger.vtiger_client import build_leads_query
from intake_bridge.shared.exceptions.domain import ValidationException
from intake_bridge.shared.exceptions.sync import RateLimitError


def _lead(n: int) -> dict:
    return {
        "id": f"10x{n}",
        "lead_no": f"LEA{n}",
        "firstname": f"Nombre{n}",
        "lastname": f"Apellido{n}",
        "email": f"lead{n}@x.com",
        "createdtime": "2024-01-02 10:00:00",
        "cf_941": "Pending",
        "assigned_user_id": "19x1",
    }


@pytest.fixture
def crm(fake_crm_cls):
    return fake_crm_cls([_lead(n) for n in range(1, 8)])


def _engine(store, settings, crm, sleep):
    return build_lead_sync_engine(store, app_settings=settings, http_session=crm.session, sleep=sleep)


def _cursor_payload(settings, owner) -> dict:
    path = settings.data_root / "owners" / str(owner.id) / "vtigerleads.json"
    return json.loads(path.read_text(encoding="utf-8"))


def test_build_leads_query() -> None:
    assert build_leads_query(100, 50) == "SELECT * FROM Leads LIMIT 100,50;"


def test_pages_by_offset_until_short_batch(store, owner, test_settings, crm, fake_sleep) -> None:
    result = _engine(store, test_settings, crm, fake_sleep).run(owner)

    assert crm.queried_offsets == [0, 2, 4, 6]
    assert result.stop_reason is StopReason.END_OF_DATA
    assert result.last_offset == 7
    assert result.inserted_rows == 7
    assert store.count_leads(owner.id) == 7
    assert _cursor_payload(test_settings, owner)["lastOffset"] == 7
    assert crm.logins == 1


def test_full_last_batch_ends_on_empty_query(store, owner, test_settings, fake_crm_cls, fake_sleep) -> None:
    crm = fake_crm_cls([_lead(n) for n in range(1, 7)])

    result = _engine(store, test_settings, crm, fake_sleep).run(owner)

    assert crm.queried_offsets == [0, 2, 4, 6]
    assert result.requests == 4
    assert result.last_offset == 6
    assert result.stop_reason is StopReason.END_OF_DATA


def test_maps_standard_and_custom_fields(store, owner, test_settings, crm, fake_sleep) -> None:
    _engine(store, test_settings, crm, fake_sleep).run(owner)

    lead = store.list_leads(owner.id)[0]
    assert lead.source_id == "10x1"
    assert lead.first_name == "Nombre1"
    assert lead.email == "lead1@x.com"
    assert lead.stage == "Pending"
    assert lead.assigned_user_id == "19x1"
    assert lead.raw_data["lead_no"] == "LEA1"


def test_refetch_skips_existing_leads(store, owner, test_settings, crm, fake_sleep) -> None:
    engine = _engine(store, test_settings, crm, fake_sleep)
    engine.run(owner)

    FileCursorStore(test_settings.data_root, LEADS_CURSOR).reset(owner.storage_key)
    second = engine.run(owner)

    assert second.fetched_records == 7
    assert second.inserted_rows == 0
    assert store.count_leads(owner.id) == 7


def test_rate_limit_on_page_three_keeps_cursor_at_page_two(
    store, owner, test_settings, crm, fake_response_cls, fake_sleep, sleeps
) -> None:
    crm.query_script[4] = [fake_response_cls(429, "Too Many Requests") for _ in range(6)]

    with pytest.raises(RateLimitError):
        _engine(store, test_settings, crm, fake_sleep).run(owner)

    # Reintenta la página 3 (offset 4), nunca avanza a la 4
    assert crm.queried_offsets == [0, 2, 4, 4, 4, 4, 4, 4]
    assert sleeps == [14, 28, 56, 112, 224]
    assert _cursor_payload(test_settings, owner)["lastOffset"] == 4
    assert store.count_leads(owner.id) == 4

    crm.queried_offsets.clear()
    resumed = _engine(store, test_settings, crm, fake_sleep).run(owner)
    assert resumed.start_offset == 4
    assert crm.queried_offsets[0] == 4
    assert store.count_leads(owner.id) == 7


def test_server_errors_back_off_linearly(store, owner, test_settings, crm, fake_response_cls, fake_sleep, sleeps) -> None:
    crm.query_script[2] = [fake_response_cls(500, "boom"), fake_response_cls(502, "bad gateway")]

    result = _engine(store, test_settings, crm, fake_sleep).run(owner)

    assert sleeps == [7, 14]
    assert result.stored_records == 7


def test_stale_cached_session_is_refreshed_once(store, owner, test_settings, crm, fake_sleep) -> None:
    cache = test_settings.data_root / "owners" / str(owner.id) / SESSION_CACHE_FILENAME
    cache.parent.mkdir(parents=True)
    cache.write_text(json.dumps({"sessionName": "stale", "timestamp": time.time()}), encoding="utf-8")

    result = _engine(store, test_settings, crm, fake_sleep).run(owner)

    assert crm.logins == 1
    assert result.stored_records == 7
    assert json.loads(cache.read_text(encoding="utf-8"))["sessionName"] == "session-1"


def test_request_cap_stops_and_resumes(store, owner, test_settings, crm, fake_sleep) -> None:
    capped = test_settings.model_copy(update={"FETCH_MAX_REQUESTS_PER_RUN": 2})

    first = _engine(store, capped, crm, fake_sleep).run(owner)
    assert first.stop_reason is StopReason.REQUEST_CAP
    assert first.last_offset == 4

    second = _engine(store, test_settings, crm, fake_sleep).run(owner)
    assert second.start_offset == 4
    assert second.last_offset == 7
    assert store.count_leads(owner.id) == 7


def test_owner_without_crm_credentials_is_rejected(store, test_settings, crm, fake_sleep) -> None:
    bare = store.upsert_owner({"name": "Sin CRM", "intakeq_key": "k", "intakeq_base_url": "https://x"})

    with pytest.raises(ValidationException):
        _engine(store, test_settings, crm, fake_sleep).run(bare)

    assert crm.session.calls == []

"""
Tests de la reconciliación citas <-> leads y del write-back al CRM.
"""
from unittest.mock import patch

import pytest
import requests

from intake_bridge.application.services.reconciliation_service import (
    ReconciliationService,
    build_lead_summary_html,
    build_reconciliation_service,
)
from intake_bridge.shared.exceptions.domain import ValidationException
from intake_bridge.shared.exceptions.sync import PersistenceError


def _appt_row(source_id, email, status="Pending", formatted=None, start_date=None) -> dict:
    return {
        "source_id": source_id,
        "contact_name": f"Paciente {source_id}",
        "contact_email": email,
        "status": status,
        "start_date": start_date,
        "start_date_local_formatted": formatted,
        "raw_data": {"Id": source_id},
    }


def _lead_row(source_id, email, first_name="Ana", **extra) -> dict:
    row = {
        "source_id": source_id,
        "lead_no": f"LEA-{source_id}",
        "first_name": first_name,
        "last_name": "Perez",
        "email": email,
        "mobile": "555-0100",
        "company": None,
        "assigned_user_id": "19x1",
        "stage": None,
        "processed_flag": None,
        "matched_count": None,
        "summary_html": None,
        "raw_data": {"id": source_id},
    }
    row.update(extra)
    return row


@pytest.fixture
def crm(fake_crm_cls):
    return fake_crm_cls()


@pytest.fixture
def service(store, test_settings, crm):
    return build_reconciliation_service(store, test_settings, http_session=crm.session)


def _seed_scenario(store, owner) -> None:
    store.upsert_appointments(owner.id, [
        _appt_row("a1", "a@x.com", "Confirmed"),
        _appt_row("a2", "a@x.com", "Cancelled"),
    ])
    store.insert_leads_skip_duplicates(owner.id, [_lead_row("10x1", "a@x.com")])


# =========================================================================
# Solo lectura
# =========================================================================

def test_two_appointments_one_lead_scenario(store, owner, service, crm) -> None:
    _seed_scenario(store, owner)

    result = service.reconcile(owner)

    s = result.summary
    assert (s.matched_appointments, s.confirmed, s.cancelled, s.unmatched_appointments) == (2, 1, 1, 0)
    assert s.matched_leads == 1
    assert result.matched_leads[0].appointment_count == 2
    assert crm.session.calls == []


def test_first_matching_lead_takes_each_appointment(store, owner, service) -> None:
    store.upsert_appointments(owner.id, [
        _appt_row("a1", "a@x.com", "Confirmed"),
        _appt_row("a2", " A@X.com ", "Attended"),
        _appt_row("a3", "a@x.com", "No-Show"),
        _appt_row("a4", "c@x.com", "Confirmed"),
        _appt_row("a5", None, "Confirmed"),
    ])
    store.insert_leads_skip_duplicates(owner.id, [
        _lead_row("10x1", "a@x.com"),
        _lead_row("10x2", "A@x.COM"),
        _lead_row("10x3", None),
    ])

    result = service.reconcile(owner)

    s = result.summary
    assert [m.source_id for m in result.matched_leads] == ["10x1"]
    assert s.matched_appointments == 3
    assert s.unmatched_appointments == 2
    assert s.matched_appointments + s.unmatched_appointments == s.total_appointments
    assert (s.confirmed, s.cancelled) == (2, 1)


def test_rerun_is_deterministic(store, owner, service) -> None:
    _seed_scenario(store, owner)

    first = service.reconcile(owner)
    second = service.reconcile(owner)

    assert first.summary == second.summary
    assert [m.lead_id for m in first.matched_leads] == [m.lead_id for m in second.matched_leads]


def test_details_include_display_start_date(store, owner, service) -> None:
    store.upsert_appointments(owner.id, [
        _appt_row("a1", "a@x.com", "Confirmed", formatted="Tuesday, November 14, 2023 at 10:00 PM"),
        _appt_row("a2", "a@x.com", "Confirmed", start_date=1_700_000_000_000),
    ])
    store.insert_leads_skip_duplicates(owner.id, [_lead_row("10x1", "a@x.com")])

    detail = service.reconcile(owner).matched_details[0]

    assert detail.first_name == "Ana"
    assert [a.start_date for a in detail.appointments] == ["Tuesday, November 14, 2023", "11/14/2023"]
    assert detail.appointments[0].normalized_status == "confirmed"


# =========================================================================
# Write-back
# =========================================================================

def test_write_back_updates_crm_and_local_store(store, owner, service, crm, test_settings) -> None:
    _seed_scenario(store, owner)

    result = service.reconcile(owner, write_back=True)

    assert result.matched_leads[0].crm_updated is True
    assert result.matched_leads[0].crm_error is None
    assert len(crm.updates) == 1
    element = crm.updates[0]
    lead = store.list_leads(owner.id)[0]
    assert element["id"] == "10x1"
    assert element["firstname"] == "Ana"
    assert element["assigned_user_id"] == "19x1"
    assert element[test_settings.VTIGER_STAGE_FIELD] == "Pending"
    assert element[test_settings.VTIGER_PROCESSED_FIELD] == "yes"
    assert element[test_settings.VTIGER_MATCH_COUNT_FIELD] == "2"
    assert element[test_settings.VTIGER_SUMMARY_FIELD] == build_lead_summary_html(lead)
    assert (lead.processed_flag, lead.matched_count) == ("yes", "2")
    assert lead.summary_html == element[test_settings.VTIGER_SUMMARY_FIELD]


def test_second_write_back_makes_no_crm_calls(store, owner, service, crm) -> None:
    _seed_scenario(store, owner)
    service.reconcile(owner, write_back=True)
    calls_after_first = len(crm.session.calls)

    result = service.reconcile(owner, write_back=True)

    assert len(crm.session.calls) == calls_after_first
    assert crm.update_calls == 1
    assert result.matched_leads[0].crm_updated is True


def test_changed_count_triggers_new_update(store, owner, service, crm) -> None:
    _seed_scenario(store, owner)
    service.reconcile(owner, write_back=True)

    store.upsert_appointments(owner.id, [_appt_row("a3", "a@x.com", "Confirmed")])
    service.reconcile(owner, write_back=True)

    assert [u["cf_945"] for u in crm.updates] == ["2", "3"]


def test_rejected_session_is_reacquired_once(store, owner, service, crm, fake_response_cls) -> None:
    _seed_scenario(store, owner)
    crm.update_script = [
        fake_response_cls(200, {"success": False, "error": {"code": "INVALID_SESSIONID", "message": "Invalid session"}}),
    ]

    result = service.reconcile(owner, write_back=True)

    assert result.matched_leads[0].crm_updated is True
    assert crm.logins == 2
    assert crm.update_calls == 2


def test_second_auth_failure_is_recorded_per_lead(store, owner, service, crm, fake_response_cls) -> None:
    invalid = {"success": False, "error": {"code": "INVALID_SESSIONID", "message": "Invalid session"}}
    _seed_scenario(store, owner)
    crm.update_script = [fake_response_cls(200, invalid), fake_response_cls(200, invalid)]

    result = service.reconcile(owner, write_back=True)

    match = result.matched_leads[0]
    assert match.crm_updated is False
    assert "10x1" in match.crm_error
    assert crm.update_calls == 2


def test_crm_failure_does_not_abort_other_leads(store, owner, service, crm, fake_response_cls) -> None:
    store.upsert_appointments(owner.id, [
        _appt_row("a1", "a@x.com", "Confirmed"),
        _appt_row("a2", "b@x.com", "Cancelled"),
    ])
    store.insert_leads_skip_duplicates(owner.id, [
        _lead_row("10x1", "a@x.com"),
        _lead_row("10x2", "b@x.com", first_name="Bea"),
    ])
    crm.update_script = [fake_response_cls(500, "Internal Server Error")]

    result = service.reconcile(owner, write_back=True)

    failed, ok = result.matched_leads
    assert failed.crm_updated is False and failed.crm_error
    assert ok.crm_updated is True and ok.crm_error is None
    assert [u["id"] for u in crm.updates] == ["10x2"]
    # El store local se actualiza aunque el CRM haya fallado
    assert [lead.processed_flag for lead in store.list_leads(owner.id)] == ["yes", "yes"]


def test_write_back_requires_crm_credentials(store, service) -> None:
    bare = store.upsert_owner({"name": "Sin CRM"})

    with pytest.raises(ValidationException):
        service.reconcile(bare, write_back=True)

    assert service.reconcile(bare).summary.total_appointments == 0


def test_read_only_service_needs_no_client(store, owner) -> None:
    _seed_scenario(store, owner)

    result = ReconciliationService(store).reconcile(owner)

    assert result.write_back is False
    assert result.summary.matched_leads == 1


def test_malformed_crm_url_is_recorded_per_lead(store, owner, test_settings) -> None:
    owner = store.update_owner(owner.id, {"vtiger_url": "crm.test/webservice.php"})
    store.upsert_appointments(owner.id, [
        _appt_row("a1", "a@x.com", "Confirmed"),
        _appt_row("a2", "b@x.com", "Cancelled"),
    ])
    store.insert_leads_skip_duplicates(owner.id, [
        _lead_row("10x1", "a@x.com"),
        _lead_row("10x2", "b@x.com", first_name="Bea"),
    ])
    service = build_reconciliation_service(store, test_settings, http_session=requests.Session())

    result = service.reconcile(owner, write_back=True)

    assert [m.crm_updated for m in result.matched_leads] == [False, False]
    assert all(m.source_id in m.crm_error for m in result.matched_leads)
    assert [lead.processed_flag for lead in store.list_leads(owner.id)] == ["yes", "yes"]


def test_local_store_failure_does_not_abort_other_leads(store, owner, service, crm) -> None:
    store.upsert_appointments(owner.id, [
        _appt_row("a1", "a@x.com", "Confirmed"),
        _appt_row("a2", "b@x.com", "Cancelled"),
    ])
    store.insert_leads_skip_duplicates(owner.id, [
        _lead_row("10x1", "a@x.com"),
        _lead_row("10x2", "b@x.com", first_name="Bea"),
    ])

    with patch.object(store, "update_lead_crm_fields", side_effect=[PersistenceError("db caída"), None]) as update:
        result = service.reconcile(owner, write_back=True)

    failed, ok = result.matched_leads
    assert failed.store_error == "db caída"
    assert failed.crm_updated is True
    assert ok.store_error is None and ok.crm_updated is True
    assert update.call_count == 2
    assert [u["id"] for u in crm.updates] == ["10x1", "10x2"]

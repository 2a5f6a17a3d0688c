"""
Tests de funciones puras de la reconciliación: resumen HTML, estados y fechas.
"""
from dataclasses import replace
from itertools import product

import pytest
from pydantic import ValidationError

from intake_bridge.application.services.reconciliation_service import (
    EMPTY_SUMMARY_HTML,
    build_lead_summary_html,
    classify_status,
    format_appointment_start_date,
    normalize_email,
)
from intake_bridge.core.config import Settings
from intake_bridge.domain.entities.records import AppointmentRecord, LeadRecord


def _lead(**values) -> LeadRecord:
    return LeadRecord(id=1, owner_id=1, source_id="10x1", **values)


@pytest.mark.parametrize("status", ["Confirmed", "confirmed ", "Attended", "confirm", "Confirmed by client"])
def test_confirmed_statuses(status) -> None:
    assert classify_status(status) == "confirmed"


@pytest.mark.parametrize("status", ["Cancelled", "No-Show", "Missed", "no show", "Canceled by practitioner"])
def test_cancelled_statuses(status) -> None:
    assert classify_status(status) == "cancelled"


@pytest.mark.parametrize("status", ["Pending", "", None, "Rescheduled"])
def test_neutral_statuses(status) -> None:
    assert classify_status(status) is None


def test_normalize_email() -> None:
    assert normalize_email("  Ana@Example.COM ") == "ana@example.com"
    assert normalize_email(None) == ""


def test_summary_lists_populated_fields_escaped() -> None:
    html = build_lead_summary_html(_lead(
        lead_no="LEA1",
        first_name="<b>Ana</b>",
        last_name="O'Brien",
        email="ana@x.com",
        phone="555-1",
        company="ACME & Co",
    ))

    assert "<strong>Lead No:</strong> LEA1" in html
    assert "&lt;b&gt;Ana&lt;/b&gt; O&#x27;Brien" in html
    assert "ACME &amp; Co" in html
    assert "<b>Ana</b>" not in html


def test_mobile_takes_precedence_over_phone() -> None:
    html = build_lead_summary_html(_lead(phone="111", mobile="222"))

    assert "<strong>Phone:</strong> 222" in html
    assert "111" not in html


def test_empty_lead_has_placeholder() -> None:
    assert build_lead_summary_html(_lead()) == EMPTY_SUMMARY_HTML
    assert build_lead_summary_html(_lead(first_name="  ", email="")) == EMPTY_SUMMARY_HTML


def test_company_is_dropped_before_truncating() -> None:
    lead = _lead(lead_no="LEA1", first_name="Ana", email="ana@x.com", company="Empresa " * 10)
    without_company = build_lead_summary_html(replace(lead, company=None), max_bytes=10_000)

    html = build_lead_summary_html(lead, max_bytes=len(without_company.encode("utf-8")))

    assert html == without_company


def test_truncation_is_utf8_safe() -> None:
    html = build_lead_summary_html(_lead(first_name="ñandú" * 40), max_bytes=61)

    encoded = html.encode("utf-8")
    assert len(encoded) <= 61
    assert html.endswith("...")
    encoded.decode("utf-8")


def test_summary_never_exceeds_ceiling() -> None:
    long = "x" * 400
    fields = ["lead_no", "first_name", "last_name", "email", "phone", "company"]
    for populated in product([None, "v", long], repeat=len(fields)):
        lead = _lead(**dict(zip(fields, populated)))
        for ceiling in (0, 2, 3, 30, 60, 200, 900):
            assert len(build_lead_summary_html(lead, max_bytes=ceiling).encode("utf-8")) <= ceiling


@pytest.mark.parametrize("ceiling", [0, 1, 2, 3, 30, 45])
def test_placeholder_respects_small_ceilings(ceiling) -> None:
    html = build_lead_summary_html(_lead(), max_bytes=ceiling)

    expected = EMPTY_SUMMARY_HTML[:ceiling - 3] + "..." if ceiling >= 3 else "." * ceiling
    assert html == expected
    assert len(html.encode("utf-8")) <= ceiling


def test_summary_max_bytes_has_lower_bound() -> None:
    with pytest.raises(ValidationError):
        Settings(SUMMARY_MAX_BYTES=30)

    assert Settings(SUMMARY_MAX_BYTES=64).SUMMARY_MAX_BYTES == 64


def test_start_date_fallback_chain() -> None:
    base = AppointmentRecord(id=1, owner_id=1, source_id="a1")

    assert format_appointment_start_date(replace(base, start_date_local_formatted="Monday, May 6, 2024 at 9:00 AM")) == "Monday, May 6, 2024"
    assert format_appointment_start_date(replace(base, start_date_local="2024-05-06T09:00:00")) == "2024-05-06"
    assert format_appointment_start_date(replace(base, start_date_iso="2024-05-06T14:00:00Z")) == "2024-05-06"
    assert format_appointment_start_date(replace(base, start_date=1_714_986_000_000)) == "5/6/2024"
    assert format_appointment_start_date(base) is None

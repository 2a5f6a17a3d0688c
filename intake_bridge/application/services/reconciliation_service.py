"""
Reconciliación citas <-> leads por email.

Une las citas y los leads de un owner por email normalizado, clasifica el
estado de cada cita, arma un resumen HTML acotado por lead y, en modo
write-back, escribe en el CRM los campos procesado / conteo / resumen.

Reglas:
- Cada cita se atribuye al primer lead (orden por id) que la reclama.
- El modo solo-lectura no hace I/O contra el CRM.
- En write-back la sesión del CRM se obtiene de forma perezosa: una segunda
  corrida sin cambios no hace ninguna llamada al CRM.
- Un fallo del CRM queda registrado en el lead y la corrida continúa; el
  record store local se actualiza igual cuando hacía falta.
"""
from __future__ import annotations

import html
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from loguru import logger

from intake_bridge.core.config import Settings
from intake_bridge.domain.entities.records import AppointmentRecord, LeadRecord, Owner
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.infrastructure.external.vtiger.vtiger_client import VtigerClient, build_vtiger_client
from intake_bridge.shared.exceptions.domain import ValidationException
from intake_bridge.shared.exceptions.sync import PersistenceError, ReconciliationWriteError, SyncException

DEFAULT_STAGE = "Pending"
PROCESSED_YES = "yes"
EMPTY_SUMMARY_HTML = "<div><em>Lead details not available</em></div>"
TRUNCATION_MARKER = "..."


# ---------------------------------------------------------------------------
# Funciones puras
# ---------------------------------------------------------------------------

def normalize_email(email: Optional[str]) -> str:
    return str(email or "").strip().lower()


def normalize_status(status: Optional[str]) -> str:
    return str(status or "").strip().lower()


def is_confirmed_status(status: Optional[str]) -> bool:
    n = normalize_status(status)
    return n == "confirm" or n.startswith("confirmed") or n == "attended"


def is_cancelled_status(status: Optional[str]) -> bool:
    n = normalize_status(status)
    return any(token in n for token in ("cancel", "no-show", "no show", "no_show", "miss"))


def classify_status(status: Optional[str]) -> Optional[str]:
    """'confirmed', 'cancelled' o None. Confirmado tiene prioridad."""
    if is_confirmed_status(status):
        return "confirmed"
    if is_cancelled_status(status):
        return "cancelled"
    return None


def _first_non_empty(*values: Any) -> str:
    for value in values:
        s = str(value if value is not None else "").strip()
        if s:
            return s
    return ""


def _truncate_utf8(text: str, max_bytes: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    marker = TRUNCATION_MARKER[:max(0, max_bytes)]
    limit = max(0, max_bytes - len(marker))
    head = encoded[:limit].decode("utf-8", errors="ignore")
    return head + marker


def build_lead_summary_html(lead: LeadRecord, max_bytes: int = 900) -> str:
    """
    Resumen HTML corto del lead (nro, nombre, email, teléfono, empresa).

    Nunca supera `max_bytes` en UTF-8: primero se descarta la empresa y
    luego se trunca con '...'.
    """
    name = " ".join(
        part for part in (
            str(p or "").strip() for p in (lead.salutation, lead.first_name, lead.last_name)
        ) if part
    )
    values = [
        ("Lead No", _first_non_empty(lead.lead_no)),
        ("Name", name),
        ("Email", _first_non_empty(lead.email)),
        ("Phone", _first_non_empty(lead.mobile, lead.phone)),
        ("Company", _first_non_empty(lead.company)),
    ]
    rows = [
        (label, f"<div><strong>{label}:</strong> {html.escape(value)}</div>")
        for label, value in values
        if value
    ]
    if not rows:
        return _truncate_utf8(EMPTY_SUMMARY_HTML, max_bytes)

    summary = "<div>" + "".join(r for _, r in rows) + "</div>"
    if len(summary.encode("utf-8")) > max_bytes:
        without_company = [r for label, r in rows if label != "Company"]
        if without_company:
            summary = "<div>" + "".join(without_company) + "</div>"
    return _truncate_utf8(summary, max_bytes)


def _date_only(value: str) -> Optional[str]:
    s = value.strip()
    if not s:
        return None
    at_idx = s.lower().find(" at ")
    if at_idx > 0:
        return s[:at_idx].strip()
    if len(s) >= 10 and s[4] == "-" and s[7] == "-" and s[:4].isdigit():
        return s[:10]
    return s


def format_appointment_start_date(appt: AppointmentRecord) -> Optional[str]:
    """
    Fecha de inicio para mostrar: local formateada -> local -> ISO -> epoch ms.
    """
    preferred = _first_non_empty(appt.start_date_local_formatted, appt.start_date_local, appt.start_date_iso)
    if preferred:
        return _date_only(preferred)

    if appt.start_date is None:
        return None
    try:
        dt = datetime.fromtimestamp(int(appt.start_date) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    return f"{dt.month}/{dt.day}/{dt.year}"


# ---------------------------------------------------------------------------
# Resultado
# ---------------------------------------------------------------------------

@dataclass
class ReconciliationSummary:
    total_appointments: int = 0
    total_leads: int = 0
    matched_leads: int = 0
    matched_appointments: int = 0
    unmatched_appointments: int = 0
    confirmed: int = 0
    cancelled: int = 0


@dataclass
class LeadMatch:
    lead_id: int
    source_id: str
    email: Optional[str]
    appointment_count: int
    confirmed: int
    cancelled: int
    crm_updated: bool = False
    crm_error: Optional[str] = None
    store_error: Optional[str] = None


@dataclass
class MatchedAppointment:
    id: int
    source_id: str
    contact_name: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    status: Optional[str]
    normalized_status: str
    start_date: Optional[str]
    start_date_local: Optional[str]
    start_date_local_formatted: Optional[str]
    end_date_local: Optional[str]
    duration: Optional[int]
    service_name: Optional[str]
    practitioner_name: Optional[str]
    practitioner_email: Optional[str]
    location_name: Optional[str]
    place_of_service: Optional[str]
    invoice_id: Optional[str]
    invoice_number: Optional[str]
    price: Optional[float]
    full_cancellation_reason: Optional[str]
    cancellation_reason_note: Optional[str]

    @classmethod
    def from_record(cls, appt: AppointmentRecord) -> "MatchedAppointment":
        return cls(
            id=appt.id,
            source_id=appt.source_id,
            contact_name=appt.contact_name,
            contact_email=appt.contact_email,
            contact_phone=appt.contact_phone,
            status=appt.status,
            normalized_status=normalize_status(appt.status),
            start_date=format_appointment_start_date(appt),
            start_date_local=appt.start_date_local,
            start_date_local_formatted=appt.start_date_local_formatted,
            end_date_local=appt.end_date_local,
            duration=appt.duration,
            service_name=appt.service_name,
            practitioner_name=appt.practitioner_name,
            practitioner_email=appt.practitioner_email,
            location_name=appt.location_name,
            place_of_service=appt.place_of_service,
            invoice_id=appt.invoice_id,
            invoice_number=appt.invoice_number,
            price=appt.price,
            full_cancellation_reason=appt.full_cancellation_reason,
            cancellation_reason_note=appt.cancellation_reason_note,
        )


@dataclass
class LeadMatchDetail:
    lead_id: int
    source_id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    appointments: List[MatchedAppointment] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    owner_id: int
    owner_name: str
    write_back: bool
    summary: ReconciliationSummary
    matched_leads: List[LeadMatch] = field(default_factory=list)
    matched_details: List[LeadMatchDetail] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Servicio
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CrmFieldNames:
    stage: str = "cf_941"
    processed: str = "cf_943"
    match_count: str = "cf_945"
    summary: str = "cf_947"


class ReconciliationService:
    """
    Uso:
        service = ReconciliationService(store, client_factory=...)
        result = service.reconcile(owner, write_back=False)
    """

    def __init__(
        self,
        store: IRecordStore,
        *,
        client_factory: Optional[Callable[[Owner], VtigerClient]] = None,
        crm_fields: CrmFieldNames = CrmFieldNames(),
        summary_max_bytes: int = 900,
    ):
        self._store = store
        self._client_factory = client_factory
        self._fields = crm_fields
        self._summary_max_bytes = summary_max_bytes

    def reconcile(self, owner: Owner, *, write_back: bool = False) -> ReconciliationResult:
        client: Optional[VtigerClient] = None
        if write_back:
            if not owner.has_crm_credentials:
                raise ValidationException(
                    f"El owner {owner.id} no tiene credenciales del CRM",
                    field="vtiger_url",
                )
            if self._client_factory is None:
                raise ValidationException("Write-back sin cliente CRM configurado")
            # Sin I/O: la sesión se pide recién en el primer update
            client = self._client_factory(owner)

        appointments = self._store.list_appointments(owner.id)
        leads = self._store.list_leads(owner.id)

        by_email: Dict[str, List[AppointmentRecord]] = {}
        for appt in appointments:
            email = normalize_email(appt.contact_email)
            if email:
                by_email.setdefault(email, []).append(appt)

        summary = ReconciliationSummary(
            total_appointments=len(appointments),
            total_leads=len(leads),
        )
        result = ReconciliationResult(
            owner_id=owner.id,
            owner_name=owner.name,
            write_back=write_back,
            summary=summary,
        )
        seen_appointment_ids: set = set()

        for lead in leads:
            candidates = by_email.get(normalize_email(lead.email))
            if not candidates:
                continue

            matched = [a for a in candidates if a.id not in seen_appointment_ids]
            if not matched:
                continue
            seen_appointment_ids.update(a.id for a in matched)

            confirmed = sum(1 for a in matched if classify_status(a.status) == "confirmed")
            cancelled = sum(1 for a in matched if classify_status(a.status) == "cancelled")
            summary.matched_appointments += len(matched)
            summary.confirmed += confirmed
            summary.cancelled += cancelled

            match = LeadMatch(
                lead_id=lead.id,
                source_id=lead.source_id,
                email=lead.email,
                appointment_count=len(matched),
                confirmed=confirmed,
                cancelled=cancelled,
            )
            if client is not None:
                self._write_back(client, lead, len(matched), match)

            result.matched_leads.append(match)
            result.matched_details.append(
                LeadMatchDetail(
                    lead_id=lead.id,
                    source_id=lead.source_id,
                    email=lead.email,
                    first_name=lead.first_name,
                    last_name=lead.last_name,
                    appointments=[MatchedAppointment.from_record(a) for a in matched],
                )
            )

        summary.matched_leads = len(result.matched_leads)
        summary.unmatched_appointments = summary.total_appointments - summary.matched_appointments

        failed = sum(1 for m in result.matched_leads if m.crm_error or m.store_error)
        logger.info(
            f"Reconciliación owner {owner.id}: {summary.matched_leads} leads con citas, "
            f"{summary.matched_appointments}/{summary.total_appointments} citas asignadas"
            + (f", {failed} leads con error" if write_back else "")
        )
        return result

    def _write_back(self, client: VtigerClient, lead: LeadRecord, count: int, match: LeadMatch) -> None:
        summary_html = build_lead_summary_html(lead, self._summary_max_bytes)
        count_str = str(count)

        needs_update = (
            str(lead.processed_flag or "").strip().lower() != PROCESSED_YES
            or str(lead.matched_count or "").strip() != count_str
            or str(lead.summary_html or "").strip() != summary_html.strip()
        )
        if not needs_update:
            match.crm_updated = True
            return

        element = {
            "id": lead.source_id,
            "firstname": lead.first_name or "",
            "lastname": lead.last_name or "",
            "company": lead.company or "",
            self._fields.stage: lead.stage or DEFAULT_STAGE,
            self._fields.processed: PROCESSED_YES,
            self._fields.match_count: count_str,
            self._fields.summary: summary_html,
        }
        if lead.assigned_user_id:
            element["assigned_user_id"] = lead.assigned_user_id

        try:
            client.update(element)
            match.crm_updated = True
        except SyncException as e:
            error = ReconciliationWriteError(
                f"CRM update falló para lead {lead.source_id}: {e.message}",
                details={"lead_id": lead.id, "source_id": lead.source_id, "cause": e.error_code},
            )
            match.crm_error = error.message
            logger.error(error.message)

        try:
            self._store.update_lead_crm_fields(
                lead.id,
                processed_flag=PROCESSED_YES,
                matched_count=count_str,
                summary_html=summary_html,
            )
        except PersistenceError as e:
            match.store_error = e.message
            logger.error(f"No se pudo guardar el estado CRM del lead {lead.source_id}: {e.message}")


def build_reconciliation_service(
    store: IRecordStore,
    app_settings: Settings,
    *,
    http_session: Optional[requests.Session] = None,
) -> ReconciliationService:
    def client_factory(owner: Owner) -> VtigerClient:
        return build_vtiger_client(owner, app_settings, http_session=http_session)

    return ReconciliationService(
        store,
        client_factory=client_factory,
        crm_fields=CrmFieldNames(
            stage=app_settings.VTIGER_STAGE_FIELD,
            processed=app_settings.VTIGER_PROCESSED_FIELD,
            match_count=app_settings.VTIGER_MATCH_COUNT_FIELD,
            summary=app_settings.VTIGER_SUMMARY_FIELD,
        ),
        summary_max_bytes=app_settings.SUMMARY_MAX_BYTES,
    )

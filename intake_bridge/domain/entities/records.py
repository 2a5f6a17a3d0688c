"""
Entidades de dominio sincronizadas desde los sistemas externos.

Cada registro es una estructura fija mas un unico blob opaco (`raw_data`)
con el payload original, preservado para auditoria/replay.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class Owner:
    """
    Practica/organizacion cuyos datos se sincronizan (tenant).

    `external_key` es la identidad durable cuando existe; `name` es
    metadata mutable y nunca se usa como identidad.
    """

    id: int
    name: str
    external_key: Optional[str] = None
    intakeq_key: Optional[str] = None
    intakeq_base_url: Optional[str] = None
    vtiger_url: Optional[str] = None
    vtiger_username: Optional[str] = None
    vtiger_access_key: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def storage_key(self) -> str:
        """Clave de particion para archivos de cursor/sesion."""
        return str(self.id)

    @property
    def has_appointments_credentials(self) -> bool:
        return bool(self.intakeq_key and self.intakeq_base_url)

    @property
    def has_crm_credentials(self) -> bool:
        return bool(self.vtiger_url and self.vtiger_username and self.vtiger_access_key)

    @property
    def appointments_url(self) -> str:
        return f"{(self.intakeq_base_url or '').rstrip('/')}/appointments"


@dataclass
class AppointmentRecord:
    """Cita tal como quedo persistida en el record store."""

    id: int
    owner_id: int
    source_id: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[int] = None
    end_date: Optional[int] = None
    start_date_iso: Optional[str] = None
    end_date_iso: Optional[str] = None
    start_date_local: Optional[str] = None
    end_date_local: Optional[str] = None
    start_date_local_formatted: Optional[str] = None
    duration: Optional[int] = None
    service_name: Optional[str] = None
    practitioner_name: Optional[str] = None
    practitioner_email: Optional[str] = None
    location_name: Optional[str] = None
    place_of_service: Optional[str] = None
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    price: Optional[float] = None
    full_cancellation_reason: Optional[str] = None
    cancellation_reason_note: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LeadRecord:
    """
    Lead del CRM persistido localmente.

    processed_flag / matched_count / summary_html / stage son los campos
    custom del CRM que la reconciliacion escribe.
    """

    id: int
    owner_id: int
    source_id: str
    lead_no: Optional[str] = None
    salutation: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    company: Optional[str] = None
    assigned_user_id: Optional[str] = None
    stage: Optional[str] = None
    processed_flag: Optional[str] = None
    matched_count: Optional[str] = None
    summary_html: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

"""
Mapeo payload de cita -> columnas de `appointments`.

Las claves del payload son PascalCase tal como las entrega la API.
"""

from __future__ import annotations

from typing import Any

from intake_bridge.infrastructure.external.sync_common.types import (
    FieldMapping,
    map_record_to_row,
    to_bool,
    to_float,
    to_int,
    to_str,
)

APPOINTMENT_ID_FIELD = "Id"

APPOINTMENT_FIELD_MAPPINGS: list[FieldMapping] = [
    FieldMapping("Id", "source_id", to_str),
    # Contacto
    FieldMapping("ClientName", "contact_name", to_str),
    FieldMapping("ClientEmail", "contact_email", to_str),
    FieldMapping("ClientPhone", "contact_phone", to_str),
    FieldMapping("ClientDateOfBirth", "contact_date_of_birth", to_str),
    FieldMapping("ClientId", "contact_source_id", to_str),
    # Agenda
    FieldMapping("Status", "status", to_str),
    FieldMapping("StartDate", "start_date", to_int),
    FieldMapping("EndDate", "end_date", to_int),
    FieldMapping("StartDateIso", "start_date_iso", to_str),
    FieldMapping("EndDateIso", "end_date_iso", to_str),
    FieldMapping("StartDateLocal", "start_date_local", to_str),
    FieldMapping("EndDateLocal", "end_date_local", to_str),
    FieldMapping("StartDateLocalFormatted", "start_date_local_formatted", to_str),
    FieldMapping("Duration", "duration", to_int),
    # Servicio / profesional
    FieldMapping("ServiceName", "service_name", to_str),
    FieldMapping("ServiceId", "service_id", to_str),
    FieldMapping("LocationName", "location_name", to_str),
    FieldMapping("LocationId", "location_id", to_str),
    FieldMapping("PractitionerName", "practitioner_name", to_str),
    FieldMapping("PractitionerEmail", "practitioner_email", to_str),
    FieldMapping("PractitionerId", "practitioner_id", to_str),
    FieldMapping("Price", "price", to_float),
    # Metadata
    FieldMapping("TelehealthInfo", "telehealth_info"),
    FieldMapping("IntakeId", "intake_id", to_str),
    FieldMapping("DateCreated", "date_created", to_int),
    FieldMapping("CreatedBy", "created_by", to_str),
    FieldMapping("BookedByClient", "booked_by_client", to_bool),
    FieldMapping("LastModified", "last_modified", to_int),
    FieldMapping("AttendanceConfirmationResponse", "attendance_confirmation_response", to_str),
    FieldMapping("ReminderType", "reminder_type", to_str),
    FieldMapping("PlaceOfService", "place_of_service", to_str),
    # Cancelación
    FieldMapping("FullCancellationReason", "full_cancellation_reason", to_str),
    FieldMapping("CancellationReasonNote", "cancellation_reason_note", to_str),
    FieldMapping("CancellationDate", "cancellation_date", to_int),
    # Facturación
    FieldMapping("InvoiceId", "invoice_id", to_str),
    FieldMapping("InvoiceNumber", "invoice_number", to_str),
    # Estructurados
    FieldMapping("CustomFields", "custom_fields"),
    FieldMapping("AdditionalClients", "additional_clients"),
]


def map_appointment(payload: dict[str, Any]) -> dict[str, Any]:
    return map_record_to_row(payload, APPOINTMENT_FIELD_MAPPINGS)

"""
Mapeo registro de Leads del CRM -> columnas de `leads`.

Los campos custom (stage, procesado, conteo, resumen) dependen de la
instancia del CRM, por eso se construyen desde la configuración.
"""

from __future__ import annotations

from typing import Any

from intake_bridge.core.config import Settings
from intake_bridge.infrastructure.external.sync_common.types import (
    FieldMapping,
    map_record_to_row,
    parse_crm_datetime,
    to_str,
)

LEAD_ID_FIELD = "id"

_STANDARD_LEAD_MAPPINGS: list[FieldMapping] = [
    FieldMapping("id", "source_id", to_str),
    FieldMapping("lead_no", "lead_no", to_str),
    FieldMapping("salutationtype", "salutation", to_str),
    FieldMapping("firstname", "first_name", to_str),
    FieldMapping("lastname", "last_name", to_str),
    FieldMapping("email", "email", to_str),
    FieldMapping("secondaryemail", "secondary_email", to_str),
    FieldMapping("phone", "phone", to_str),
    FieldMapping("mobile", "mobile", to_str),
    FieldMapping("company", "company", to_str),
    FieldMapping("designation", "designation", to_str),
    FieldMapping("leadsource", "lead_source", to_str),
    FieldMapping("leadstatus", "lead_status", to_str),
    FieldMapping("assigned_user_id", "assigned_user_id", to_str),
    FieldMapping("city", "city", to_str),
    FieldMapping("state", "state", to_str),
    FieldMapping("country", "country", to_str),
    FieldMapping("code", "code", to_str),
    FieldMapping("description", "description"),
    FieldMapping("createdtime", "source_created_at", parse_crm_datetime),
    FieldMapping("modifiedtime", "source_modified_at", parse_crm_datetime),
]


def build_lead_field_mappings(app_settings: Settings) -> list[FieldMapping]:
    return _STANDARD_LEAD_MAPPINGS + [
        FieldMapping(app_settings.VTIGER_STAGE_FIELD, "stage", to_str),
        FieldMapping(app_settings.VTIGER_PROCESSED_FIELD, "processed_flag", to_str),
        FieldMapping(app_settings.VTIGER_MATCH_COUNT_FIELD, "matched_count", to_str),
        FieldMapping(app_settings.VTIGER_SUMMARY_FIELD, "summary_html", to_str),
    ]


def map_lead(payload: dict[str, Any], mappings: list[FieldMapping]) -> dict[str, Any]:
    return map_record_to_row(payload, mappings)

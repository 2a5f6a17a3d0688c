"""
DTOs relacionados con owners (practicas/tenants).
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OwnerCreateDTO(BaseModel):
    """
    Alta o upsert de un owner.

    Si `external_key` no se envia se usa la API key de citas como clave natural.
    """
    name: str = Field(..., min_length=1, max_length=255, description="Nombre de la practica")
    external_key: Optional[str] = Field(None, description="Identidad durable del owner")
    intakeq_key: Optional[str] = Field(None, description="API key de la API de citas")
    intakeq_base_url: Optional[str] = Field(None, description="URL base de la API de citas")
    vtiger_url: Optional[str] = None
    vtiger_username: Optional[str] = None
    vtiger_access_key: Optional[str] = None


class OwnerCrmCredentialsDTO(BaseModel):
    vtiger_url: str = Field(..., min_length=1)
    vtiger_username: str = Field(..., min_length=1)
    vtiger_access_key: str = Field(..., min_length=1)


class OwnerAppointmentsApiDTO(BaseModel):
    intakeq_key: str = Field(..., min_length=1)
    intakeq_base_url: Optional[str] = None


class OwnerDTO(BaseModel):
    """Owner sin secretos."""
    id: int
    name: str
    external_key_set: bool = False
    intakeq_base_url: Optional[str] = None
    vtiger_url: Optional[str] = None
    vtiger_username: Optional[str] = None
    has_appointments_credentials: bool = False
    has_crm_credentials: bool = False
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OwnerStatsDTO(OwnerDTO):
    total_appointments: int = 0
    total_leads: int = 0
    matched_appointments: int = 0
    unmatched_appointments: int = 0
    last_update: Optional[datetime] = None


class AppointmentDTO(BaseModel):
    id: int
    source_id: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[int] = None
    start_date_iso: Optional[str] = None
    start_date_local_formatted: Optional[str] = None
    duration: Optional[int] = None
    service_name: Optional[str] = None
    practitioner_name: Optional[str] = None
    location_name: Optional[str] = None
    price: Optional[float] = None

    class Config:
        from_attributes = True


class LeadDTO(BaseModel):
    id: int
    source_id: str
    lead_no: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    company: Optional[str] = None
    stage: Optional[str] = None
    processed_flag: Optional[str] = None
    matched_count: Optional[str] = None

    class Config:
        from_attributes = True


class PageDTO(BaseModel):
    """Listado paginado."""
    page: int
    limit: int
    total: int
    items: List[Dict[str, Any]]

"""
DTOs del resultado de reconciliacion citas <-> leads.
"""
from typing import List, Optional

from pydantic import BaseModel


class _FromAttributes(BaseModel):
    class Config:
        from_attributes = True


class ReconciliationSummaryDTO(_FromAttributes):
    total_appointments: int
    total_leads: int
    matched_leads: int
    matched_appointments: int
    unmatched_appointments: int
    confirmed: int
    cancelled: int


class LeadMatchDTO(_FromAttributes):
    lead_id: int
    source_id: str
    email: Optional[str] = None
    appointment_count: int
    confirmed: int
    cancelled: int
    crm_updated: bool
    crm_error: Optional[str] = None
    store_error: Optional[str] = None


class MatchedAppointmentDTO(_FromAttributes):
    id: int
    source_id: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: Optional[str] = None
    normalized_status: str
    start_date: Optional[str] = None
    start_date_local: Optional[str] = None
    start_date_local_formatted: Optional[str] = None
    end_date_local: Optional[str] = None
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


class LeadMatchDetailDTO(_FromAttributes):
    lead_id: int
    source_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    appointments: List[MatchedAppointmentDTO]


class ReconciliationResultDTO(_FromAttributes):
    owner_id: int
    owner_name: str
    write_back: bool
    summary: ReconciliationSummaryDTO
    matched_leads: List[LeadMatchDTO]
    matched_details: List[LeadMatchDetailDTO]

"""
Entidades del dominio.
"""
from intake_bridge.domain.entities.records import AppointmentRecord, LeadRecord, Owner

__all__ = [
    "AppointmentRecord",
    "LeadRecord",
    "Owner",
]

"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .owner_dto import (
    AppointmentDTO,
    LeadDTO,
    OwnerAppointmentsApiDTO,
    OwnerCreateDTO,
    OwnerCrmCredentialsDTO,
    OwnerDTO,
    OwnerStatsDTO,
    PageDTO,
)
from .sync_dto import (
    CursorDTO,
    CursorsDTO,
    SyncJobResponseDTO,
    SyncJobStatusDTO,
    SyncRequestDTO,
)
from .reconciliation_dto import ReconciliationResultDTO

__all__ = [
    "AppointmentDTO",
    "LeadDTO",
    "OwnerAppointmentsApiDTO",
    "OwnerCreateDTO",
    "OwnerCrmCredentialsDTO",
    "OwnerDTO",
    "OwnerStatsDTO",
    "PageDTO",
    "CursorDTO",
    "CursorsDTO",
    "SyncJobResponseDTO",
    "SyncJobStatusDTO",
    "SyncRequestDTO",
    "ReconciliationResultDTO",
]

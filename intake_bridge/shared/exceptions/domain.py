"""
Excepciones relacionadas con la lógica de dominio.
"""
from typing import Any

from intake_bridge.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class EntityNotFoundException(DomainException):
    """Excepción cuando no se encuentra una entidad."""

    def __init__(self, entity_name: str, entity_id: Any):
        super().__init__(
            message=f"{entity_name} con ID {entity_id} no encontrado",
            error_code="ENTITY_NOT_FOUND",
            details={"entity": entity_name, "id": str(entity_id)}
        )
        self.status_code = 404


class ValidationException(DomainException):
    """Excepción para errores de validación."""

    def __init__(self, message: str, field: str = None):
        details = {"field": field} if field else None
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=details
        )


class SyncAlreadyRunningException(DomainException):
    """Ya existe un job del mismo tipo corriendo para el owner."""

    def __init__(self, owner_id: int, kind: str, job_id: str):
        super().__init__(
            message=f"Ya hay un sync '{kind}' en curso para el owner {owner_id}",
            error_code="SYNC_ALREADY_RUNNING",
            details={"owner_id": owner_id, "kind": kind, "job_id": job_id}
        )
        self.status_code = 409

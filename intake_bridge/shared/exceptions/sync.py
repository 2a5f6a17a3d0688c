"""
Taxonomía de errores de los motores de sincronización.

- AuthenticationError: credenciales o sesión inválidas (re-login, un solo reintento)
- RateLimitError: 429 tras agotar reintentos
- TransientServerError: 5xx/timeout tras agotar reintentos
- UnexpectedResponseError: respuesta que no encaja en ninguna clase conocida
- QuotaExceeded: tope de requests por corrida (parada suave, reanudable)
- PersistenceError: fallo escribiendo cursor o record store (fatal para la corrida)
- ReconciliationWriteError: fallo del write-back al CRM (se registra por lead)

El fin de datos NO es una excepción: es RetryClass.END_OF_DATA.
"""
from typing import Any, Dict, Optional

from intake_bridge.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepción base para errores de sincronización."""

    def __init__(
        self,
        message: str,
        error_code: str = "SYNC_ERROR",
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class AuthenticationError(SyncException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="UPSTREAM_AUTHENTICATION", details=details)


class RateLimitError(SyncException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="UPSTREAM_RATE_LIMIT", details=details)


class TransientServerError(SyncException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="UPSTREAM_UNAVAILABLE", details=details)


class UnexpectedResponseError(SyncException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="UPSTREAM_UNEXPECTED", details=details)


class QuotaExceeded(SyncException):
    """Tope de requests por corrida alcanzado. No es un fallo: el cursor queda listo para reanudar."""

    def __init__(self, max_requests: int):
        self.max_requests = max_requests
        super().__init__(
            f"Tope de {max_requests} requests por corrida alcanzado",
            error_code="REQUEST_CAP_REACHED",
            status_code=429,
            details={"max_requests": max_requests},
        )


class PersistenceError(SyncException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="PERSISTENCE_ERROR", status_code=500, details=details)


class ReconciliationWriteError(SyncException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CRM_WRITE_FAILED", details=details)

"""
Servicios de aplicacion.

Contiene la logica de negocio reutilizable que no pertenece
a un caso de uso especifico.
"""
from intake_bridge.application.services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
    build_lead_summary_html,
    build_reconciliation_service,
    classify_status,
)

__all__ = [
    "ReconciliationResult",
    "ReconciliationService",
    "build_lead_summary_html",
    "build_reconciliation_service",
    "classify_status",
]

"""
Endpoints de reconciliacion citas <-> leads.
"""
from fastapi import APIRouter, Depends, status

from intake_bridge.api.v1.dependencies.use_case_deps import get_compare_use_cases
from intake_bridge.application.dto.reconciliation_dto import ReconciliationResultDTO
from intake_bridge.application.dto.sync_dto import SyncJobResponseDTO, SyncRequestDTO
from intake_bridge.application.use_cases.compare_use_cases import CompareUseCases


router = APIRouter(prefix="/compare", tags=["Compare"])


@router.post(
    "/sync",
    response_model=SyncJobResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Reconciliar y escribir resultados en el CRM"
)
async def compare_and_write_back(
    body: SyncRequestDTO,
    use_cases: CompareUseCases = Depends(get_compare_use_cases),
) -> SyncJobResponseDTO:
    """
    Inicia un job que reconcilia y actualiza en el CRM los campos de
    procesado, conteo de citas y resumen de cada lead con citas.

    El resultado completo queda en GET /sync/jobs/{job_id}.
    """
    return await use_cases.start_write_back(body.owner_id)


@router.get("/{owner_id}", response_model=ReconciliationResultDTO)
async def compare(
    owner_id: int,
    use_cases: CompareUseCases = Depends(get_compare_use_cases),
) -> ReconciliationResultDTO:
    """
    Reconciliacion de solo lectura (sin llamadas al CRM).
    """
    return await use_cases.compare(owner_id)

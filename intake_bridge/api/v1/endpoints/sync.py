"""
Endpoints para sincronizacion de datos externos.
Inician los motores de citas y leads como jobs en background y exponen los
cursores de reanudacion.
"""
from fastapi import APIRouter, Depends, status

from intake_bridge.api.v1.dependencies.use_case_deps import get_sync_job_use_cases
from intake_bridge.application.dto.sync_dto import (
    CursorDTO,
    CursorsDTO,
    SyncJobResponseDTO,
    SyncJobStatusDTO,
    SyncRequestDTO,
)
from intake_bridge.application.use_cases.sync_job_use_cases import (
    JOB_APPOINTMENTS,
    JOB_LEADS,
    SyncJobUseCases,
)


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "/appointments",
    response_model=SyncJobResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Iniciar sync de citas"
)
async def sync_appointments(
    body: SyncRequestDTO,
    use_cases: SyncJobUseCases = Depends(get_sync_job_use_cases),
) -> SyncJobResponseDTO:
    """
    Inicia el fetch paginado de citas para el owner.

    Retorna inmediatamente con un job_id; el estado se consulta en
    GET /sync/jobs/{job_id}. La corrida reanuda desde el ultimo cursor
    persistido y se detiene sola al llegar al tope de requests.
    """
    return await use_cases.start_job(JOB_APPOINTMENTS, body.owner_id)


@router.post(
    "/leads",
    response_model=SyncJobResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Iniciar sync de leads del CRM"
)
async def sync_leads(
    body: SyncRequestDTO,
    use_cases: SyncJobUseCases = Depends(get_sync_job_use_cases),
) -> SyncJobResponseDTO:
    return await use_cases.start_job(JOB_LEADS, body.owner_id)


@router.get(
    "/jobs/{job_id}",
    response_model=SyncJobStatusDTO,
    summary="Obtener estado de un job de sync (polling)"
)
async def get_sync_job_status(
    job_id: str,
    use_cases: SyncJobUseCases = Depends(get_sync_job_use_cases),
) -> SyncJobStatusDTO:
    """
    Cuando status == 'completed', `result` trae el resumen de la corrida.
    Cuando status == 'failed', `error` trae {error, message, details}.
    """
    return await use_cases.get_job_status(job_id)


@router.get("/{owner_id}/cursors", response_model=CursorsDTO)
async def get_cursors(
    owner_id: int,
    use_cases: SyncJobUseCases = Depends(get_sync_job_use_cases),
) -> CursorsDTO:
    """
    Posicion y cantidad de registros de cada cursor del owner.
    """
    return await use_cases.get_cursors(owner_id)


@router.delete("/{owner_id}/cursors/{source}", response_model=CursorDTO)
async def reset_cursor(
    owner_id: int,
    source: str,
    use_cases: SyncJobUseCases = Depends(get_sync_job_use_cases),
) -> CursorDTO:
    """
    Resetea el cursor de una fuente (`appointments` o `leads`).
    La proxima corrida vuelve a traer todo desde el principio.
    """
    return await use_cases.reset_cursor(owner_id, source)

"""
Endpoints de owners (practicas/tenants).
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status

from intake_bridge.api.v1.dependencies.use_case_deps import get_owner_use_cases
from intake_bridge.application.dto.owner_dto import (
    OwnerAppointmentsApiDTO,
    OwnerCreateDTO,
    OwnerCrmCredentialsDTO,
    OwnerDTO,
    OwnerStatsDTO,
    PageDTO,
)
from intake_bridge.application.use_cases.owner_use_cases import OwnerUseCases


router = APIRouter(prefix="/owners", tags=["Owners"])


@router.get("", response_model=List[OwnerStatsDTO])
async def list_owners(
    use_cases: OwnerUseCases = Depends(get_owner_use_cases)
):
    """
    Owners activos con totales de citas, leads y citas con/sin lead.
    """
    return await use_cases.list_owners()


@router.post("", response_model=OwnerDTO, status_code=status.HTTP_201_CREATED)
async def create_owner(
    body: OwnerCreateDTO,
    use_cases: OwnerUseCases = Depends(get_owner_use_cases)
):
    """
    Crea un owner o actualiza el que tenga la misma clave externa.
    """
    return await use_cases.create_or_update_owner(body)


@router.post("/{owner_id}/crm", response_model=OwnerDTO)
async def update_crm_credentials(
    owner_id: int,
    body: OwnerCrmCredentialsDTO,
    use_cases: OwnerUseCases = Depends(get_owner_use_cases)
):
    return await use_cases.update_crm_credentials(owner_id, body)


@router.post("/{owner_id}/appointments-api", response_model=OwnerDTO)
async def update_appointments_api(
    owner_id: int,
    body: OwnerAppointmentsApiDTO,
    use_cases: OwnerUseCases = Depends(get_owner_use_cases)
):
    return await use_cases.update_appointments_api(owner_id, body)


@router.get("/{owner_id}/appointments", response_model=PageDTO)
async def list_appointments(
    owner_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(200, ge=1, le=1000),
    use_cases: OwnerUseCases = Depends(get_owner_use_cases)
):
    return await use_cases.list_appointments(owner_id, page=page, limit=limit)


@router.get("/{owner_id}/leads", response_model=PageDTO)
async def list_leads(
    owner_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(200, ge=1, le=1000),
    use_cases: OwnerUseCases = Depends(get_owner_use_cases)
):
    return await use_cases.list_leads(owner_id, page=page, limit=limit)

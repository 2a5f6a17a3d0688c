"""
Casos de uso relacionados con owners.
Alta/upsert por clave natural, credenciales y listados paginados.
"""
import asyncio
from typing import List, Optional

from loguru import logger

from intake_bridge.application.dto.owner_dto import (
    AppointmentDTO,
    LeadDTO,
    OwnerAppointmentsApiDTO,
    OwnerCreateDTO,
    OwnerCrmCredentialsDTO,
    OwnerDTO,
    OwnerStatsDTO,
    PageDTO,
)
from intake_bridge.core.config import Settings, settings
from intake_bridge.domain.entities.records import Owner
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.shared.exceptions.domain import EntityNotFoundException, ValidationException


class OwnerUseCases:
    """
    Casos de uso para gestion de owners.
    """

    def __init__(self, store: IRecordStore, app_settings: Optional[Settings] = None):
        self.store = store
        self.settings = app_settings or settings

    async def list_owners(self) -> List[OwnerStatsDTO]:
        """
        Owners activos con totales de citas/leads.

        Returns:
            List[OwnerStatsDTO]: Owners con estadisticas
        """
        owners = await asyncio.to_thread(self.store.list_owners, True)
        result = []
        for owner in owners:
            stats = await asyncio.to_thread(self.store.get_owner_stats, owner.id)
            result.append(OwnerStatsDTO(**self._owner_fields(owner), **stats))
        return result

    async def create_or_update_owner(self, data: OwnerCreateDTO) -> OwnerDTO:
        """
        Crea un owner o actualiza el existente con la misma clave natural.

        La clave natural es `external_key`; si no se envia se usa la API key
        de citas. El nombre nunca se usa como identidad.
        """
        values = data.model_dump()
        if not values.get("external_key"):
            values["external_key"] = values.get("intakeq_key")
        if values.get("intakeq_key") and not values.get("intakeq_base_url"):
            values["intakeq_base_url"] = self.settings.INTAKEQ_DEFAULT_BASE_URL

        owner = await asyncio.to_thread(self.store.upsert_owner, values)
        logger.info(f"Owner {owner.id} ({owner.name}) guardado")
        return self._to_dto(owner)

    async def update_crm_credentials(self, owner_id: int, data: OwnerCrmCredentialsDTO) -> OwnerDTO:
        await self.get_owner(owner_id)
        owner = await asyncio.to_thread(self.store.update_owner, owner_id, data.model_dump())
        logger.info(f"Credenciales CRM actualizadas para owner {owner_id}")
        return self._to_dto(owner)

    async def update_appointments_api(self, owner_id: int, data: OwnerAppointmentsApiDTO) -> OwnerDTO:
        current = await self.get_owner(owner_id)
        values = data.model_dump()
        values["intakeq_base_url"] = (
            values.get("intakeq_base_url")
            or current.intakeq_base_url
            or self.settings.INTAKEQ_DEFAULT_BASE_URL
        )
        if not current.external_key:
            values["external_key"] = values["intakeq_key"]

        owner = await asyncio.to_thread(self.store.update_owner, owner_id, values)
        logger.info(f"Credenciales de la API de citas actualizadas para owner {owner_id}")
        return self._to_dto(owner)

    async def get_owner(self, owner_id: int) -> Owner:
        """
        Raises:
            EntityNotFoundException: Si el owner no existe
        """
        owner = await asyncio.to_thread(self.store.get_owner, owner_id)
        if owner is None:
            raise EntityNotFoundException("Owner", owner_id)
        return owner

    async def list_appointments(self, owner_id: int, page: int = 1, limit: int = 200) -> PageDTO:
        self._validate_page(page, limit)
        await self.get_owner(owner_id)
        total = await asyncio.to_thread(self.store.count_appointments, owner_id)
        rows = await asyncio.to_thread(
            lambda: self.store.list_appointments(owner_id, skip=(page - 1) * limit, limit=limit)
        )
        items = [AppointmentDTO.model_validate(r).model_dump() for r in rows]
        return PageDTO(page=page, limit=limit, total=total, items=items)

    async def list_leads(self, owner_id: int, page: int = 1, limit: int = 200) -> PageDTO:
        self._validate_page(page, limit)
        await self.get_owner(owner_id)
        total = await asyncio.to_thread(self.store.count_leads, owner_id)
        rows = await asyncio.to_thread(
            lambda: self.store.list_leads(owner_id, skip=(page - 1) * limit, limit=limit)
        )
        items = [LeadDTO.model_validate(r).model_dump() for r in rows]
        return PageDTO(page=page, limit=limit, total=total, items=items)

    @staticmethod
    def _validate_page(page: int, limit: int) -> None:
        if page < 1:
            raise ValidationException("page debe ser >= 1", field="page")
        if not 1 <= limit <= 1000:
            raise ValidationException("limit debe estar entre 1 y 1000", field="limit")

    @staticmethod
    def _owner_fields(owner: Owner) -> dict:
        return {
            "id": owner.id,
            "name": owner.name,
            "external_key_set": bool(owner.external_key),
            "intakeq_base_url": owner.intakeq_base_url,
            "vtiger_url": owner.vtiger_url,
            "vtiger_username": owner.vtiger_username,
            "has_appointments_credentials": owner.has_appointments_credentials,
            "has_crm_credentials": owner.has_crm_credentials,
            "active": owner.active,
            "created_at": owner.created_at,
            "updated_at": owner.updated_at,
        }

    def _to_dto(self, owner: Owner) -> OwnerDTO:
        return OwnerDTO(**self._owner_fields(owner))

"""
Casos de uso de reconciliacion citas <-> leads.
"""
import asyncio
from typing import Optional

from intake_bridge.application.dto.reconciliation_dto import ReconciliationResultDTO
from intake_bridge.application.dto.sync_dto import SyncJobResponseDTO
from intake_bridge.application.services.reconciliation_service import ReconciliationService
from intake_bridge.application.use_cases.sync_job_use_cases import JOB_RECONCILE, SyncJobUseCases
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.shared.exceptions.domain import EntityNotFoundException


class CompareUseCases:
    """
    - compare: solo lectura, sin I/O contra el CRM
    - start_write_back: job en background que escribe los campos en el CRM
    """

    def __init__(
        self,
        store: IRecordStore,
        jobs: SyncJobUseCases,
        service: Optional[ReconciliationService] = None,
    ):
        self.store = store
        self.jobs = jobs
        self.service = service or ReconciliationService(store)

    async def compare(self, owner_id: int) -> ReconciliationResultDTO:
        """
        Raises:
            EntityNotFoundException: Si el owner no existe
        """
        owner = await asyncio.to_thread(self.store.get_owner, owner_id)
        if owner is None:
            raise EntityNotFoundException("Owner", owner_id)

        result = await asyncio.to_thread(self.service.reconcile, owner)
        return ReconciliationResultDTO.model_validate(result)

    async def start_write_back(self, owner_id: int) -> SyncJobResponseDTO:
        return await self.jobs.start_job(JOB_RECONCILE, owner_id)

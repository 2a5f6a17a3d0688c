"""
Casos de uso para correr los motores de sync como jobs en background.

Patron asincrono:
- El endpoint inicia el job y retorna inmediatamente un job_id (202).
- El cliente hace polling al endpoint de status hasta que el job termine.
- Los motores son sincronos (requests + sleep) y corren en un thread aparte.
- Un solo job por (owner, tipo) a la vez: el segundo recibe 409.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from loguru import logger

from intake_bridge.application.dto.reconciliation_dto import ReconciliationResultDTO
from intake_bridge.application.dto.sync_dto import (
    CursorDTO,
    CursorsDTO,
    SyncJobResponseDTO,
    SyncJobStatusDTO,
)
from intake_bridge.application.services.reconciliation_service import build_reconciliation_service
from intake_bridge.core.config import Settings, settings
from intake_bridge.domain.entities.records import Owner
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.infrastructure.external.intakeq.appointment_sync import build_appointment_sync_engine
from intake_bridge.infrastructure.external.sync_common.cursor_store import CURSOR_LAYOUTS, FileCursorStore
from intake_bridge.infrastructure.external.vtiger.lead_sync import build_lead_sync_engine
from intake_bridge.shared.exceptions.base import AppException
from intake_bridge.shared.exceptions.domain import (
    EntityNotFoundException,
    SyncAlreadyRunningException,
    ValidationException,
)

JOB_APPOINTMENTS = "appointments"
JOB_LEADS = "leads"
JOB_RECONCILE = "reconcile"

JobRunner = Callable[[Owner], Dict[str, Any]]


@dataclass
class _JobState:
    """Estado interno de un job de sincronizacion."""

    job_id: str
    kind: str
    owner_id: int
    status: str  # running, completed, failed
    message: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None


def build_default_runners(store: IRecordStore, app_settings: Settings) -> Dict[str, JobRunner]:
    """Runners de produccion: cada uno construye su motor desde la configuracion."""

    def run_appointments(owner: Owner) -> Dict[str, Any]:
        return build_appointment_sync_engine(store, app_settings=app_settings).run(owner).to_dict()

    def run_leads(owner: Owner) -> Dict[str, Any]:
        return build_lead_sync_engine(store, app_settings=app_settings).run(owner).to_dict()

    def run_reconcile(owner: Owner) -> Dict[str, Any]:
        result = build_reconciliation_service(store, app_settings).reconcile(owner, write_back=True)
        return ReconciliationResultDTO.model_validate(result).model_dump()

    return {
        JOB_APPOINTMENTS: run_appointments,
        JOB_LEADS: run_leads,
        JOB_RECONCILE: run_reconcile,
    }


class SyncJobUseCases:
    """
    Orquestador de jobs de sincronizacion.

    Los jobs se guardan en memoria (dict). Alcanza para polling simple y no
    introduce infraestructura extra; si el proceso se reinicia, los cursores
    en disco permiten reanudar.
    """

    _jobs: Dict[str, _JobState] = {}
    _jobs_lock = asyncio.Lock()

    def __init__(
        self,
        store: IRecordStore,
        app_settings: Optional[Settings] = None,
        runners: Optional[Dict[str, JobRunner]] = None,
    ):
        self.store = store
        self.settings = app_settings or settings
        self.runners = runners or build_default_runners(store, self.settings)

    async def start_job(self, kind: str, owner_id: int) -> SyncJobResponseDTO:
        """
        Inicia un job en background.

        Raises:
            EntityNotFoundException: Si el owner no existe
            ValidationException: Si faltan credenciales para el tipo de job
            SyncAlreadyRunningException: Si ya hay un job igual corriendo
        """
        runner = self.runners.get(kind)
        if runner is None:
            raise ValidationException(f"Tipo de job desconocido: {kind}", field="kind")

        owner = await asyncio.to_thread(self.store.get_owner, owner_id)
        if owner is None:
            raise EntityNotFoundException("Owner", owner_id)
        self._check_credentials(kind, owner)

        now = datetime.now(timezone.utc)
        async with self._jobs_lock:
            for job in self._jobs.values():
                if job.owner_id == owner_id and job.kind == kind and job.status == "running":
                    raise SyncAlreadyRunningException(owner_id, kind, job.job_id)

            job = _JobState(
                job_id=str(uuid.uuid4()),
                kind=kind,
                owner_id=owner_id,
                status="running",
                message=f"Sync '{kind}' iniciado",
                created_at=now,
                updated_at=now,
            )
            self._jobs[job.job_id] = job

        logger.info(f"[job {job.job_id}] '{kind}' iniciado para owner {owner_id}")
        asyncio.create_task(self._run_job(job.job_id, runner, owner))

        return SyncJobResponseDTO(
            job_id=job.job_id,
            kind=job.kind,
            owner_id=job.owner_id,
            status=job.status,
            message=job.message,
            created_at=job.created_at,
        )

    async def get_job_status(self, job_id: str) -> SyncJobStatusDTO:
        """
        Raises:
            EntityNotFoundException: Si el job no existe
        """
        async with self._jobs_lock:
            job = self._jobs.get(job_id)

        if job is None:
            raise EntityNotFoundException("Job", job_id)

        return SyncJobStatusDTO(
            job_id=job.job_id,
            kind=job.kind,
            owner_id=job.owner_id,
            status=job.status,
            message=job.message,
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
            error=job.error,
            result=job.result,
        )

    async def get_cursors(self, owner_id: int) -> CursorsDTO:
        owner = await asyncio.to_thread(self.store.get_owner, owner_id)
        if owner is None:
            raise EntityNotFoundException("Owner", owner_id)

        cursors = [
            CursorDTO(**FileCursorStore(self.settings.data_root, layout).describe(owner.storage_key))
            for layout in CURSOR_LAYOUTS.values()
        ]
        return CursorsDTO(owner_id=owner_id, cursors=cursors)

    async def reset_cursor(self, owner_id: int, source: str) -> CursorDTO:
        """
        Borra el cursor de una fuente (la proxima corrida trae todo de nuevo).
        """
        layout = CURSOR_LAYOUTS.get(source)
        if layout is None:
            raise ValidationException(
                f"Fuente desconocida: {source}. Opciones: {', '.join(CURSOR_LAYOUTS)}",
                field="source",
            )
        owner = await asyncio.to_thread(self.store.get_owner, owner_id)
        if owner is None:
            raise EntityNotFoundException("Owner", owner_id)

        async with self._jobs_lock:
            for job in self._jobs.values():
                if job.owner_id == owner_id and job.kind == source and job.status == "running":
                    raise SyncAlreadyRunningException(owner_id, source, job.job_id)

        cursor_store = FileCursorStore(self.settings.data_root, layout)
        await asyncio.to_thread(cursor_store.reset, owner.storage_key)
        return CursorDTO(**cursor_store.describe(owner.storage_key))

    @staticmethod
    def _check_credentials(kind: str, owner: Owner) -> None:
        if kind == JOB_APPOINTMENTS and not owner.has_appointments_credentials:
            raise ValidationException(
                f"El owner {owner.id} no tiene credenciales de la API de citas",
                field="intakeq_key",
            )
        if kind in (JOB_LEADS, JOB_RECONCILE) and not owner.has_crm_credentials:
            raise ValidationException(
                f"El owner {owner.id} no tiene credenciales del CRM",
                field="vtiger_url",
            )

    async def _update_job(self, job_id: str, **changes: Any) -> None:
        """Actualiza campos del job de forma thread-safe."""
        async with self._jobs_lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            for k, v in changes.items():
                setattr(job, k, v)
            job.updated_at = datetime.now(timezone.utc)

    async def _run_job(self, job_id: str, runner: JobRunner, owner: Owner) -> None:
        try:
            result = await asyncio.to_thread(runner, owner)
        except AppException as e:
            logger.error(f"[job {job_id}] fallo: {e.error_code} {e.message}")
            await self._update_job(
                job_id,
                status="failed",
                message=e.message,
                error=e.to_payload(),
                completed_at=datetime.now(timezone.utc),
            )
            return
        except Exception as e:
            logger.exception(f"[job {job_id}] error inesperado: {e}")
            await self._update_job(
                job_id,
                status="failed",
                message="Error interno del job",
                error={"error": "INTERNAL_ERROR", "message": str(e), "details": {}},
                completed_at=datetime.now(timezone.utc),
            )
            return

        logger.success(f"[job {job_id}] completado")
        await self._update_job(
            job_id,
            status="completed",
            message="Sync completado",
            result=result,
            completed_at=datetime.now(timezone.utc),
        )

"""
Dependencias para inyeccion de casos de uso.
"""
from fastapi import Depends

from intake_bridge.api.v1.dependencies.repository_deps import get_record_store
from intake_bridge.application.use_cases.compare_use_cases import CompareUseCases
from intake_bridge.application.use_cases.owner_use_cases import OwnerUseCases
from intake_bridge.application.use_cases.sync_job_use_cases import SyncJobUseCases
from intake_bridge.domain.repositories.record_store import IRecordStore


def get_owner_use_cases(
    store: IRecordStore = Depends(get_record_store)
) -> OwnerUseCases:
    """
    Dependencia para obtener los casos de uso de owners.

    Args:
        store: Record store

    Returns:
        OwnerUseCases: Instancia de casos de uso de owners
    """
    return OwnerUseCases(store)


def get_sync_job_use_cases(
    store: IRecordStore = Depends(get_record_store)
) -> SyncJobUseCases:
    """
    Dependencia para obtener los casos de uso de jobs de sync.

    Returns:
        SyncJobUseCases: Instancia de casos de uso de jobs
    """
    return SyncJobUseCases(store)


def get_compare_use_cases(
    store: IRecordStore = Depends(get_record_store),
    jobs: SyncJobUseCases = Depends(get_sync_job_use_cases),
) -> CompareUseCases:
    return CompareUseCases(store, jobs)

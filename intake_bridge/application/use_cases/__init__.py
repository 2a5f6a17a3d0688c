"""
Casos de uso de la aplicacion.
"""
from .owner_use_cases import OwnerUseCases
from .sync_job_use_cases import SyncJobUseCases
from .compare_use_cases import CompareUseCases

__all__ = ["OwnerUseCases", "SyncJobUseCases", "CompareUseCases"]

"""
Interfaz del record store.
Define el contrato de persistencia que consumen los motores de sync y la
reconciliacion. Los motores reciben una referencia; no controlan su ciclo de vida.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from intake_bridge.domain.entities.records import AppointmentRecord, LeadRecord, Owner


class IRecordStore(ABC):
    """
    Operaciones de persistencia sobre owners, citas y leads.

    Semantica requerida:
    - upsert por clave unica (owner_id, source_id) para citas
    - insercion en lote con skip de duplicados para leads
    - upsert de owner por su clave natural (external_key)
    """

    @abstractmethod
    def upsert_owner(self, values: Dict[str, Any]) -> Owner:
        """
        Crea o actualiza un owner.

        Si `values["external_key"]` existe y ya hay un owner con esa clave,
        se actualiza ese owner (aunque el nombre haya cambiado).
        """

    @abstractmethod
    def get_owner(self, owner_id: int) -> Optional[Owner]:
        pass

    @abstractmethod
    def list_owners(self, active_only: bool = True) -> List[Owner]:
        pass

    @abstractmethod
    def update_owner(self, owner_id: int, values: Dict[str, Any]) -> Owner:
        pass

    @abstractmethod
    def upsert_appointments(self, owner_id: int, rows: Iterable[Dict[str, Any]]) -> int:
        """
        UPSERT de citas por (owner_id, source_id).

        Returns:
            int: Numero de filas escritas
        """

    @abstractmethod
    def insert_leads_skip_duplicates(self, owner_id: int, rows: Iterable[Dict[str, Any]]) -> int:
        """
        Inserta leads ignorando los (owner_id, source_id) ya existentes.

        Returns:
            int: Numero de filas efectivamente insertadas
        """

    @abstractmethod
    def list_appointments(self, owner_id: int, *, skip: int = 0, limit: Optional[int] = None) -> List[AppointmentRecord]:
        pass

    @abstractmethod
    def list_leads(self, owner_id: int, *, skip: int = 0, limit: Optional[int] = None) -> List[LeadRecord]:
        pass

    @abstractmethod
    def count_appointments(self, owner_id: int) -> int:
        pass

    @abstractmethod
    def count_leads(self, owner_id: int) -> int:
        pass

    @abstractmethod
    def get_owner_stats(self, owner_id: int) -> Dict[str, Any]:
        """
        Totales del owner: citas, leads, citas con/sin lead por email y
        ultima actualizacion de citas.
        """

    @abstractmethod
    def update_lead_crm_fields(
        self,
        lead_id: int,
        *,
        processed_flag: str,
        matched_count: str,
        summary_html: str,
    ) -> None:
        """Actualiza en sitio los campos que escribe la reconciliacion."""

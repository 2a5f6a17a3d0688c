"""
Tipos y utilidades puras para los pipelines de sync.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


class RetryClass(str, Enum):
    """
    Clasificación de una respuesta externa.

    Cada clase tiene su propia política en el bucle de reintentos.
    """

    SUCCESS = "success"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    TRANSIENT_SERVER = "transient_server"
    END_OF_DATA = "end_of_data"
    OTHER = "other"


class StopReason(str, Enum):
    """Motivo por el que terminó (sin error) un bucle de paginación."""

    END_OF_DATA = "end_of_data"
    REQUEST_CAP = "request_cap"


@dataclass
class PageCursor:
    """
    Progreso persistido de un owner para una fuente.

    - position: última página (citas) u offset (leads) completado
    - records: registros acumulados, indexados por id de origen
    """

    position: int = 0
    records: dict[str, dict[str, Any]] = field(default_factory=dict)

    def merge(self, records: list[dict[str, Any]], id_field: str) -> int:
        """
        Agrega registros al mapa (last-write-wins por id).

        Returns:
            int: Cuántos registros se omitieron por no traer id
        """
        skipped = 0
        for rec in records:
            rec_id = rec.get(id_field)
            if rec_id in (None, ""):
                skipped += 1
                continue
            self.records[str(rec_id)] = rec
        return skipped


Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class FieldMapping:
    """
    Define el mapeo de un campo del payload externo a una columna local.

    - source_field: nombre del campo en el payload
    - column: nombre de la columna en el record store
    - transform: función opcional para transformar el valor antes de persistir
    - default: valor si el campo falta o viene vacío
    """

    source_field: str
    column: str
    transform: Optional[Transform] = None
    default: Any = None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def map_record_to_row(payload: dict[str, Any], mappings: list[FieldMapping]) -> dict[str, Any]:
    """
    Mapea un payload externo a un dict listo para persistir.

    Se agrega siempre `raw_data` con el payload original.
    """
    row: dict[str, Any] = {}
    for m in mappings:
        raw = payload.get(m.source_field)
        if _is_blank(raw):
            row[m.column] = m.default
            continue
        row[m.column] = m.transform(raw) if m.transform else raw
    row["raw_data"] = payload
    return row


# ---------------------------------------------------------------------------
# Transformaciones comunes
# ---------------------------------------------------------------------------

def to_str(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def to_int(value: Any) -> Optional[int]:
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def to_float(value: Any) -> Optional[float]:
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if _is_blank(value):
        return None
    return str(value).strip().lower() in ("1", "true", "yes", "y")


def parse_crm_datetime(value: Any) -> Optional[datetime]:
    """
    Parsea fechas del CRM en formato 'YYYY-MM-DD HH:mm:ss' (sin zona).

    Retorna None si el valor no se puede interpretar.
    """
    if _is_blank(value):
        return None
    try:
        return datetime.fromisoformat(str(value).strip().replace(" ", "T"))
    except ValueError:
        return None

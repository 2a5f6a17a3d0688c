"""
Cursor durable por owner y fuente, persistido en archivos JSON.

Layout:
    <DATA_DIR>/owners/<owner_key>/appointments.json   {"lastPage": N, "records": [...]}
    <DATA_DIR>/owners/<owner_key>/vtigerleads.json    {"lastOffset": N, "records": [...]}

Escritura atómica: se escribe un temporal en el mismo directorio y luego
`os.replace` sobre el destino, por lo que un corte a mitad de escritura nunca
deja un cursor corrupto.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from loguru import logger

from intake_bridge.shared.exceptions.sync import PersistenceError

from .types import PageCursor


@dataclass(frozen=True)
class CursorLayout:
    """Forma del documento de cursor de una fuente."""

    source: str
    filename: str
    position_key: str
    id_field: str


APPOINTMENTS_CURSOR = CursorLayout(
    source="appointments",
    filename="appointments.json",
    position_key="lastPage",
    id_field="Id",
)

LEADS_CURSOR = CursorLayout(
    source="leads",
    filename="vtigerleads.json",
    position_key="lastOffset",
    id_field="id",
)

CURSOR_LAYOUTS = {layout.source: layout for layout in (APPOINTMENTS_CURSOR, LEADS_CURSOR)}


def owner_dir(root_dir: Union[str, Path], owner_key: str) -> Path:
    """Directorio de trabajo de un owner (cursores + cache de sesión)."""
    return Path(root_dir) / "owners" / owner_key


def write_json_atomic(path: Path, payload: Any) -> None:
    """
    Escribe JSON de forma atómica (temporal + replace).

    Raises:
        PersistenceError: si el archivo no se pudo escribir
    """
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=path.name + ".",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_name = f.name
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise PersistenceError(f"No se pudo escribir {path}: {e}") from e
    finally:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def read_json_or_none(path: Path) -> Any:
    """Lee JSON; None si el archivo no existe o no es JSON válido."""
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"No se pudo leer {path}, se ignora: {e}")
        return None


class FileCursorStore:
    """
    Persistencia de PageCursor para una fuente.

    El mapa de registros es la autoridad de dedupe dentro de una corrida y
    entre corridas reanudadas: se indexa por el id nativo de la fuente.
    """

    def __init__(self, root_dir: Union[str, Path], layout: CursorLayout) -> None:
        self._root = Path(root_dir)
        self._layout = layout

    @property
    def layout(self) -> CursorLayout:
        return self._layout

    def path_for(self, owner_key: str) -> Path:
        return owner_dir(self._root, owner_key) / self._layout.filename

    def load(self, owner_key: str) -> PageCursor:
        """
        Carga el cursor. Archivo ausente o ilegible -> cursor en cero.
        """
        parsed = read_json_or_none(self.path_for(owner_key))
        if not isinstance(parsed, dict):
            return PageCursor()

        cursor = PageCursor(position=int(parsed.get(self._layout.position_key) or 0))
        raw_records = parsed.get("records") or []
        if isinstance(raw_records, list):
            cursor.merge([r for r in raw_records if isinstance(r, dict)], self._layout.id_field)
        return cursor

    def save(self, owner_key: str, position: int, records: dict[str, dict[str, Any]]) -> None:
        """
        Persiste posición + snapshot completo de registros de forma atómica.
        """
        payload = {
            self._layout.position_key: position,
            "records": list(records.values()),
        }
        write_json_atomic(self.path_for(owner_key), payload)

    def reset(self, owner_key: str) -> bool:
        """
        Elimina el cursor (la próxima corrida empieza desde cero).

        Returns:
            bool: True si existía un cursor
        """
        path = self.path_for(owner_key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"No se pudo eliminar {path}: {e}") from e
        logger.info(f"Cursor '{self._layout.source}' reseteado para owner {owner_key}")
        return True

    def describe(self, owner_key: str) -> dict[str, Any]:
        cursor = self.load(owner_key)
        return {
            "source": self._layout.source,
            "position_key": self._layout.position_key,
            "position": cursor.position,
            "records": len(cursor.records),
        }

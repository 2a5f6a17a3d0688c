"""
Script para inicializar la base de datos (crea tablas si no existen).

Para entornos con historial de migraciones usar `alembic upgrade head`.
"""
import sys
from pathlib import Path

from loguru import logger

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from intake_bridge.infrastructure.database.session import close_db, init_db


def main() -> int:
    """Función principal para inicializar la base de datos."""
    logger.info("Inicializando base de datos...")
    try:
        init_db()
        logger.success("Base de datos inicializada correctamente")
    finally:
        close_db()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

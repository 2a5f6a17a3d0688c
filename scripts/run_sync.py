"""
CLI: corre un sync o la reconciliacion para un owner, fuera del API.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) para corridas largas.
  - El API expone los mismos motores como jobs en background.

Variables de entorno:
  - DATABASE_URL (postgresql://... o postgres://...)
  - DATA_DIR (cursores y cache de sesion)

Ejecucion:
  python scripts/run_sync.py --owner-id 1 appointments
  python scripts/run_sync.py --owner-id 1 leads --reset-cursor
  python scripts/run_sync.py --owner-id 1 reconcile --write-back
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

load_dotenv(_ROOT / ".env", override=False)

from intake_bridge.application.dto.reconciliation_dto import ReconciliationResultDTO
from intake_bridge.application.services.reconciliation_service import build_reconciliation_service
from intake_bridge.core.config import settings
from intake_bridge.infrastructure.database.session import SessionLocal, init_db
from intake_bridge.infrastructure.external.intakeq.appointment_sync import build_appointment_sync_engine
from intake_bridge.infrastructure.external.sync_common.cursor_store import CURSOR_LAYOUTS, FileCursorStore
from intake_bridge.infrastructure.external.vtiger.lead_sync import build_lead_sync_engine
from intake_bridge.infrastructure.repositories.sql_record_store import SqlRecordStore
from intake_bridge.shared.exceptions.base import AppException


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync de citas/leads y reconciliacion por owner.")
    parser.add_argument("--owner-id", type=int, required=True, help="ID del owner en la base local.")
    parser.add_argument("command", choices=["appointments", "leads", "reconcile"])
    parser.add_argument(
        "--reset-cursor",
        action="store_true",
        help="Borra el cursor de la fuente antes de correr (solo appointments/leads).",
    )
    parser.add_argument(
        "--write-back",
        action="store_true",
        help="Escribe los resultados de la reconciliacion en el CRM.",
    )
    args = parser.parse_args()

    init_db()
    store = SqlRecordStore(SessionLocal)

    owner = store.get_owner(args.owner_id)
    if owner is None:
        logger.error(f"Owner {args.owner_id} no existe")
        return 1

    if args.reset_cursor and args.command in CURSOR_LAYOUTS:
        removed = FileCursorStore(settings.data_root, CURSOR_LAYOUTS[args.command]).reset(owner.storage_key)
        logger.info(f"Cursor '{args.command}' {'borrado' if removed else 'no existia'}")

    try:
        if args.command == "appointments":
            result = build_appointment_sync_engine(store, app_settings=settings).run(owner).to_dict()
        elif args.command == "leads":
            result = build_lead_sync_engine(store, app_settings=settings).run(owner).to_dict()
        else:
            reconciliation = build_reconciliation_service(store, settings).reconcile(
                owner, write_back=args.write_back
            )
            result = ReconciliationResultDTO.model_validate(reconciliation).model_dump()["summary"]
    except AppException as e:
        logger.error(f"{e.error_code}: {e.message}")
        return 2

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

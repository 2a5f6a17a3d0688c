"""
Motor de sincronización de citas (API de citas -> record store).

Por cada página:
1. merge en el mapa del cursor (last-write-wins por Id)
2. UPSERT en el record store
3. persistencia atómica del cursor
4. pausa fija + jitter

Termina por fin de datos, error fatal o tope de requests (parada suave).
La siguiente corrida arranca en `lastPage + 1`.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

import requests
from loguru import logger

from intake_bridge.core.config import Settings, settings
from intake_bridge.domain.entities.records import Owner
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.infrastructure.external.sync_common.cursor_store import (
    APPOINTMENTS_CURSOR,
    FileCursorStore,
)
from intake_bridge.infrastructure.external.sync_common.rate_limit import RequestBudget, pace
from intake_bridge.infrastructure.external.sync_common.retry import Sleeper
from intake_bridge.infrastructure.external.sync_common.types import StopReason
from intake_bridge.shared.exceptions.domain import ValidationException
from intake_bridge.shared.exceptions.sync import QuotaExceeded

from .appointments_client import IntakeQClient, IntakeQCredentials, build_intakeq_policy
from .field_mappings import APPOINTMENT_ID_FIELD, map_appointment


@dataclass(frozen=True)
class AppointmentSyncResult:
    owner_id: int
    start_page: int
    last_page: int
    pages: int
    requests: int
    fetched_records: int
    upserted_rows: int
    stored_records: int
    stop_reason: StopReason

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["stop_reason"] = self.stop_reason.value
        return data


class AppointmentSyncEngine:
    """
    Orquestador del fetch de citas para un owner.

    El record store es prestado: el motor no abre ni cierra conexiones.
    """

    def __init__(
        self,
        *,
        store: IRecordStore,
        cursor_store: FileCursorStore,
        client_factory: Callable[[Owner], IntakeQClient],
        max_requests: int = 500,
        page_delay_s: float = 7.0,
        jitter_s: float = 2.0,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._store = store
        self._cursors = cursor_store
        self._client_factory = client_factory
        self._max_requests = max_requests
        self._page_delay_s = page_delay_s
        self._jitter_s = jitter_s
        self._sleep = sleep

    def run(self, owner: Owner) -> AppointmentSyncResult:
        if not owner.has_appointments_credentials:
            raise ValidationException(
                f"El owner {owner.id} no tiene credenciales de la API de citas",
                field="intakeq_key",
            )

        client = self._client_factory(owner)
        cursor = self._cursors.load(owner.storage_key)
        start_page = cursor.position + 1
        page = start_page
        budget = RequestBudget(self._max_requests)

        pages = 0
        fetched = 0
        upserted = 0
        stop_reason = StopReason.END_OF_DATA

        logger.info(
            f"Sync de citas owner {owner.id} ({owner.name}) desde página {start_page} "
            f"(completadas previamente: {cursor.position})"
        )

        while True:
            try:
                budget.consume()
            except QuotaExceeded as e:
                logger.warning(f"🛑 Owner {owner.id}: {e.message}. Se reanuda en página {page}")
                stop_reason = StopReason.REQUEST_CAP
                break

            records = client.fetch_page(page)
            if not records:
                logger.info(f"No hay más citas (página {page} vacía)")
                break

            skipped = cursor.merge(records, APPOINTMENT_ID_FIELD)
            if skipped:
                logger.warning(f"Página {page}: {skipped} citas sin '{APPOINTMENT_ID_FIELD}' omitidas")

            rows = [map_appointment(r) for r in records if r.get(APPOINTMENT_ID_FIELD) not in (None, "")]
            upserted += self._store.upsert_appointments(owner.id, rows)

            cursor.position = page
            self._cursors.save(owner.storage_key, cursor.position, cursor.records)

            pages += 1
            fetched += len(records)
            logger.info(
                f"✔ Owner {owner.id} | página {page} | {len(records)} citas | "
                f"total: {len(cursor.records)} | requests restantes: {budget.remaining}"
            )

            page += 1
            pace(self._page_delay_s, self._jitter_s, self._sleep)

        result = AppointmentSyncResult(
            owner_id=owner.id,
            start_page=start_page,
            last_page=cursor.position,
            pages=pages,
            requests=budget.used,
            fetched_records=fetched,
            upserted_rows=upserted,
            stored_records=len(cursor.records),
            stop_reason=stop_reason,
        )
        logger.success(
            f"Sync de citas owner {owner.id} terminado: {pages} páginas, "
            f"{result.stored_records} citas únicas, {result.requests} requests ({stop_reason.value})"
        )
        return result


def build_appointment_sync_engine(
    store: IRecordStore,
    *,
    app_settings: Optional[Settings] = None,
    http_session: Optional[requests.Session] = None,
    sleep: Sleeper = time.sleep,
) -> AppointmentSyncEngine:
    """
    Construye el motor a partir de la configuración.
    """
    cfg = app_settings or settings
    policy = build_intakeq_policy(cfg)

    def client_factory(owner: Owner) -> IntakeQClient:
        return IntakeQClient(
            IntakeQCredentials(api_key=owner.intakeq_key, appointments_url=owner.appointments_url),
            policy=policy,
            session=http_session,
            timeout_s=cfg.HTTP_TIMEOUT_SECONDS,
            sleep=sleep,
        )

    return AppointmentSyncEngine(
        store=store,
        cursor_store=FileCursorStore(cfg.data_root, APPOINTMENTS_CURSOR),
        client_factory=client_factory,
        max_requests=cfg.FETCH_MAX_REQUESTS_PER_RUN,
        page_delay_s=cfg.FETCH_PAGE_DELAY_SECONDS,
        jitter_s=cfg.FETCH_JITTER_SECONDS,
        sleep=sleep,
    )

"""
Motor de sincronización de leads (CRM -> record store).

Paginación por offset con `SELECT * FROM Leads LIMIT <offset>,<batch>;`.
Por cada página: insert con skip de duplicados, luego append al cursor con el
nuevo offset (escritura atómica), luego pausa. Un corte en cualquier punto
reanuda desde el último offset persistido sin perder ni duplicar leads.
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
    LEADS_CURSOR,
    FileCursorStore,
)
from intake_bridge.infrastructure.external.sync_common.rate_limit import RequestBudget, pace
from intake_bridge.infrastructure.external.sync_common.retry import Sleeper
from intake_bridge.infrastructure.external.sync_common.types import FieldMapping, StopReason
from intake_bridge.shared.exceptions.domain import ValidationException
from intake_bridge.shared.exceptions.sync import QuotaExceeded

from .field_mappings import LEAD_ID_FIELD, build_lead_field_mappings, map_lead
from .vtiger_client import VtigerClient, build_vtiger_client


@dataclass(frozen=True)
class LeadSyncResult:
    owner_id: int
    start_offset: int
    last_offset: int
    pages: int
    requests: int
    fetched_records: int
    inserted_rows: int
    stored_records: int
    stop_reason: StopReason

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["stop_reason"] = self.stop_reason.value
        return data


class LeadSyncEngine:
    def __init__(
        self,
        *,
        store: IRecordStore,
        cursor_store: FileCursorStore,
        client_factory: Callable[[Owner], VtigerClient],
        field_mappings: list[FieldMapping],
        batch_size: int = 50,
        max_requests: int = 500,
        page_delay_s: float = 7.0,
        jitter_s: float = 2.0,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._store = store
        self._cursors = cursor_store
        self._client_factory = client_factory
        self._mappings = field_mappings
        self._batch_size = batch_size
        self._max_requests = max_requests
        self._page_delay_s = page_delay_s
        self._jitter_s = jitter_s
        self._sleep = sleep

    def run(self, owner: Owner) -> LeadSyncResult:
        if not owner.has_crm_credentials:
            raise ValidationException(
                f"El owner {owner.id} no tiene credenciales del CRM (url/usuario/access key)",
                field="vtiger_url",
            )

        client = self._client_factory(owner)
        cursor = self._cursors.load(owner.storage_key)
        start_offset = cursor.position
        offset = start_offset
        budget = RequestBudget(self._max_requests)

        pages = 0
        fetched = 0
        inserted = 0
        stop_reason = StopReason.END_OF_DATA

        logger.info(f"Sync de leads owner {owner.id} ({owner.name}) desde offset {offset}")

        while True:
            try:
                budget.consume()
            except QuotaExceeded as e:
                logger.warning(f"🛑 Owner {owner.id}: {e.message}. Se reanuda en offset {offset}")
                stop_reason = StopReason.REQUEST_CAP
                break

            batch = client.query_leads(offset, self._batch_size)
            if not batch:
                logger.info(f"No hay más leads (offset {offset})")
                break

            rows = [map_lead(r, self._mappings) for r in batch if r.get(LEAD_ID_FIELD) not in (None, "")]
            inserted += self._store.insert_leads_skip_duplicates(owner.id, rows)

            skipped = cursor.merge(batch, LEAD_ID_FIELD)
            if skipped:
                logger.warning(f"Offset {offset}: {skipped} leads sin '{LEAD_ID_FIELD}' omitidos")

            offset += len(batch)
            cursor.position = offset
            self._cursors.save(owner.storage_key, cursor.position, cursor.records)

            pages += 1
            fetched += len(batch)
            logger.info(
                f"✔ Owner {owner.id} | offset {offset} | {len(batch)} leads | total: {len(cursor.records)}"
            )

            if len(batch) < self._batch_size:
                logger.info(f"Lote incompleto ({len(batch)}/{self._batch_size}): no hay más leads")
                break

            pace(self._page_delay_s, self._jitter_s, self._sleep)

        result = LeadSyncResult(
            owner_id=owner.id,
            start_offset=start_offset,
            last_offset=cursor.position,
            pages=pages,
            requests=budget.used,
            fetched_records=fetched,
            inserted_rows=inserted,
            stored_records=len(cursor.records),
            stop_reason=stop_reason,
        )
        logger.success(
            f"Sync de leads owner {owner.id} terminado: {pages} páginas, "
            f"{result.stored_records} leads en cursor, {inserted} insertados ({stop_reason.value})"
        )
        return result


def build_lead_sync_engine(
    store: IRecordStore,
    *,
    app_settings: Optional[Settings] = None,
    http_session: Optional[requests.Session] = None,
    sleep: Sleeper = time.sleep,
) -> LeadSyncEngine:
    cfg = app_settings or settings

    def client_factory(owner: Owner) -> VtigerClient:
        return build_vtiger_client(owner, cfg, http_session=http_session, sleep=sleep)

    return LeadSyncEngine(
        store=store,
        cursor_store=FileCursorStore(cfg.data_root, LEADS_CURSOR),
        client_factory=client_factory,
        field_mappings=build_lead_field_mappings(cfg),
        batch_size=cfg.VTIGER_BATCH_SIZE,
        max_requests=cfg.FETCH_MAX_REQUESTS_PER_RUN,
        page_delay_s=cfg.FETCH_PAGE_DELAY_SECONDS,
        jitter_s=cfg.FETCH_JITTER_SECONDS,
        sleep=sleep,
    )

"""
Cliente de webservices del CRM: `query` (lectura paginada) y `update`.

La sesión se pide de forma perezosa al primer request; ante un rechazo de
autenticación se fuerza un único re-login por llamada.
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import requests

from intake_bridge.core.config import Settings
from intake_bridge.domain.entities.records import Owner
from intake_bridge.infrastructure.external.sync_common.cursor_store import owner_dir
from intake_bridge.infrastructure.external.sync_common.retry import (
    ExponentialBackoff,
    LinearBackoff,
    RetryPolicy,
    Sleeper,
    classify_vtiger_response,
    run_with_retry,
)
from intake_bridge.infrastructure.external.sync_common.types import RetryClass
from intake_bridge.shared.exceptions.sync import UnexpectedResponseError

from .session_manager import VtigerCredentials, VtigerSessionManager


def build_vtiger_query_policy(app_settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        source="vtiger",
        rate_limit_retries=app_settings.VTIGER_MAX_RATE_LIMIT_RETRIES,
        rate_limit_backoff=ExponentialBackoff(
            base_s=app_settings.VTIGER_BACKOFF_BASE_SECONDS,
            jitter_s=app_settings.VTIGER_BACKOFF_JITTER_SECONDS,
        ),
        transient_retries=app_settings.VTIGER_MAX_TRANSIENT_RETRIES,
        transient_backoff=LinearBackoff(base_s=app_settings.VTIGER_BACKOFF_BASE_SECONDS),
    )


# El write-back no reintenta 429/5xx: el fallo queda registrado por lead.
VTIGER_UPDATE_POLICY = RetryPolicy(
    source="vtiger-update",
    rate_limit_retries=0,
    rate_limit_backoff=LinearBackoff(base_s=0),
    transient_retries=0,
    transient_backoff=LinearBackoff(base_s=0),
)


def build_leads_query(offset: int, limit: int) -> str:
    return f"SELECT * FROM Leads LIMIT {offset},{limit};"


class VtigerClient:
    def __init__(
        self,
        url: str,
        sessions: VtigerSessionManager,
        *,
        query_policy: RetryPolicy,
        update_policy: RetryPolicy = VTIGER_UPDATE_POLICY,
        http_session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._url = url
        self._sessions = sessions
        self._query_policy = query_policy
        self._update_policy = update_policy
        self._http = http_session or requests.Session()
        self._timeout_s = timeout_s
        self._sleep = sleep

    @property
    def sessions(self) -> VtigerSessionManager:
        return self._sessions

    def query(self, sql: str) -> list[dict[str, Any]]:
        """
        Ejecuta una query de webservices.

        Returns:
            list: Filas del resultado; lista vacía = fin de datos
        """

        def send() -> requests.Response:
            return self._http.get(
                self._url,
                params={
                    "operation": "query",
                    "sessionName": self._sessions.get_session(),
                    "query": sql,
                },
                timeout=self._timeout_s,
            )

        outcome = run_with_retry(
            send,
            classify_vtiger_response,
            self._query_policy,
            refresh_session=self._sessions.refresh,
            sleep=self._sleep,
        )
        if outcome.kind is RetryClass.END_OF_DATA:
            return []
        result = outcome.attempt.body.get("result")
        if not isinstance(result, list):
            return []
        return [row for row in result if isinstance(row, dict)]

    def query_leads(self, offset: int, limit: int) -> list[dict[str, Any]]:
        return self.query(build_leads_query(offset, limit))

    def update(self, element: dict[str, Any]) -> dict[str, Any]:
        """
        Actualiza una entidad (`element` debe incluir `id`).

        Ante rechazo de sesión: invalidar + re-login + un único reintento.

        Raises:
            SyncException: cualquier fallo (auth tras el reintento, 429, 5xx, respuesta inválida)
        """

        def send() -> requests.Response:
            return self._http.post(
                self._url,
                data={
                    "operation": "update",
                    "sessionName": self._sessions.get_session(),
                    "element": json.dumps(element),
                },
                timeout=self._timeout_s,
            )

        def reauthenticate() -> None:
            self._sessions.invalidate()
            self._sessions.get_session()

        outcome = run_with_retry(
            send,
            classify_vtiger_response,
            self._update_policy,
            refresh_session=reauthenticate,
            sleep=self._sleep,
        )
        if outcome.kind is not RetryClass.SUCCESS:
            raise UnexpectedResponseError(
                f"CRM update de {element.get('id')} sin éxito ({outcome.attempt.describe()})",
                details={"id": element.get("id")},
            )
        return outcome.attempt.body.get("result") or {}


def build_vtiger_client(
    owner: Owner,
    app_settings: Settings,
    *,
    http_session: Optional[requests.Session] = None,
    sleep: Sleeper = time.sleep,
) -> VtigerClient:
    """Cliente del CRM de un owner; la cache de sesión vive en su directorio."""
    sessions = VtigerSessionManager(
        VtigerCredentials(
            url=owner.vtiger_url,
            username=owner.vtiger_username,
            access_key=owner.vtiger_access_key,
        ),
        owner_dir(app_settings.data_root, owner.storage_key),
        http_session=http_session,
        timeout_s=app_settings.HTTP_TIMEOUT_SECONDS,
        ttl_hours=app_settings.VTIGER_SESSION_TTL_HOURS,
    )
    return VtigerClient(
        owner.vtiger_url,
        sessions,
        query_policy=build_vtiger_query_policy(app_settings),
        http_session=http_session,
        timeout_s=app_settings.HTTP_TIMEOUT_SECONDS,
        sleep=sleep,
    )

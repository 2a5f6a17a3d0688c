"""
Cliente HTTP mínimo de la API de citas.

- requests + timeout por request
- 429: respeta Retry-After (default 60s), acotado
- 5xx / timeout: backoff lineal, acotado
- 401/403: fatal (API key inválida)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

import requests

from intake_bridge.core.config import Settings
from intake_bridge.infrastructure.external.sync_common.retry import (
    LinearBackoff,
    RetryAfterBackoff,
    RetryPolicy,
    Sleeper,
    classify_intakeq_response,
    run_with_retry,
)
from intake_bridge.infrastructure.external.sync_common.types import RetryClass


@dataclass(frozen=True)
class IntakeQCredentials:
    api_key: str
    appointments_url: str


def build_intakeq_policy(app_settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        source="intakeq",
        rate_limit_retries=app_settings.FETCH_RATE_LIMIT_RETRIES,
        rate_limit_backoff=RetryAfterBackoff(default_s=app_settings.FETCH_RETRY_AFTER_DEFAULT_SECONDS),
        transient_retries=app_settings.FETCH_TRANSIENT_RETRIES,
        transient_backoff=LinearBackoff(base_s=app_settings.FETCH_PAGE_DELAY_SECONDS),
    )


class IntakeQClient:
    """
    Cliente de la API de citas. Una llamada = una página.
    """

    def __init__(
        self,
        credentials: IntakeQCredentials,
        *,
        policy: RetryPolicy,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._creds = credentials
        self._policy = policy
        self._session = session or requests.Session()
        self._timeout_s = timeout_s
        self._sleep = sleep

    def fetch_page(self, page: int) -> list[dict[str, Any]]:
        """
        Trae una página de citas.

        Returns:
            list: Citas de la página; lista vacía = fin de datos
        """
        headers = {
            "X-Auth-Key": self._creds.api_key,
            "Content-Type": "application/json",
        }

        def send() -> requests.Response:
            return self._session.get(
                self._creds.appointments_url,
                params={"page": page},
                headers=headers,
                timeout=self._timeout_s,
            )

        outcome = run_with_retry(send, classify_intakeq_response, self._policy, sleep=self._sleep)
        if outcome.kind is RetryClass.END_OF_DATA:
            return []
        return [rec for rec in outcome.attempt.body if isinstance(rec, dict)]

"""
Bucle de reintentos acotado, compartido por todas las fuentes.

Cada fuente aporta una función de clasificación `(status, body) -> RetryClass`;
el bucle decide qué hacer con cada clase según una RetryPolicy:

- SUCCESS / END_OF_DATA: retorna al caller
- AUTHENTICATION: un único refresh de sesión forzado; si vuelve a fallar, AuthenticationError
- RATE_LIMIT: backoff de la política, acotado; al agotarse, RateLimitError
- TRANSIENT_SERVER: backoff de la política, acotado; al agotarse, TransientServerError
- OTHER: UnexpectedResponseError inmediato
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Protocol

import requests
from loguru import logger

from intake_bridge.shared.exceptions.sync import (
    AuthenticationError,
    RateLimitError,
    TransientServerError,
    UnexpectedResponseError,
)

from .types import RetryClass

Sleeper = Callable[[float], None]


@dataclass
class HttpAttempt:
    """Resultado crudo de un intento HTTP (respuesta o fallo de transporte)."""

    status_code: Optional[int]
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    transport_error: Optional[BaseException] = None

    @classmethod
    def from_response(cls, resp: requests.Response) -> "HttpAttempt":
        try:
            body = resp.json()
        except ValueError:
            body = resp.text
        return cls(status_code=resp.status_code, body=body, headers=resp.headers)

    @classmethod
    def from_transport_error(cls, exc: BaseException) -> "HttpAttempt":
        return cls(status_code=None, transport_error=exc)

    def describe(self) -> str:
        if self.transport_error is not None:
            return f"{type(self.transport_error).__name__}: {self.transport_error}"
        body = self.body if isinstance(self.body, (dict, list)) else str(self.body or "")[:300]
        return f"status={self.status_code} body={body}"


Classifier = Callable[[HttpAttempt], RetryClass]


class BackoffStrategy(Protocol):
    def delay(self, attempt: int, http: HttpAttempt) -> float:
        ...


@dataclass(frozen=True)
class RetryAfterBackoff:
    """Respeta el header Retry-After (segundos); si falta, usa `default_s`."""

    default_s: float = 60.0

    def delay(self, attempt: int, http: HttpAttempt) -> float:
        raw = http.headers.get("Retry-After") if http.headers else None
        if raw:
            try:
                return max(0.0, float(raw))
            except (TypeError, ValueError):
                pass
        return self.default_s


@dataclass(frozen=True)
class ExponentialBackoff:
    """`base_s * 2^attempt + U(0, jitter_s)`; attempt empieza en 1."""

    base_s: float
    jitter_s: float = 0.0

    def delay(self, attempt: int, http: HttpAttempt) -> float:
        jitter = random.uniform(0, self.jitter_s) if self.jitter_s > 0 else 0.0
        return self.base_s * (2 ** attempt) + jitter


@dataclass(frozen=True)
class LinearBackoff:
    """`base_s * attempt`; attempt empieza en 1."""

    base_s: float

    def delay(self, attempt: int, http: HttpAttempt) -> float:
        return self.base_s * attempt


@dataclass(frozen=True)
class RetryPolicy:
    source: str
    rate_limit_retries: int
    rate_limit_backoff: BackoffStrategy
    transient_retries: int
    transient_backoff: BackoffStrategy


@dataclass
class RetryOutcome:
    kind: RetryClass
    attempt: HttpAttempt
    retries: int = 0


def run_with_retry(
    send: Callable[[], requests.Response],
    classify: Classifier,
    policy: RetryPolicy,
    *,
    refresh_session: Optional[Callable[[], Any]] = None,
    sleep: Sleeper = time.sleep,
) -> RetryOutcome:
    """
    Ejecuta `send` hasta obtener SUCCESS o END_OF_DATA, o agotar los límites.

    `send` se vuelve a invocar en cada intento, por lo que debe leer la sesión
    vigente (tras un refresh) cada vez.

    Raises:
        AuthenticationError: auth inválida sin refresh posible o tras el refresh
        RateLimitError: 429 tras `rate_limit_retries` reintentos
        TransientServerError: 5xx/timeout tras `transient_retries` reintentos
        UnexpectedResponseError: respuesta no clasificable
    """
    rate_retries = 0
    transient_retries = 0
    refreshed = False

    while True:
        try:
            http = HttpAttempt.from_response(send())
        except (requests.Timeout, requests.ConnectionError) as e:
            http = HttpAttempt.from_transport_error(e)
        except requests.RequestException as e:
            raise UnexpectedResponseError(
                f"{policy.source}: request inválido ({type(e).__name__}: {e})",
                details={"source": policy.source},
            ) from e

        kind = classify(http)
        retries = rate_retries + transient_retries + int(refreshed)

        if kind in (RetryClass.SUCCESS, RetryClass.END_OF_DATA):
            return RetryOutcome(kind=kind, attempt=http, retries=retries)

        if kind is RetryClass.AUTHENTICATION:
            if refresh_session is None or refreshed:
                raise AuthenticationError(
                    f"{policy.source}: autenticación rechazada ({http.describe()})",
                    details={"source": policy.source, "status": http.status_code, "refreshed": refreshed},
                )
            refreshed = True
            logger.warning(f"{policy.source}: sesión rechazada, forzando re-login")
            refresh_session()
            continue

        if kind is RetryClass.RATE_LIMIT:
            if rate_retries >= policy.rate_limit_retries:
                raise RateLimitError(
                    f"{policy.source}: rate limit (429) tras {rate_retries} reintentos",
                    details={"source": policy.source, "retries": rate_retries},
                )
            rate_retries += 1
            wait_s = policy.rate_limit_backoff.delay(rate_retries, http)
            logger.warning(
                f"{policy.source}: 429, reintento {rate_retries}/{policy.rate_limit_retries} en {wait_s:.1f}s"
            )
            sleep(wait_s)
            continue

        if kind is RetryClass.TRANSIENT_SERVER:
            if transient_retries >= policy.transient_retries:
                raise TransientServerError(
                    f"{policy.source}: error transitorio tras {transient_retries} reintentos ({http.describe()})",
                    details={"source": policy.source, "status": http.status_code, "retries": transient_retries},
                )
            transient_retries += 1
            wait_s = policy.transient_backoff.delay(transient_retries, http)
            logger.warning(
                f"{policy.source}: {http.describe()}, reintento "
                f"{transient_retries}/{policy.transient_retries} en {wait_s:.1f}s"
            )
            sleep(wait_s)
            continue

        raise UnexpectedResponseError(
            f"{policy.source}: respuesta inesperada ({http.describe()})",
            details={"source": policy.source, "status": http.status_code},
        )


# ---------------------------------------------------------------------------
# Clasificadores por fuente
# ---------------------------------------------------------------------------

def _is_server_error(status: Optional[int]) -> bool:
    return status is not None and 500 <= status < 600


def classify_intakeq_response(http: HttpAttempt) -> RetryClass:
    """
    API de citas: lista no vacía = página con datos; vacía o no-lista = fin.
    """
    if http.transport_error is not None:
        return RetryClass.TRANSIENT_SERVER

    status = http.status_code
    if status is not None and 200 <= status < 300:
        if isinstance(http.body, list) and http.body:
            return RetryClass.SUCCESS
        return RetryClass.END_OF_DATA
    if status in (401, 403):
        return RetryClass.AUTHENTICATION
    if status == 429:
        return RetryClass.RATE_LIMIT
    if _is_server_error(status):
        return RetryClass.TRANSIENT_SERVER
    return RetryClass.OTHER


_VTIGER_AUTH_CODES = {"AUTHENTICATION_REQUIRED", "AUTHENTICATION", "INVALID_SESSIONID", "INVALID_AUTH_TOKEN"}


def _vtiger_error(body: Any) -> tuple[Optional[str], str]:
    if not isinstance(body, dict):
        return None, ""
    err = body.get("error") or {}
    if not isinstance(err, dict):
        return None, str(err)
    return err.get("code"), str(err.get("message") or "")


def classify_vtiger_response(http: HttpAttempt) -> RetryClass:
    """
    CRM: `success=true` es éxito; `success=false` sin código de error es fin de datos.
    """
    if http.transport_error is not None:
        return RetryClass.TRANSIENT_SERVER

    body = http.body
    if isinstance(body, dict) and body.get("success") is True:
        return RetryClass.SUCCESS

    status = http.status_code
    code, message = _vtiger_error(body)
    if status in (401, 403) or (code and code.upper() in _VTIGER_AUTH_CODES) or "session" in message.lower():
        return RetryClass.AUTHENTICATION
    if status == 429:
        return RetryClass.RATE_LIMIT
    if _is_server_error(status):
        return RetryClass.TRANSIENT_SERVER
    if isinstance(body, dict) and body.get("success") is False and not code:
        return RetryClass.END_OF_DATA
    return RetryClass.OTHER

"""
Manejo de la sesión del CRM.

Login en dos pasos:
1. GET  ?operation=getchallenge&username=U          -> token
2. POST operation=login, username=U, accessKey=md5(token + accessKey) -> sessionName

La sesión se cachea en `<owner dir>/vtiger_session.json` con un TTL (24h por
defecto). Ante un rechazo de autenticación el caller fuerza `refresh()`, que
ignora el TTL.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import requests
from loguru import logger

from intake_bridge.infrastructure.external.sync_common.cursor_store import (
    read_json_or_none,
    write_json_atomic,
)
from intake_bridge.shared.exceptions.sync import AuthenticationError, TransientServerError

SESSION_CACHE_FILENAME = "vtiger_session.json"


@dataclass(frozen=True)
class VtigerCredentials:
    url: str
    username: str
    access_key: str


class SessionState(str, Enum):
    ABSENT = "absent"
    ACQUIRING = "acquiring"
    VALID = "valid"
    EXPIRED = "expired"


def md5_hex(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


class VtigerSessionManager:
    """
    Sesión del CRM de un owner, con cache en disco.
    """

    def __init__(
        self,
        credentials: VtigerCredentials,
        cache_dir: Path,
        *,
        http_session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        ttl_hours: float = 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._creds = credentials
        self._cache_path = Path(cache_dir) / SESSION_CACHE_FILENAME
        self._http = http_session or requests.Session()
        self._timeout_s = timeout_s
        self._ttl_s = ttl_hours * 3600
        self._clock = clock
        self._acquiring = False
        self.logins = 0

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    @property
    def state(self) -> SessionState:
        if self._acquiring:
            return SessionState.ACQUIRING
        cached = self._read_cache()
        if cached is None:
            return SessionState.ABSENT
        if self._is_expired(cached[1]):
            return SessionState.EXPIRED
        return SessionState.VALID

    def get_session(self) -> str:
        """Retorna la sesión cacheada si sigue vigente; si no, hace login."""
        cached = self._read_cache()
        if cached is not None and not self._is_expired(cached[1]):
            return cached[0]
        return self._login()

    def refresh(self) -> str:
        """Fuerza un login nuevo, ignorando el TTL."""
        return self._login()

    def invalidate(self) -> None:
        """Descarta la sesión cacheada."""
        if self._cache_path.exists():
            try:
                self._cache_path.unlink()
            except OSError as e:
                logger.warning(f"No se pudo borrar {self._cache_path}: {e}")

    def _is_expired(self, timestamp: float) -> bool:
        return self._clock() - timestamp >= self._ttl_s

    def _read_cache(self) -> Optional[tuple[str, float]]:
        cached = read_json_or_none(self._cache_path)
        if not isinstance(cached, dict):
            return None
        session_name = cached.get("sessionName")
        timestamp = cached.get("timestamp")
        if not session_name or not isinstance(timestamp, (int, float)):
            return None
        return str(session_name), float(timestamp)

    def _login(self) -> str:
        self._acquiring = True
        try:
            token = self._get_challenge()
            session_name = self._post_login(token)
        finally:
            self._acquiring = False

        write_json_atomic(self._cache_path, {"sessionName": session_name, "timestamp": self._clock()})
        self.logins += 1
        logger.info(f"Sesión CRM obtenida para '{self._creds.username}'")
        return session_name

    def _call(self, step: str, method: str, **kwargs) -> dict:
        try:
            resp = getattr(self._http, method)(self._creds.url, timeout=self._timeout_s, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientServerError(f"CRM {step} sin respuesta: {e}") from e
        except requests.RequestException as e:
            raise AuthenticationError(f"CRM {step} no se pudo enviar: {e}", details={"url": self._creds.url}) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthenticationError(f"CRM {step} devolvió una respuesta no JSON (status={resp.status_code})") from e

        result = data.get("result") if isinstance(data, dict) and data.get("success") else None
        if not isinstance(result, dict):
            raise AuthenticationError(f"CRM {step} falló", details={"status": resp.status_code})
        return result

    def _get_challenge(self) -> str:
        result = self._call(
            "challenge",
            "get",
            params={"operation": "getchallenge", "username": self._creds.username},
        )
        token = result.get("token")
        if not token:
            raise AuthenticationError("CRM challenge sin token")
        return token

    def _post_login(self, token: str) -> str:
        result = self._call(
            "login",
            "post",
            data={
                "operation": "login",
                "username": self._creds.username,
                "accessKey": md5_hex(token + self._creds.access_key),
            },
        )
        session_name = result.get("sessionName")
        if not session_name:
            raise AuthenticationError("CRM login sin sessionName")
        return session_name

"""
Configuración de fixtures para pytest.

- Base de datos: SQLite en memoria (StaticPool) con las tablas reales.
- HTTP saliente: sesiones falsas con respuestas guionadas; nunca hay red.
- Archivos de cursor/sesión: `tmp_path` de cada test.
"""
import json
import os
import re
from typing import Any, Callable, Dict, List, Optional

# La app crea el engine global al importarse: en tests apunta a SQLite.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from intake_bridge.application.use_cases.sync_job_use_cases import SyncJobUseCases
from intake_bridge.core.config import Settings
from intake_bridge.infrastructure.database.session import build_session_factory, init_db
from intake_bridge.infrastructure.external.vtiger.session_manager import md5_hex
from intake_bridge.infrastructure.repositories.sql_record_store import SqlRecordStore


CRM_USERNAME = "admin"
CRM_ACCESS_KEY = "secret-access-key"
CRM_TOKEN = "challenge-token"

_NO_JSON = object()


class FakeResponse:
    """Respuesta mínima compatible con lo que leen los clientes HTTP."""

    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = _NO_JSON,
        headers: Optional[Dict[str, str]] = None,
        text: str = "",
    ):
        self.status_code = status_code
        self._json = json_body
        self.headers = headers or {}
        self.text = text if json_body is _NO_JSON else json.dumps(json_body)

    def json(self) -> Any:
        if self._json is _NO_JSON:
            raise ValueError("respuesta sin JSON")
        return self._json


class FakeHttpSession:
    """
    Reemplazo de requests.Session: delega cada request a un handler
    `(method, url, params, data) -> FakeResponse` y registra las llamadas.
    """

    def __init__(self, handler: Callable[..., FakeResponse]):
        self._handler = handler
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"method": "GET", "url": url, "params": dict(params or {}), "headers": headers or {}})
        return self._handler("GET", url, dict(params or {}), {})

    def post(self, url, data=None, timeout=None, **kwargs):
        self.calls.append({"method": "POST", "url": url, "data": dict(data or {})})
        return self._handler("POST", url, {}, dict(data or {}))


class FakeAppointmentsApi:
    """
    API de citas simulada: `pages[n - 1]` es la página n.

    `script[page]` encola respuestas (429, 500, ...) que se devuelven antes
    de la página real.
    """

    def __init__(self, pages: List[List[Dict[str, Any]]], api_key: str = "iq-key"):
        self.pages = pages
        self.api_key = api_key
        self.script: Dict[int, List[FakeResponse]] = {}
        self.requested_pages: List[int] = []
        self.session = FakeHttpSession(self.handle)

    def handle(self, method, url, params, data) -> FakeResponse:
        page = int(params["page"])
        self.requested_pages.append(page)
        if self.script.get(page):
            return self.script[page].pop(0)
        if self.session.calls[-1]["headers"].get("X-Auth-Key") != self.api_key:
            return FakeResponse(401, {"message": "unauthorized"})
        if 1 <= page <= len(self.pages):
            return FakeResponse(200, self.pages[page - 1])
        return FakeResponse(200, [])


class FakeCrm:
    """
    Webservices del CRM simulados: getchallenge, login, query y update.

    - `leads`: filas que devuelve `SELECT * FROM Leads LIMIT o,l;`
    - `query_script[offset]` / `update_script`: respuestas encoladas que se
      devuelven antes del comportamiento normal
    """

    def __init__(self, leads: Optional[List[Dict[str, Any]]] = None):
        self.leads = list(leads or [])
        self.logins = 0
        self.valid_sessions: set = set()
        self.query_script: Dict[int, List[FakeResponse]] = {}
        self.update_script: List[FakeResponse] = []
        self.queried_offsets: List[int] = []
        self.updates: List[Dict[str, Any]] = []
        self.session = FakeHttpSession(self.handle)

    def expire_sessions(self) -> None:
        self.valid_sessions.clear()

    @property
    def update_calls(self) -> int:
        return sum(1 for c in self.session.calls if c.get("data", {}).get("operation") == "update")

    def handle(self, method, url, params, data) -> FakeResponse:
        operation = params.get("operation") or data.get("operation")
        if operation == "getchallenge":
            return FakeResponse(200, {"success": True, "result": {"token": CRM_TOKEN}})
        if operation == "login":
            if data.get("accessKey") != md5_hex(CRM_TOKEN + CRM_ACCESS_KEY):
                return FakeResponse(200, {"success": False, "error": {"code": "INVALID_USER_CREDENTIALS"}})
            self.logins += 1
            name = f"session-{self.logins}"
            self.valid_sessions.add(name)
            return FakeResponse(200, {"success": True, "result": {"sessionName": name}})
        if operation == "query":
            offset, limit = (int(x) for x in re.search(r"LIMIT (\d+),(\d+)", params["query"]).groups())
            self.queried_offsets.append(offset)
            if self.query_script.get(offset):
                return self.query_script[offset].pop(0)
            if params.get("sessionName") not in self.valid_sessions:
                return invalid_session_response()
            return FakeResponse(200, {"success": True, "result": self.leads[offset:offset + limit]})
        if operation == "update":
            if self.update_script:
                return self.update_script.pop(0)
            if data.get("sessionName") not in self.valid_sessions:
                return invalid_session_response()
            element = json.loads(data["element"])
            self.updates.append(element)
            return FakeResponse(200, {"success": True, "result": element})
        return FakeResponse(400, {"success": False, "error": {"code": "UNKNOWN_OPERATION"}})


def invalid_session_response() -> FakeResponse:
    return FakeResponse(
        200,
        {"success": False, "error": {"code": "INVALID_SESSIONID", "message": "Session Identifier provided is Invalid"}},
    )


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(sqlite_engine) -> SqlRecordStore:
    """Record store real sobre SQLite en memoria."""
    return SqlRecordStore(build_session_factory(sqlite_engine))


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings aislados: DATA_DIR en tmp_path, sin pausas entre páginas."""
    return Settings(
        DATABASE_URL="sqlite://",
        DATA_DIR=str(tmp_path / "data"),
        FETCH_PAGE_DELAY_SECONDS=0,
        FETCH_JITTER_SECONDS=0,
        FETCH_MAX_REQUESTS_PER_RUN=50,
        VTIGER_BATCH_SIZE=2,
        VTIGER_BACKOFF_BASE_SECONDS=7,
        VTIGER_BACKOFF_JITTER_SECONDS=0,
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps) -> Callable[[float], None]:
    """Sleeper que no duerme: solo registra la duración pedida."""
    return sleeps.append


@pytest.fixture
def owner(store):
    """Owner con credenciales de citas y de CRM."""
    return store.upsert_owner({
        "name": "Clinica Norte",
        "external_key": "iq-key",
        "intakeq_key": "iq-key",
        "intakeq_base_url": "https://intake.test/api/v1",
        "vtiger_url": "https://crm.test/webservice.php",
        "vtiger_username": CRM_USERNAME,
        "vtiger_access_key": CRM_ACCESS_KEY,
    })


@pytest.fixture
def fake_response_cls():
    return FakeResponse


@pytest.fixture
def fake_appointments_api_cls():
    return FakeAppointmentsApi


@pytest.fixture
def fake_crm_cls():
    return FakeCrm


@pytest.fixture(autouse=True)
def _reset_jobs():
    """Los jobs viven a nivel de clase: cada test arranca sin jobs."""
    SyncJobUseCases._jobs = {}
    yield
    SyncJobUseCases._jobs = {}

# tests/conftest.py
import json
from urllib.parse import unquote, urlsplit

import pytest

from dreamrent.auth import login_limiter
from dreamrent.cache import cache_warnings
from dreamrent.container import build_services
from dreamrent.core import Settings
from dreamrent.database import create_engine, create_sessionmaker, create_tables
from dreamrent.datasource import DataSource, SQLDataSource
from dreamrent.errors import RemoteError
from dreamrent.schemas import UserCreate
from dreamrent.storage import MemoryCache
from main import app

ADMIN_EMAIL = "info@dreamrent.kz"
ADMIN_PASSWORD = "admin-secret"


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class BrokenSource(DataSource):
    """Data source that is never reachable."""

    def _fail(self, *args, **kwargs):
        raise RemoteError("connection refused")

    async def list(self, collection, order_by=None, descending=False):
        self._fail()

    async def get(self, collection, record_id):
        self._fail()

    async def find(self, collection, equals=None, ilike=None, match_any=False, order_by=None, descending=False):
        self._fail()

    async def insert(self, collection, row):
        self._fail()

    async def update(self, collection, record_id, changes):
        self._fail()

    async def upsert(self, collection, row):
        self._fail()

    async def delete(self, collection, record_id):
        self._fail()

    async def delete_where(self, collection, column, values):
        self._fail()

    async def update_where(self, collection, column, values, changes):
        self._fail()

    def subscribe(self, collection, callback):
        self._fail()


@pytest.fixture(autouse=True)
def reset_cache_warnings():
    cache_warnings.reset()
    yield
    cache_warnings.reset()


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'dashboard.db'}",
        PROTECTED_ADMIN_EMAIL=ADMIN_EMAIL,
        PROTECTED_ADMIN_PASSWORD=ADMIN_PASSWORD,
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return MemoryCache()


@pytest.fixture()
async def engine(settings):
    engine = create_engine(settings.DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def source(engine):
    return SQLDataSource(create_sessionmaker(engine))


@pytest.fixture()
async def services(settings, source, store, clock):
    services = build_services(settings, source, store, clock)
    yield services
    await services.stop()


@pytest.fixture()
async def admin(services):
    return await services.users.ensure_protected_admin()


@pytest.fixture()
def make_user(services):
    async def factory(email="manager@example.com", password="secret123", **kwargs):
        result = await services.users.add_user(
            UserCreate(name=kwargs.pop("name", "Manager"), email=email, password=password, **kwargs)
        )
        assert result.success, result.error
        return result.user

    return factory


# Simple ASGI response/client
class SimpleResponse:
    def __init__(
        self, status_code: int, body: bytes, headers: list[tuple[bytes, bytes]]
    ):
        self.status_code = status_code
        self._body = body
        self.headers = {k.decode(): v.decode() for k, v in headers}

    def json(self):
        return json.loads(self._body.decode())


class SimpleClient:
    """
    Drives the ASGI app directly on the running test loop.

    The application lifespan is not run; the service container is placed
    on ``app.state`` by the fixture instead.
    """

    def __init__(self, app):
        self.app = app

    async def request(self, method: str, path: str, json_body=None, headers=None):
        headers = dict(headers or {})
        body_bytes = b""
        if json_body is not None:
            body_bytes = json.dumps(json_body).encode()
            headers.setdefault("content-type", "application/json")

        url = urlsplit(path)
        raw_headers = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
        scope = {
            "type": "http",
            "http_version": "1.1",
            "scheme": "http",
            "method": method.upper(),
            "path": unquote(url.path),
            "raw_path": url.path.encode(),
            "root_path": "",
            "headers": raw_headers,
            "query_string": url.query.encode(),
            "server": ("testserver", 80),
            "client": ("testclient", 5000),
        }

        async def receive():
            nonlocal body_bytes
            chunk, body_bytes = body_bytes, b""
            return {"type": "http.request", "body": chunk, "more_body": False}

        response_body = bytearray()
        response_status = 500
        response_headers: list[tuple[bytes, bytes]] = []

        async def send(message):
            nonlocal response_status, response_headers
            if message["type"] == "http.response.start":
                response_status = message["status"]
                response_headers = message.get("headers", [])
            elif message["type"] == "http.response.body":
                response_body.extend(message.get("body", b""))

        await self.app(scope, receive, send)
        return SimpleResponse(response_status, bytes(response_body), response_headers)

    async def get(self, path: str, headers=None):
        return await self.request("GET", path, headers=headers)

    async def post(self, path: str, json=None, headers=None):
        return await self.request("POST", path, json_body=json, headers=headers)

    async def put(self, path: str, json=None, headers=None):
        return await self.request("PUT", path, json_body=json, headers=headers)

    async def patch(self, path: str, json=None, headers=None):
        return await self.request("PATCH", path, json_body=json, headers=headers)

    async def delete(self, path: str, headers=None):
        return await self.request("DELETE", path, headers=headers)


@pytest.fixture()
async def client(services):
    await services.start()
    app.state.services = services
    app.dependency_overrides[login_limiter] = lambda: None
    try:
        yield SimpleClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def login(client):
    async def do_login(email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
        response = await client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.json()
        return response.json()

    return do_login

"""
Ticket Desk - test configuration and fixtures
"""
import pytest
from fastapi.testclient import TestClient

from ticketdesk.container import build_container
from ticketdesk.core.config import Settings
from ticketdesk.core.policy import ROLE_ADMIN, ROLE_USER, Principal
from ticketdesk.db import bootstrap_schema, build_engine, build_session_factory
from ticketdesk.main import create_app
from ticketdesk.stores.memory import MemoryTicketStore, MemoryUserStore
from ticketdesk.stores.sql import SqlTicketStore, SqlUserStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin123"


def make_settings(**overrides) -> Settings:
    values = dict(
        STORAGE_BACKEND="memory",
        DATABASE_URL="sqlite://",
        AUTO_DB_BOOTSTRAP=True,
        JWT_SECRET="test-jwt-secret",
        PASSWORD_HASH_ROUNDS=4,
        MAIL_BACKEND="outbox",
        APP_BASE_URL="http://desk.test.io",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        LOG_LEVEL="WARNING",
    )
    values.update(overrides)
    # _env_file=None keeps a developer's .env out of the tests
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture(params=["memory", "sql"])
def backend(request) -> str:
    return request.param


@pytest.fixture
def user_store(backend):
    if backend == "memory":
        yield MemoryUserStore()
        return
    engine = build_engine("sqlite://")
    bootstrap_schema(engine)
    yield SqlUserStore(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def ticket_store(backend):
    if backend == "memory":
        yield MemoryTicketStore()
        return
    engine = build_engine("sqlite://")
    bootstrap_schema(engine)
    yield SqlTicketStore(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def container(backend):
    c = build_container(make_settings(STORAGE_BACKEND=backend))
    c.bootstrap()
    yield c
    c.close()


@pytest.fixture
def app(backend):
    return create_app(make_settings(STORAGE_BACKEND=backend))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def outbox(app):
    return app.state.container.mailer.sent


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email="a@x.com", password="secret1", name="Alice") -> dict:
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()


def login(client, email, password) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def create_ticket(client, token=None, files=None, **fields) -> dict:
    data = {"title": "T1", "description": "desc desc", "type": "Bug", "department": "IT"}
    data.update(fields)
    if token:
        response = client.post("/api/tickets", data=data, files=files, headers=bearer(token))
    else:
        response = client.post("/api/tickets/anonymous", data=data, files=files)
    assert response.status_code == 201, response.text
    return response.json()["ticket"]


@pytest.fixture
def user_token(client) -> str:
    return register(client)["token"]


@pytest.fixture
def other_token(client) -> str:
    return register(client, email="b@x.com", name="Bob")["token"]


@pytest.fixture
def admin_token(client) -> str:
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def alice() -> Principal:
    return Principal(id="u-alice", name="Alice", email="a@x.com", role=ROLE_USER)


@pytest.fixture
def bob() -> Principal:
    return Principal(id="u-bob", name="Bob", email="b@x.com", role=ROLE_USER)


@pytest.fixture
def admin() -> Principal:
    return Principal(id="u-admin", name="Admin", email=ADMIN_EMAIL, role=ROLE_ADMIN)

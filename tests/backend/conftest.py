import re
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from todo_app.config import Settings
from todo_app.core.db import build_tortoise_config
from todo_app.core.security import hash_password
from todo_app.main import create_app
from todo_app.models.user import User


TEST_DB_URL = "sqlite://:memory:"
TEST_SECRET = "test-secret"
STRONG_PASSWORD = "Abcd1234!"
CSRF_RE = re.compile(r'name="_csrf" value="([^"]+)"')


def make_settings(**overrides) -> Settings:
    values = {
        "env": "test",
        "database_url": TEST_DB_URL,
        "jwt_secret": TEST_SECRET,
        "rate_limit_max": 10_000,
    }
    values.update(overrides)
    return Settings(**values)


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    await Tortoise.init(config=build_tortoise_config(TEST_DB_URL))
    await Tortoise.generate_schemas()


def make_client(app, **transport_kwargs) -> AsyncClient:
    # ASGITransport never runs the lifespan; the db fixture owns the connection
    transport = ASGITransport(app=app, **transport_kwargs)
    return AsyncClient(transport=transport, base_url="http://testserver")


async def fetch_csrf(client: AsyncClient, path: str = "/login") -> str:
    """GET a form page and pull the anti-forgery token out of the hidden field."""
    resp = await client.get(path)
    match = CSRF_RE.search(resp.text)
    assert match, f"no csrf field on {path}: {resp.status_code}"
    return match.group(1)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest_asyncio.fixture
async def db():
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client(app, db):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    """
    async with make_client(app) as async_client:
        yield async_client


@pytest_asyncio.fixture
async def client_factory(app, db):
    """
    Factory for extra clients with their own cookie jars (one per simulated user).
    """
    clients = []

    def _make() -> AsyncClient:
        c = make_client(app)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        await c.aclose()


@pytest_asyncio.fixture
async def create_user(db):
    """
    Factory fixture to create users directly via ORM.
    """

    async def _create_user(password: str = STRONG_PASSWORD) -> tuple[User, str]:
        user = await User.create(
            username=f"user_{uuid.uuid4().hex[:6]}",
            password_hash=hash_password(password),
        )
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def web_login():
    """
    Helper fixture: log a client in through the login form (cookie session).
    """

    async def _login(client: AsyncClient, username: str, password: str):
        token = await fetch_csrf(client, "/login")
        resp = await client.post(
            "/login",
            data={"username": username, "password": password, "_csrf": token},
        )
        assert resp.status_code == 303, resp.text
        return resp

    return _login


@pytest.fixture
def csrf():
    """The fetch_csrf helper, for tests that build their own submissions."""
    return fetch_csrf


@pytest.fixture
def settings_factory():
    return make_settings


@pytest_asyncio.fixture
async def client_for():
    """
    Factory for clients bound to a custom app (e.g. non-default settings).
    """
    clients = []

    def _make(app, **transport_kwargs) -> AsyncClient:
        c = make_client(app, **transport_kwargs)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        await c.aclose()

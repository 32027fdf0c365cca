"""
Shared fixtures.

The environment is pinned before ``bistro.main`` is imported: the app
mounts the upload directory and reads its session settings at import.
"""

import os
import tempfile
from decimal import Decimal

import pytest

_SCRATCH = tempfile.mkdtemp(prefix="bistro-tests-")

TEST_ENV = {
    "ENV_MODE": "development",
    "STORAGE_BACKEND": "memory",
    "SEED_DEMO_DATA": "true",
    "UPLOAD_DIRECTORY": os.path.join(_SCRATCH, "uploads"),
    "DATA_DIRECTORY": os.path.join(_SCRATCH, "data"),
    # Nothing listens on port 1, so health checks fail fast
    "REDIS_URL": "redis://127.0.0.1:1/0",
    "WS_AUTH_MODE": "admin",
    "ADMIN_USERNAME": "admin",
    "ADMIN_PASSWORD": "adminpass",
}
os.environ.update(TEST_ENV)

from fastapi.testclient import TestClient  # noqa: E402

from bistro.core.config import get_settings  # noqa: E402
from bistro.schemas import Identity, MenuItemCreate, UserRole  # noqa: E402
from bistro.services.notifications import (  # noqa: E402
    NotificationBus,
    Subscriber,
    reset_notification_bus,
)
from bistro.services.payment import reset_payment_service  # noqa: E402
from bistro.storage import reset_store  # noqa: E402
from bistro.storage.memory import MemoryStore  # noqa: E402
from bistro.storage.seed import seed_store  # noqa: E402

ADMIN = Identity(user_id=1, username="admin", role=UserRole.ADMIN)


def _reset_caches() -> None:
    get_settings.cache_clear()
    reset_store()
    reset_notification_bus()
    reset_payment_service()


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    """Fresh settings, store, bus and payment service for every test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    _reset_caches()
    yield
    _reset_caches()


# =============================================================================
# SERVICE-LEVEL FIXTURES
# =============================================================================

class RecordingSubscriber(Subscriber):
    """Collects every frame pushed to it."""

    def __init__(self, writable: bool = True, fail: bool = False):
        self.frames: list[str] = []
        self.writable = writable
        self.fail = fail

    @property
    def is_writable(self) -> bool:
        return self.writable

    async def send_text(self, payload: str) -> None:
        if self.fail:
            raise ConnectionResetError("socket gone")
        self.frames.append(payload)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def store(settings):
    """Seeded in-memory store: admin is user #1, menu items #1-#3."""
    memory = MemoryStore()
    await seed_store(memory, settings)
    return memory


@pytest.fixture
async def bus():
    notification_bus = NotificationBus(send_queue_size=10)
    yield notification_bus
    await notification_bus.close()


@pytest.fixture
async def customer(store) -> Identity:
    user = await store.create_user(
        username="alice",
        email="alice@example.com",
        full_name="Alice Smith",
        password_hash="x",
    )
    return Identity.from_user(user)


@pytest.fixture
async def other_customer(store) -> Identity:
    user = await store.create_user(
        username="bob",
        email="bob@example.com",
        full_name="Bob Jones",
        password_hash="x",
    )
    return Identity.from_user(user)


@pytest.fixture
async def ten_dollar_item(store):
    return await store.create_menu_item(
        MenuItemCreate(name="Soup of the Day", price=Decimal("10.00"), category_id=1)
    )


# =============================================================================
# HTTP FIXTURES
# =============================================================================

@pytest.fixture
def client():
    from bistro.main import app

    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient, username: str = "admin", password: str = "adminpass") -> dict:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def register(client: TestClient, username: str = "alice", password: str = "secret1") -> dict:
    response = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "password": password,
            "email": f"{username}@example.com",
            "fullName": username.title(),
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def admin_client(client):
    login(client)
    return client

"""Shared test fixtures."""

import pytest
import pytest_asyncio

from studiosync.schemas.session_schema import SessionContext, UserRole
from studiosync.store.bridge import InProcessBridge
from studiosync.store.local_store import LocalStore

from tests.helpers import FakeCloud, open_app


@pytest.fixture
def manager() -> SessionContext:
    return SessionContext(user_id="u-manager", name="Layla", role=UserRole.MANAGER)


@pytest.fixture
def supervisor() -> SessionContext:
    return SessionContext(user_id="u-admin", name="Karim", role=UserRole.ADMIN)


@pytest.fixture
def reception() -> SessionContext:
    return SessionContext(user_id="u-reception", name="Maryam", role=UserRole.RECEPTION)


@pytest.fixture
def editor() -> SessionContext:
    return SessionContext(user_id="u-editor", name="Hadi", role=UserRole.PHOTO_EDITOR)


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest_asyncio.fixture
async def store():
    store = LocalStore(InProcessBridge(":memory:"))
    await store.init_schema()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def app(cloud):
    """Online app backed by ``cloud``."""
    app = await open_app(cloud)
    assert app.connectivity.online
    yield app
    await app.close()


@pytest_asyncio.fixture
async def offline_app():
    """App with no cloud configured at all."""
    app = await open_app(None)
    yield app
    await app.close()

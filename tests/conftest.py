"""
Global test configuration and fixtures for the session store.

Every test gets its own temporary SQLite database with the session table
already created, and a controllable clock so expiry can be simulated
without sleeping.
"""

from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from session_store.db.init_db import init_database
from session_store.db.models.session_record import SessionRecord
from session_store.db.repository import SessionRepository
from session_store.store.store import SQLAlchemyStore


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Epoch-millisecond clock that only moves when told to"""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    """Clock starting at a fixed, realistic epoch timestamp"""
    return FakeClock(1_700_000_000_000)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def database_url(tmp_path: Path) -> str:
    """URL of a throwaway SQLite file for one test"""
    return f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}"


@pytest_asyncio.fixture(scope="function")
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine with the session table created"""
    test_engine = create_async_engine(database_url)
    await init_database(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
def repository(engine: AsyncEngine) -> SessionRepository:
    return SessionRepository(engine)


@pytest.fixture(scope="function")
def seed(repository: SessionRepository) -> Callable[..., Awaitable[None]]:
    """Insert a raw session row, bypassing the store"""

    async def _seed(
        sid: str,
        json: str = "{}",
        expired_at: int = 0,
        destroyed_at: Optional[int] = None,
    ) -> None:
        await repository.insert({
            "id": sid,
            "json": json,
            "expired_at": expired_at,
            "destroyed_at": destroyed_at,
        })

    return _seed


@pytest.fixture(scope="function")
def raw_row(repository: SessionRepository) -> Callable[[str], Awaitable[Optional[SessionRecord]]]:
    """Fetch a row regardless of expiry or soft-delete state"""

    async def _raw_row(sid: str) -> Optional[SessionRecord]:
        return await repository.find_one(sid, with_deleted=True)

    return _raw_row


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def make_store(
    repository: SessionRepository, clock: FakeClock
) -> Callable[..., Awaitable[SQLAlchemyStore]]:
    """Build a store connected to the test repository and clock"""

    async def _make_store(**options: Any) -> SQLAlchemyStore:
        options.setdefault("clock", clock)
        store = SQLAlchemyStore(**options)
        await store.connect(repository)
        return store

    return _make_store


@pytest_asyncio.fixture(scope="function")
async def store(make_store: Callable[..., Awaitable[SQLAlchemyStore]]) -> SQLAlchemyStore:
    """Connected store with default options"""
    return await make_store()


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def sample_session() -> Dict[str, Any]:
    """Session payload shaped like an express-session record"""
    return {
        "cookie": {
            "originalMaxAge": 3600000,
            "maxAge": 3600000,
            "httpOnly": True,
            "path": "/",
        },
        "user": {"id": 42, "roles": ["admin", "ops"]},
        "flash": [],
        "visits": 3,
    }


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Add markers based on file location"""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

"""
Unit tests for engine and schema helpers
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from session_store.core.config import Settings
from session_store.core.exceptions import StorageError
from session_store.db.init_db import init_database
from session_store.db.session import create_engine_from_settings, get_connect_args

pytestmark = pytest.mark.unit


class TestConnectArgs:

    def test_sqlite_disables_thread_check(self):
        assert get_connect_args("sqlite+aiosqlite:///x.db") == {"check_same_thread": False}

    def test_other_databases_need_nothing(self):
        assert get_connect_args("postgresql+asyncpg://localhost/db") == {}


class TestEngineFromSettings:

    async def test_creates_sqlite_parent_directory(self, tmp_path):
        db_path = tmp_path / "a" / "b" / "sessions.db"
        engine = create_engine_from_settings(
            Settings(_env_file=None, database_url=f"sqlite+aiosqlite:///{db_path}")
        )
        try:
            assert db_path.parent.is_dir()
            assert engine.dialect.name == "sqlite"
        finally:
            await engine.dispose()


class TestInitDatabase:

    async def test_creates_session_table_idempotently(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'init.db'}")
        try:
            assert "session" in await init_database(engine)
            assert "session" in await init_database(engine)
        finally:
            await engine.dispose()

    async def test_driver_failure_raised_as_storage_error(self):
        engine = MagicMock(spec=AsyncEngine)
        engine.begin.side_effect = OperationalError("CREATE TABLE session", {}, Exception("disk I/O error"))

        with pytest.raises(StorageError, match="Schema creation failed") as exc_info:
            await init_database(engine)

        assert isinstance(exc_info.value.__cause__, OperationalError)

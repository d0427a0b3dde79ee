"""
Unit tests for the session record repository
"""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from session_store.core.exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    StorageError,
)
from session_store.db.models.session_record import SessionRecord
from session_store.db.repository import SessionRepository
from session_store.db.session import create_session_factory
from session_store.store.filters import expired, not_expired

pytestmark = pytest.mark.unit


class TestReads:
    """Point reads and soft-delete-aware queries"""

    async def test_find_one_returns_inserted_row(self, repository, seed):
        await seed("a", json='{"n": 1}', expired_at=5000)

        record = await repository.find_one("a")

        assert record is not None
        assert record.id == "a"
        assert record.json == '{"n": 1}'
        assert record.expired_at == 5000
        assert record.destroyed_at is None
        assert record.is_destroyed is False

    async def test_find_one_missing_returns_none(self, repository):
        assert await repository.find_one("missing") is None

    async def test_soft_deleted_rows_hidden_unless_requested(self, repository, seed):
        await seed("gone", destroyed_at=100)

        assert await repository.find_one("gone") is None
        record = await repository.find_one("gone", with_deleted=True)
        assert record is not None
        assert record.is_destroyed is True

    async def test_find_one_applies_extra_predicates(self, repository, seed):
        await seed("a", expired_at=1000)

        assert await repository.find_one("a", not_expired(999)) is not None
        assert await repository.find_one("a", not_expired(1000)) is None

    async def test_find_one_or_fail_raises_when_missing(self, repository):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await repository.find_one_or_fail("nope")

        assert exc_info.value.sid == "nope"
        assert isinstance(exc_info.value, StorageError)

    async def test_find_many_and_count_skip_soft_deleted(self, repository, seed):
        await seed("a", expired_at=10)
        await seed("b", expired_at=20)
        await seed("c", expired_at=30, destroyed_at=1)

        records = await repository.find_many()
        assert sorted(r.id for r in records) == ["a", "b"]
        assert await repository.count() == 2
        assert await repository.count(not_expired(15)) == 1

    async def test_select_ids_honours_limit(self, repository, seed):
        for i in range(5):
            await seed(f"s{i}", expired_at=i)

        ids = await repository.select_ids(expired(10), limit=3)

        assert len(ids) == 3
        assert set(ids) <= {f"s{i}" for i in range(5)}


class TestWrites:
    """Inserts, conditional updates, soft and hard deletes"""

    async def test_duplicate_insert_raises(self, repository, seed):
        await seed("dup")

        with pytest.raises(DuplicateRecordError) as exc_info:
            await seed("dup")

        assert exc_info.value.sid == "dup"

    async def test_update_returns_rowcount(self, repository, seed):
        await seed("a", expired_at=1)

        assert await repository.update(SessionRecord.id == "a", {"expired_at": 2}) == 1
        assert await repository.update(SessionRecord.id == "zz", {"expired_at": 2}) == 0
        assert (await repository.find_one("a")).expired_at == 2

    async def test_soft_delete_marks_row_once(self, repository, seed):
        await seed("a")

        assert await repository.soft_delete("a", 1234) == 1
        assert await repository.soft_delete("a", 9999) == 0

        record = await repository.find_one("a", with_deleted=True)
        assert record.destroyed_at == 1234

    async def test_delete_removes_rows_physically(self, repository, seed):
        await seed("a")
        await seed("b", destroyed_at=5)

        assert await repository.delete(SessionRecord.id.in_(["a", "b"])) == 2
        assert await repository.select_ids(with_deleted=True) == []


class TestConstruction:
    """Repository wiring"""

    async def test_accepts_session_factory(self, engine):
        repository = SessionRepository(create_session_factory(engine))

        assert repository.engine is engine
        assert repository.dialect_name == "sqlite"

    async def test_driver_errors_wrapped_as_storage_error(self, tmp_path):
        """A missing table surfaces as StorageError, not a raw SQLAlchemy error"""
        bare_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        try:
            repository = SessionRepository(bare_engine)
            with pytest.raises(StorageError) as exc_info:
                await repository.find_one("a")
            assert exc_info.value.__cause__ is not None
        finally:
            await bare_engine.dispose()

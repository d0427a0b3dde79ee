"""Record repository for session rows.

Thin async adapter over SQLAlchemy: point reads, inserts, conditional
updates, soft deletes and predicate-based deletes. Every method runs in its
own short-lived ``AsyncSession`` taken from a shared factory, so concurrent
callers only share the engine's connection pool.

Driver failures are re-raised as ``StorageError`` so callers never see raw
``SQLAlchemyError`` instances.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from sqlalchemy import ColumnElement, Select, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.sql.expression import Executable

from session_store.core.exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    StorageError,
)
from session_store.db.models.session_record import SessionRecord
from session_store.db.session import create_session_factory, get_db

logger = logging.getLogger(__name__)


class SessionRepository:
    """CRUD and query composition for ``SessionRecord`` rows"""

    model = SessionRecord

    def __init__(
        self,
        bind: Union[AsyncEngine, async_sessionmaker[AsyncSession]],
    ):
        """
        Args:
            bind: An async engine, or a session factory already bound to one
        """
        if isinstance(bind, AsyncEngine):
            self.engine = bind
            self.session_factory = create_session_factory(bind)
        else:
            self.session_factory = bind
            self.engine = bind.kw["bind"]

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session, commit on success, roll back and wrap driver errors"""
        async with get_db(self.session_factory) as db:
            try:
                yield db
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.debug("Repository operation failed: %s", e)
                raise StorageError(str(e)) from e

    # ------------------------------------------------------------------
    # Query composition
    # ------------------------------------------------------------------

    def select(self, *entities: Any, with_deleted: bool = False) -> Select:
        """
        Start a select over session rows.

        Args:
            entities: Columns or entities to select; defaults to the model
            with_deleted: Include soft-deleted rows

        Returns:
            A ``Select`` that callers can keep composing
        """
        stmt = select(*(entities or (self.model,)))
        if not with_deleted:
            stmt = stmt.where(self.model.destroyed_at.is_(None))
        return stmt

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_one(
        self,
        sid: str,
        *where: ColumnElement[bool],
        with_deleted: bool = False,
    ) -> Optional[SessionRecord]:
        """Return the row for ``sid`` matching the extra predicates, if any"""
        stmt = self.select(with_deleted=with_deleted).where(self.model.id == sid, *where)
        async with self._session() as db:
            return await db.scalar(stmt)

    async def find_one_or_fail(
        self,
        sid: str,
        *where: ColumnElement[bool],
        with_deleted: bool = False,
    ) -> SessionRecord:
        """
        Same as ``find_one`` but a missing row is an error.

        Raises:
            RecordNotFoundError: If no row matches
        """
        record = await self.find_one(sid, *where, with_deleted=with_deleted)
        if record is None:
            raise RecordNotFoundError(sid)
        return record

    async def find_many(self, *where: ColumnElement[bool]) -> List[SessionRecord]:
        """Return every live row matching the predicates"""
        async with self._session() as db:
            result = await db.scalars(self.select().where(*where))
            return list(result.all())

    async def count(self, *where: ColumnElement[bool]) -> int:
        """Count live rows matching the predicates"""
        stmt = self.select(func.count()).select_from(self.model).where(*where)
        async with self._session() as db:
            return int(await db.scalar(stmt) or 0)

    async def select_ids(
        self,
        *where: ColumnElement[bool],
        limit: Optional[int] = None,
        with_deleted: bool = False,
    ) -> List[str]:
        """Materialize up to ``limit`` ids matching the predicates"""
        stmt = self.select(self.model.id, with_deleted=with_deleted).where(*where)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session() as db:
            result = await db.scalars(stmt)
            return list(result.all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, values: Dict[str, Any]) -> None:
        """
        Insert a new row.

        Raises:
            DuplicateRecordError: If a row with the same id exists
        """
        try:
            async with self._session() as db:
                await db.execute(insert(self.model).values(**values))
        except StorageError as e:
            if isinstance(e.__cause__, IntegrityError):
                raise DuplicateRecordError(values.get("id", "")) from e.__cause__
            raise

    async def update(self, where: ColumnElement[bool], values: Dict[str, Any]) -> int:
        """Update rows matching ``where`` and return how many were affected"""
        stmt = (
            update(self.model)
            .where(where)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            return result.rowcount

    async def soft_delete(self, sid: str, now: int) -> int:
        """Mark the live row for ``sid`` as destroyed at ``now``"""
        return await self.update(
            (self.model.id == sid) & self.model.destroyed_at.is_(None),
            {"destroyed_at": now},
        )

    async def delete(self, where: ColumnElement[bool]) -> int:
        """Physically remove rows matching ``where``"""
        stmt = delete(self.model).where(where).execution_options(synchronize_session=False)
        async with self._session() as db:
            result = await db.execute(stmt)
            return result.rowcount

    async def execute(self, stmt: Executable) -> int:
        """Run a prepared write statement and return its rowcount"""
        async with self._session() as db:
            result = await db.execute(stmt)
            return result.rowcount

    def __repr__(self) -> str:
        return f"SessionRepository(dialect={self.dialect_name!r})"

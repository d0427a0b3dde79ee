"""
SQLAlchemy-backed session store.

Implements the express-session style store contract (get, set, destroy,
touch, all, length, clear) on top of ``SessionRepository``. Each operation
is an independent coroutine returning a ``StoreResult``; an optional
``callback(error, value)`` receives the same outcome. Failures are also
forwarded to the ``on_error`` option, or to every registered observer's
``on_disconnect`` when no handler is configured.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar, Union

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from session_store.core.config import Settings, settings
from session_store.core.exceptions import (
    AggregateDestroyError,
    ConfigurationError,
    NotConnectedError,
    SerializationError,
)
from session_store.db.init_db import init_database
from session_store.db.models.session_record import SessionRecord
from session_store.db.repository import SessionRepository
from session_store.db.session import create_engine_from_settings
from session_store.store.cleanup import cleanup
from session_store.store.filters import is_live, visible
from session_store.store.options import StoreOptions
from session_store.store.result import Callback, StoreObserver, StoreResult
from session_store.store.ttl import compute_ttl
from session_store.store.upsert import UpsertOutcome, supports_atomic_upsert, upsert

logger = logging.getLogger(__name__)

T = TypeVar("T")

Bind = Union[SessionRepository, AsyncEngine, async_sessionmaker[AsyncSession], str]


class SQLAlchemyStore:
    """Session store persisting records through SQLAlchemy.

    Example usage:
        store = SQLAlchemyStore(cleanup_limit=100, ttl=3600)
        await store.connect(engine)
        await store.set("sid", {"cookie": {"maxAge": 60000}, "user": 1})
        data = (await store.get("sid")).unwrap()
    """

    def __init__(self, options: Optional[StoreOptions] = None, **kwargs: Any):
        """
        Args:
            options: Prepared options; mutually exclusive with kwargs
            kwargs: Fields of ``StoreOptions``
        """
        if options is not None and kwargs:
            raise ConfigurationError("Pass either options or keyword options, not both")
        self.options = options or StoreOptions(**kwargs)
        self._repository: Optional[SessionRepository] = None
        self._owned_engine: Optional[AsyncEngine] = None
        self._observers: List[StoreObserver] = []

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **overrides: Any) -> "SQLAlchemyStore":
        """Build a store and its engine from environment settings; call connect() next"""
        config = config or settings
        values = {**StoreOptions.settings_values(config), **overrides}
        store = cls(StoreOptions(**values))
        store._owned_engine = create_engine_from_settings(config)
        return store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._repository is not None

    def add_observer(self, observer: StoreObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: StoreObserver) -> None:
        self._observers.remove(observer)

    async def connect(self, bind: Optional[Bind] = None) -> "SQLAlchemyStore":
        """
        Attach the store to its storage. Must run before any other operation.

        Args:
            bind: A repository, async engine, session factory or database URL.
                May be omitted for stores built with ``from_settings``.

        Returns:
            The store itself

        Raises:
            ConfigurationError: If there is nothing to connect to, or the
                dialect cannot run the configured upsert mode
            StorageError: If schema creation fails

        An engine the store created earlier is disposed when an explicit
        ``bind`` replaces it.
        """
        if bind is not None:
            await self._dispose_owned_engine()

        if isinstance(bind, SessionRepository):
            repository = bind
        elif isinstance(bind, str):
            self._owned_engine = create_engine_from_settings(Settings(database_url=bind))
            repository = SessionRepository(self._owned_engine)
        elif bind is not None:
            repository = SessionRepository(bind)
        elif self._owned_engine is not None:
            repository = SessionRepository(self._owned_engine)
        else:
            raise ConfigurationError("connect() needs a repository, engine or database URL")

        if self.options.atomic_upsert and not supports_atomic_upsert(repository.dialect_name):
            raise ConfigurationError(
                f"Atomic upsert is not supported on {repository.dialect_name!r}"
            )

        if self.options.create_schema:
            await init_database(repository.engine)

        self._repository = repository
        logger.debug("Connected to %s", repository.dialect_name)
        for observer in list(self._observers):
            observer.on_connect(self)
        return self

    async def disconnect(self) -> None:
        """Detach from storage, disposing an engine the store created itself"""
        self._repository = None
        await self._dispose_owned_engine()

    async def _dispose_owned_engine(self) -> None:
        if self._owned_engine is not None:
            engine, self._owned_engine = self._owned_engine, None
            await engine.dispose()

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    async def get(self, sid: str, callback: Optional[Callback] = None) -> StoreResult[Dict[str, Any]]:
        """Attempts to fetch session by the given ``sid``."""

        async def _get() -> Optional[Dict[str, Any]]:
            repository = self._get_repository()
            logger.debug('GET "%s"', sid)

            record = await repository.find_one(sid, visible(self._now()))
            if record is None:
                return None

            logger.debug("GOT %s", record.json)
            return self._decode(record)

        return await self._run("get", _get, callback)

    async def set(
        self,
        sid: str,
        session_data: Mapping[str, Any],
        callback: Optional[Callback] = None,
    ) -> StoreResult[UpsertOutcome]:
        """Commits the given ``session_data`` associated with the given ``sid``."""

        async def _set() -> UpsertOutcome:
            repository = self._get_repository()
            payload = self._encode(sid, session_data)
            ttl = compute_ttl(self.options.ttl, self, session_data, sid)

            logger.debug('SET "%s" %s ttl:%s', sid, payload, ttl)

            await cleanup(
                repository,
                self.options.cleanup_limit,
                self._now(),
                limit_subquery=self.options.limit_subquery,
            )
            outcome = await upsert(
                repository,
                sid,
                payload,
                ttl,
                self._now(),
                atomic=self.options.atomic_upsert,
            )

            logger.debug("SET complete (%s)", outcome.value)
            return outcome

        return await self._run("set", _set, callback)

    async def destroy(
        self,
        sid: Union[str, Iterable[str]],
        callback: Optional[Callback] = None,
    ) -> StoreResult[int]:
        """Destroys the session(s) associated with the given ``sid``."""

        async def _destroy() -> int:
            repository = self._get_repository()
            sids = [sid] if isinstance(sid, str) else list(sid)

            logger.debug('DEL "%s"', sids)

            now = self._now()
            results = await asyncio.gather(
                *(repository.soft_delete(x, now) for x in sids),
                return_exceptions=True,
            )

            failed = [(x, r) for x, r in zip(sids, results) if isinstance(r, BaseException)]
            if failed:
                raise AggregateDestroyError(
                    [x for x, _ in failed], [r for _, r in failed]
                ) from failed[0][1]
            return sum(results)

        return await self._run("destroy", _destroy, callback)

    async def touch(
        self,
        sid: str,
        session_data: Mapping[str, Any],
        callback: Optional[Callback] = None,
    ) -> StoreResult[int]:
        """Refreshes the time-to-live for the session with the given ``sid``."""

        async def _touch() -> int:
            repository = self._get_repository()
            ttl = compute_ttl(self.options.ttl, self, session_data)

            logger.debug('EXPIRE "%s" ttl:%s', sid, ttl)

            updated = await repository.update(
                SessionRecord.id == sid,
                {"expired_at": self._now() + ttl * 1000},
            )

            logger.debug("EXPIRE complete")
            return updated

        return await self._run("touch", _touch, callback)

    async def all(self, callback: Optional[Callback] = None) -> StoreResult[List[Dict[str, Any]]]:
        """Fetches all visible sessions, each merged with its ``id``."""

        async def _all() -> List[Dict[str, Any]]:
            repository = self._get_repository()
            records = await repository.find_many(visible(self._now()))

            result = []
            for record in records:
                session_data = self._decode(record)
                if not isinstance(session_data, Mapping):
                    raise SerializationError(
                        f"Session {record.id!r} does not hold an object", sid=record.id
                    )
                result.append({"id": record.id, **session_data})
            return result

        return await self._run("all", _all, callback, failure_value=[])

    async def length(self, callback: Optional[Callback] = None) -> StoreResult[int]:
        """Counts visible sessions."""

        async def _length() -> int:
            return await self._get_repository().count(visible(self._now()))

        return await self._run("length", _length, callback)

    async def clear(self, callback: Optional[Callback] = None) -> StoreResult[int]:
        """Soft-deletes every live session."""

        async def _clear() -> int:
            repository = self._get_repository()
            logger.debug("CLEAR")
            return await repository.update(is_live(), {"destroyed_at": self._now()})

        return await self._run("clear", _clear, callback)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_repository(self) -> SessionRepository:
        if self._repository is None:
            raise NotConnectedError()
        return self._repository

    def _now(self) -> int:
        return self.options.clock()

    @staticmethod
    def _encode(sid: str, session_data: Mapping[str, Any]) -> str:
        try:
            return json.dumps(session_data)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize session {sid!r}: {e}", sid=sid) from e

    @staticmethod
    def _decode(record: SessionRecord) -> Any:
        try:
            return json.loads(record.json)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Cannot deserialize session {record.id!r}: {e}", sid=record.id
            ) from e

    async def _run(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        callback: Optional[Callback],
        failure_value: Optional[T] = None,
    ) -> StoreResult[T]:
        """Run an operation and report its outcome on every channel"""
        try:
            value = await fn()
        except Exception as e:
            if callback is not None:
                self._notify(operation, "callback", callback, e, failure_value)
            self._handle_error(operation, e)
            return StoreResult.failure(e, failure_value)

        if callback is not None:
            try:
                callback(None, value)
            except Exception as e:
                # The operation itself completed; only the caller's callback failed
                self._handle_error(operation, e)
                return StoreResult.failure(e, value)
        return StoreResult.success(value)

    def _handle_error(self, operation: str, error: Exception) -> None:
        logger.error(
            f"Session store {operation} failed: {error}",
            exc_info=error,
            extra={"operation": operation, "error_type": type(error).__name__},
        )
        if self.options.on_error is not None:
            self._notify(operation, "on_error", self.options.on_error, self, error)
        else:
            for observer in list(self._observers):
                self._notify(operation, "on_disconnect", observer.on_disconnect, self, error)

    @staticmethod
    def _notify(operation: str, channel: str, handler: Callable[..., Any], *args: Any) -> None:
        """Invoke a host-supplied handler; its failure is logged, not raised"""
        try:
            handler(*args)
        except Exception as e:
            logger.error(
                f"Session store {operation} {channel} handler failed: {e}",
                exc_info=True,
                extra={"operation": operation, "channel": channel},
            )

    def __repr__(self) -> str:
        state = repr(self._repository) if self._repository else "disconnected"
        return f"SQLAlchemyStore({state})"

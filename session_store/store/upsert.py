"""
Write protocol for ``set``: find, conditionally update, fall back to insert.

The lookup and the update are separate statements, so a concurrent
``destroy`` can land between them. The update only touches rows that are
still in the state the lookup saw, which keeps a freshly destroyed session
from being resurrected by a write that started before the destroy. When that
happens the write is dropped and reported as ``UpsertOutcome.LOST``.

With ``atomic=True`` the whole protocol collapses into one
``INSERT ... ON CONFLICT DO UPDATE`` on dialects that support it.
"""

import logging
from enum import Enum
from typing import Any, Dict

from sqlalchemy.dialects import postgresql, sqlite

from session_store.core.exceptions import (
    ConfigurationError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from session_store.db.models.session_record import SessionRecord
from session_store.db.repository import SessionRepository
from session_store.store.filters import is_destroyed, is_live

logger = logging.getLogger(__name__)

ATOMIC_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class UpsertOutcome(str, Enum):
    """What a single upsert did to storage"""
    INSERTED = "inserted"
    UPDATED = "updated"
    REVIVED = "revived"
    LOST = "lost"
    # Single-statement write; storage does not say which branch it took
    UPSERTED = "upserted"


def supports_atomic_upsert(dialect_name: str) -> bool:
    return dialect_name in ATOMIC_DIALECTS


async def _update_live(
    repository: SessionRepository, sid: str, values: Dict[str, Any]
) -> int:
    return await repository.update((SessionRecord.id == sid) & is_live(), values)


async def upsert(
    repository: SessionRepository,
    sid: str,
    payload: str,
    ttl_seconds: int,
    now: int,
    atomic: bool = False,
) -> UpsertOutcome:
    """
    Write ``payload`` for ``sid`` with an expiry ``ttl_seconds`` after ``now``.

    Args:
        repository: Record repository to write through
        sid: Session id
        payload: Serialized session data
        ttl_seconds: TTL from the TTL policy
        now: Current time in epoch milliseconds
        atomic: Use a single dialect-specific upsert statement

    Returns:
        The outcome of the write

    Raises:
        StorageError: If the repository fails for any reason other than a
            missing row on lookup or a lost insert race
    """
    expired_at = now + ttl_seconds * 1000
    values = {"json": payload, "expired_at": expired_at}

    if atomic:
        return await _atomic_upsert(repository, sid, values)

    try:
        record = await repository.find_one_or_fail(sid, with_deleted=True)
    except RecordNotFoundError:
        record = None

    if record is None:
        try:
            await repository.insert({"id": sid, "destroyed_at": None, **values})
            return UpsertOutcome.INSERTED
        except DuplicateRecordError:
            # Another writer inserted the same id after our lookup
            logger.debug('SET "%s" lost insert race, updating instead', sid)
            if await _update_live(repository, sid, values):
                return UpsertOutcome.UPDATED
            return UpsertOutcome.LOST

    if record.is_destroyed:
        revived = await repository.update(
            (SessionRecord.id == sid) & is_destroyed(),
            {**values, "destroyed_at": None},
        )
        if revived:
            return UpsertOutcome.REVIVED
        # Someone else revived it in the meantime
        if await _update_live(repository, sid, values):
            return UpsertOutcome.UPDATED
        logger.warning('SET "%s" matched no row after revival attempt', sid)
        return UpsertOutcome.LOST

    if await _update_live(repository, sid, values):
        return UpsertOutcome.UPDATED

    logger.warning('SET "%s" dropped: session was destroyed during the write', sid)
    return UpsertOutcome.LOST


async def _atomic_upsert(
    repository: SessionRepository, sid: str, values: Dict[str, Any]
) -> UpsertOutcome:
    dialect_insert = ATOMIC_DIALECTS.get(repository.dialect_name)
    if dialect_insert is None:
        raise ConfigurationError(
            f"Atomic upsert is not supported on {repository.dialect_name!r}"
        )

    stmt = dialect_insert(SessionRecord).values(id=sid, destroyed_at=None, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={**values, "destroyed_at": None},
    )
    await repository.execute(stmt)
    return UpsertOutcome.UPSERTED

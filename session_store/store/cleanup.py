"""
Bounded eviction of expired session rows.

Runs ahead of every ``set``. Each pass deletes at most ``limit`` rows whose
expiry has passed, soft-deleted or not. Two ways of picking the victims:

* subquery mode issues a single ``DELETE ... WHERE id IN (SELECT ... LIMIT n)``
* enumerated mode selects the ids first and deletes them by a bound id list,
  for engines that reject ``LIMIT`` inside an ``IN`` subquery (MySQL, MariaDB)
"""

import logging
from typing import Optional

from session_store.db.models.session_record import SessionRecord
from session_store.db.repository import SessionRepository
from session_store.store.filters import expired

logger = logging.getLogger(__name__)


async def cleanup(
    repository: SessionRepository,
    limit: Optional[int],
    now: int,
    limit_subquery: bool = True,
) -> int:
    """
    Purge up to ``limit`` expired rows.

    Args:
        repository: Record repository to delete through
        limit: Maximum rows per pass; 0 or None disables cleanup
        now: Current time in epoch milliseconds
        limit_subquery: Select victims in a nested subquery instead of a
            separate round trip

    Returns:
        Number of rows deleted

    Raises:
        StorageError: If either statement fails
    """
    if not limit:
        return 0

    if limit_subquery:
        candidates = (
            repository.select(SessionRecord.id, with_deleted=True)
            .where(expired(now))
            .limit(limit)
        )
        deleted = await repository.delete(SessionRecord.id.in_(candidates))
    else:
        ids = await repository.select_ids(expired(now), limit=limit, with_deleted=True)
        if not ids:
            logger.debug("Cleanup found no expired sessions")
            return 0
        deleted = await repository.delete(SessionRecord.id.in_(ids))

    logger.debug("Cleanup removed %d expired session(s)", deleted)
    return deleted

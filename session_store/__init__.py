"""SQLAlchemy-backed session store with TTL expiry, soft deletes and batched cleanup."""

from session_store.core.exceptions import (
    AggregateDestroyError,
    ConfigurationError,
    DuplicateRecordError,
    InvalidTTLError,
    NotConnectedError,
    RecordNotFoundError,
    SerializationError,
    SessionStoreError,
    StorageError,
)
from session_store.db.models.session_record import SessionRecord
from session_store.db.repository import SessionRepository
from session_store.store.options import StoreOptions
from session_store.store.result import StoreObserver, StoreResult
from session_store.store.store import SQLAlchemyStore
from session_store.store.ttl import ONE_DAY, DerivedTTL, FixedTTL
from session_store.store.upsert import UpsertOutcome

__version__ = "1.0.0"

__all__ = [
    "AggregateDestroyError",
    "ConfigurationError",
    "DerivedTTL",
    "DuplicateRecordError",
    "FixedTTL",
    "InvalidTTLError",
    "NotConnectedError",
    "ONE_DAY",
    "RecordNotFoundError",
    "SQLAlchemyStore",
    "SerializationError",
    "SessionRecord",
    "SessionRepository",
    "SessionStoreError",
    "StorageError",
    "StoreObserver",
    "StoreOptions",
    "StoreResult",
    "UpsertOutcome",
]

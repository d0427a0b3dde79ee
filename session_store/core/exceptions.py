"""Exception hierarchy for the session store."""

from typing import List, Optional, Sequence


class SessionStoreError(Exception):
    """Base class for all session store failures"""
    pass


class SerializationError(SessionStoreError):
    """Raised when a session payload cannot be encoded or decoded"""

    def __init__(self, message: str, sid: Optional[str] = None):
        super().__init__(message)
        self.sid = sid


class NotConnectedError(SessionStoreError):
    """Raised when an operation is invoked before connect()"""

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


class StorageError(SessionStoreError):
    """Raised for any failure surfaced by the record repository"""
    pass


class RecordNotFoundError(StorageError):
    """Raised by find_one_or_fail when no row matches"""

    def __init__(self, sid: str):
        super().__init__(f"Session record {sid!r} not found")
        self.sid = sid


class DuplicateRecordError(StorageError):
    """Raised by insert when a row with the same id already exists"""

    def __init__(self, sid: str):
        super().__init__(f"Session record {sid!r} already exists")
        self.sid = sid


class AggregateDestroyError(SessionStoreError):
    """Raised when one or more soft-deletes of a batched destroy fail.

    Attributes:
        sids: The ids whose soft-delete failed, in request order
        errors: The failures, aligned with ``sids``
    """

    def __init__(self, sids: Sequence[str], errors: Sequence[BaseException]):
        self.sids: List[str] = list(sids)
        self.errors: List[BaseException] = list(errors)
        super().__init__(
            f"Failed to destroy {len(self.errors)} session(s): "
            + ", ".join(repr(sid) for sid in self.sids)
        )


class InvalidTTLError(SessionStoreError):
    """Raised when the TTL policy yields a value that is not a positive integer"""
    pass


class ConfigurationError(SessionStoreError):
    """Raised for invalid store options"""
    pass

"""Database models"""

from session_store.db.models.session_record import SessionRecord

__all__ = [
    "SessionRecord",
]

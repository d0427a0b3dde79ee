from typing import Optional

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from session_store.db.base import Base


class SessionRecord(Base):
    """Persisted session: opaque JSON payload plus expiry and soft-delete markers."""

    __tablename__ = "session"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    json: Mapped[str] = mapped_column(Text, nullable=False)
    # Epoch milliseconds
    expired_at: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    # Epoch milliseconds; non-null means soft-deleted
    destroyed_at: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, default=None
    )

    @property
    def is_destroyed(self) -> bool:
        return self.destroyed_at is not None

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return (
            f"<SessionRecord(id={self.id!r}, expired_at={self.expired_at}, "
            f"destroyed_at={self.destroyed_at})>"
        )

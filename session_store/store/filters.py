"""Predicates deciding which session rows readers may see."""

from sqlalchemy import ColumnElement, and_

from session_store.db.models.session_record import SessionRecord


def is_live() -> ColumnElement[bool]:
    return SessionRecord.destroyed_at.is_(None)


def is_destroyed() -> ColumnElement[bool]:
    return SessionRecord.destroyed_at.is_not(None)


def not_expired(now: int) -> ColumnElement[bool]:
    """Rows whose expiry lies strictly after ``now`` (epoch ms)"""
    return SessionRecord.expired_at > now


def expired(now: int) -> ColumnElement[bool]:
    """Rows due for eviction, soft-deleted or not"""
    return SessionRecord.expired_at <= now


def visible(now: int) -> ColumnElement[bool]:
    """A row is visible iff it is live and not yet expired"""
    return and_(is_live(), not_expired(now))

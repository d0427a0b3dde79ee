"""
Time-to-live policy for session records.

The configured TTL is either a fixed number of seconds or a function deriving
it from the session content. Without either, the session cookie's ``maxAge``
(milliseconds) decides, and failing that the record lives for one day.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from session_store.core.exceptions import InvalidTTLError

if TYPE_CHECKING:
    from session_store.store.store import SQLAlchemyStore

# One day in seconds
ONE_DAY = 86400

TTLFunction = Callable[["SQLAlchemyStore", Dict[str, Any], Optional[str]], int]


@dataclass(frozen=True)
class FixedTTL:
    """Every record lives for the same number of seconds (floored)"""

    seconds: Union[int, float]


@dataclass(frozen=True)
class DerivedTTL:
    """TTL computed per write from (store, session_data, sid)"""

    fn: TTLFunction


TTL = Union[FixedTTL, DerivedTTL]


def coerce_ttl(value: Union[TTL, int, float, TTLFunction, None]) -> Optional[TTL]:
    """Turn a bare number or callable option into its tagged variant"""
    if value is None or isinstance(value, (FixedTTL, DerivedTTL)):
        return value
    if isinstance(value, bool):
        raise InvalidTTLError(f"Unsupported ttl option: {value!r}")
    if isinstance(value, Real):
        if not math.isfinite(value):
            raise InvalidTTLError(f"Unsupported ttl option: {value!r}")
        return FixedTTL(value)
    if callable(value):
        return DerivedTTL(value)
    raise InvalidTTLError(f"Unsupported ttl option: {value!r}")


def _cookie_max_age(session_data: Mapping[str, Any]) -> Optional[Real]:
    cookie = session_data.get("cookie") if isinstance(session_data, Mapping) else None
    if not isinstance(cookie, Mapping):
        return None
    max_age = cookie.get("maxAge")
    if isinstance(max_age, bool) or not isinstance(max_age, Real):
        return None
    if not math.isfinite(max_age):
        return None
    return max_age


def _validated(seconds: Any, source: str) -> int:
    if isinstance(seconds, bool) or not isinstance(seconds, Real) or not math.isfinite(seconds):
        raise InvalidTTLError(f"{source} TTL must be a number of seconds, got {seconds!r}")
    if seconds <= 0:
        raise InvalidTTLError(f"{source} TTL must be positive, got {seconds!r}")
    return int(math.floor(seconds))


def compute_ttl(
    ttl: Optional[TTL],
    store: "SQLAlchemyStore",
    session_data: Mapping[str, Any],
    sid: Optional[str] = None,
) -> int:
    """
    Resolve the TTL in seconds for a write.

    A cookie whose ``maxAge`` is below one second yields zero or less; the
    record is then written already expired, mirroring the expired cookie.

    Args:
        ttl: Configured TTL variant, or None to fall back to the cookie
        store: Store performing the write, handed to derived TTL functions
        session_data: Session content being written
        sid: Session id; omitted on touch

    Returns:
        TTL in whole seconds

    Raises:
        InvalidTTLError: If a configured TTL is not a positive number
    """
    if isinstance(ttl, FixedTTL):
        return _validated(ttl.seconds, "Fixed")
    if isinstance(ttl, DerivedTTL):
        return _validated(ttl.fn(store, session_data, sid), "Derived")

    max_age = _cookie_max_age(session_data)
    if max_age is None:
        return ONE_DAY
    return math.floor(max_age / 1000)

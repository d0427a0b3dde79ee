"""Options recognised by ``SQLAlchemyStore``."""

import time
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from session_store.core.config import Settings
from session_store.store.ttl import TTL, coerce_ttl


def wall_clock_ms() -> int:
    """Current time in epoch milliseconds"""
    return int(time.time() * 1000)


class StoreOptions(BaseModel):
    """Immutable store configuration captured at construction"""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    # Rows purged per set(); 0 disables cleanup
    cleanup_limit: int = Field(default=0, ge=0)
    # False selects ids first, for engines without LIMIT in IN subqueries
    limit_subquery: bool = True
    # Called with (store, error) instead of notifying observers
    on_error: Optional[Callable[..., Any]] = None
    # int seconds, callable(store, session_data, sid) or a TTL variant
    ttl: Optional[Any] = None
    atomic_upsert: bool = False
    create_schema: bool = False
    clock: Callable[[], int] = wall_clock_ms

    @field_validator("cleanup_limit", mode="before")
    @classmethod
    def _none_disables_cleanup(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("ttl", mode="before")
    @classmethod
    def _coerce_ttl(cls, value: Any) -> Optional[TTL]:
        return coerce_ttl(value)

    @classmethod
    def settings_values(cls, config: Settings) -> Dict[str, Any]:
        """Option values taken from environment settings"""
        return {
            "cleanup_limit": config.cleanup_limit,
            "limit_subquery": config.limit_subquery,
            "ttl": config.ttl_seconds,
            "atomic_upsert": config.atomic_upsert,
            "create_schema": config.create_schema,
        }

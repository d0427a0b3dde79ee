"""
Completion values and health signalling for store operations.

Every public store operation resolves to a ``StoreResult`` instead of raising.
Store health (connects, failures) is reported separately to the observers a
host registers once with ``SQLAlchemyStore.add_observer``.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, Protocol, TypeVar

if TYPE_CHECKING:
    from session_store.store.store import SQLAlchemyStore

T = TypeVar("T")

# Express-session style completion callback: callback(error, value)
Callback = Callable[[Optional[BaseException], Any], None]


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation: a value or the error that prevented it"""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return the value, raising the captured error if there is one"""
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: Optional[T] = None) -> "StoreResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException, value: Optional[T] = None) -> "StoreResult[T]":
        return cls(value=value, error=error)


class StoreObserver(Protocol):
    """Receives store-health notifications"""

    def on_connect(self, store: "SQLAlchemyStore") -> None:
        ...

    def on_disconnect(self, store: "SQLAlchemyStore", error: BaseException) -> None:
        ...

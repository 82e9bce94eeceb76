"""Abstract base class for persistent key/value stores."""

from abc import ABC, abstractmethod
from typing import Any


class PersistentStore(ABC):
    """Durable storage of JSON values keyed by string.

    Each backend (memory, file, sqlite) implements this interface. Calls
    are synchronous: a successful ``save`` is durable when it returns.
    Failures raise ``PersistenceError``.
    """

    name: str  # "memory", "file", "sqlite"

    @abstractmethod
    def load(self, key: str) -> Any | None:
        """Return the JSON value stored under key, or None if absent."""
        ...

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """Serialize value as JSON and store it under key."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every key from the store."""
        ...

"""The context object shared by the repository and the controller."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .backends import open_store
from .config import DEFAULT_HISTORY_WINDOW, get_store_url
from .settings import SettingsManager
from .store import PersistentStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatContext:
    """Everything a chat session needs, passed explicitly instead of held in globals."""

    store: PersistentStore
    settings: SettingsManager
    history_window: int = DEFAULT_HISTORY_WINDOW
    clock: Callable[[], datetime] = field(default=_utcnow)

    @classmethod
    def from_store(cls, store: PersistentStore, **kwargs) -> "ChatContext":
        return cls(store=store, settings=SettingsManager(store), **kwargs)

    @classmethod
    def open(cls, store_url: str | None = None, **kwargs) -> "ChatContext":
        """Open the configured store (or store_url) and load its settings."""
        return cls.from_store(open_store(store_url or get_store_url()), **kwargs)

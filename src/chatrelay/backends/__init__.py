"""Store backends and a URL-based registry."""

from pathlib import Path

from ..store import PersistentStore
from .file import FileStore
from .memory import MemoryStore
from .sqlite import SqliteStore


def open_store(url: str) -> PersistentStore:
    """Open a store from a URL: ``memory:``, ``file:<dir>`` or ``sqlite:<path>``."""
    scheme, _, location = url.partition(":")
    if scheme == "memory":
        return MemoryStore()
    if not location:
        raise ValueError(f"Store URL needs a location: {url!r}")
    if scheme == "file":
        return FileStore(Path(location).expanduser())
    if scheme == "sqlite":
        return SqliteStore(Path(location).expanduser())
    raise ValueError(f"Unknown store backend: {scheme!r}")


__all__ = ["FileStore", "MemoryStore", "SqliteStore", "open_store"]

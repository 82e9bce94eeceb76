"""In-memory store backend.

Values are kept as serialized JSON text so that a load never hands back
the same object that was saved.
"""

import json
from typing import Any

from ..errors import PersistenceError
from ..store import PersistentStore


class MemoryStore(PersistentStore):
    """Store that lives only as long as the process."""

    name = "memory"

    def __init__(self):
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize key '{key}': {e}") from e

    def clear(self) -> None:
        self._data.clear()

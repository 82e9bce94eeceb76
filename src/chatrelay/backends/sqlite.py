"""SQLite store backend.

Uses a single key/value table shaped like the ``ItemTable`` editors keep
in their ``state.vscdb`` files.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..errors import PersistenceError
from ..store import PersistentStore

logger = logging.getLogger(__name__)


class SqliteStore(PersistentStore):
    """Store backed by an SQLite database file."""

    name = "sqlite"

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        "CREATE TABLE IF NOT EXISTS ItemTable "
                        "(key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)"
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def load(self, key: str) -> Any | None:
        try:
            conn = self._connect()
            try:
                row = conn.execute("SELECT value FROM ItemTable WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Failed to read key '%s' from %s: %s", key, self.db_path, e)
            raise PersistenceError(f"Cannot read key '{key}': {e}") from e

        if row is None:
            return None
        val = row[0]
        text = val if isinstance(val, str) else val.decode("utf-8", errors="replace")
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt value under key '{key}': {e}") from e

    def save(self, key: str, value: Any) -> None:
        try:
            text = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize key '{key}': {e}") from e

        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("INSERT INTO ItemTable VALUES (?, ?)", (key, text))
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Failed to write key '%s' to %s: %s", key, self.db_path, e)
            raise PersistenceError(f"Cannot write key '{key}': {e}") from e

    def clear(self) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("DELETE FROM ItemTable")
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot clear {self.db_path}: {e}") from e

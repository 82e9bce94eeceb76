"""JSON-file store backend.

Each key is written to ``<directory>/<key>.json``. Writes go to a
temporary file in the same directory and are moved into place with
``os.replace`` so a crash never leaves a half-written value behind.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from ..errors import PersistenceError
from ..store import PersistentStore

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9._-]*")


class FileStore(PersistentStore):
    """Store backed by one JSON file per key."""

    name = "file"

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        if not isinstance(key, str) or not _KEY_RE.fullmatch(key):
            raise PersistenceError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Any | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read key '%s' from %s: %s", key, path, e)
            raise PersistenceError(f"Cannot read key '{key}': {e}") from e

    def save(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        try:
            text = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize key '{key}': {e}") from e

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning("Failed to write key '%s' to %s: %s", key, path, e)
            raise PersistenceError(f"Cannot write key '{key}': {e}") from e

    def clear(self) -> None:
        if not self.directory.is_dir():
            return
        try:
            for path in self.directory.glob("*.json"):
                path.unlink()
        except OSError as e:
            raise PersistenceError(f"Cannot clear {self.directory}: {e}") from e

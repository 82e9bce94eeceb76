"""Settings persistence.

The settings blob lives under ``settings``; the system instructions are
also written to ``custom_instructions`` on their own, and that key wins
when both are present on load.
"""

import dataclasses
import logging

from .core import Settings
from .errors import PersistenceError, ValidationError
from .store import PersistentStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
INSTRUCTIONS_KEY = "custom_instructions"


class SettingsManager:
    """Owns the process-wide Settings and saves them on every change."""

    def __init__(self, store: PersistentStore):
        self.store = store
        self.warnings: list[str] = []
        self.current = self._load()

    def _load(self) -> Settings:
        try:
            data = self.store.load(SETTINGS_KEY)
            instructions = self.store.load(INSTRUCTIONS_KEY)
        except PersistenceError as e:
            self._warn(f"Could not load settings: {e}")
            return Settings()

        settings = Settings()
        if isinstance(data, dict):
            try:
                settings = Settings.from_dict(data)
            except (ValidationError, TypeError) as e:
                self._warn(f"Ignoring invalid stored settings: {e}")

        if isinstance(instructions, str):
            settings = dataclasses.replace(settings, system_instructions=instructions)
        return settings

    def update(self, **changes) -> list[str]:
        """Apply changes, persist them and return any persistence warnings.

        Raises ValidationError (and changes nothing) for unknown fields or
        out-of-range values.
        """
        unknown = set(changes) - set(Settings.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        updated = dataclasses.replace(self.current, **changes)
        self.current = updated

        warnings = []
        try:
            self.store.save(SETTINGS_KEY, updated.to_dict())
            if "system_instructions" in changes:
                self.store.save(INSTRUCTIONS_KEY, updated.system_instructions)
        except PersistenceError as e:
            warnings.append(self._warn(f"Settings not saved: {e}"))
        return warnings

    def _warn(self, message: str) -> str:
        logger.warning(message)
        self.warnings.append(message)
        return message

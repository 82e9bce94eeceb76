"""Core data models for chatrelay."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .errors import ValidationError

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LEN = 30

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000


class Role(str, Enum):
    """Who authored a turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


@dataclass(frozen=True)
class Turn:
    """A single message within a conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Turn":
        """Build a Turn from a ``{"role", "content"}`` mapping.

        Raises ValueError on an unknown role and TypeError on non-string content.
        """
        content = data["content"]
        if not isinstance(content, str):
            raise TypeError(f"content must be a string, got {type(content).__name__}")
        return cls(role=Role(data["role"]), content=content)


@dataclass
class Conversation:
    """An append-only sequence of turns."""

    id: str
    title: str = DEFAULT_TITLE
    turns: tuple[Turn, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    title_set: bool = False  # true once the title replaced the placeholder

    def first_user_turn(self) -> Turn | None:
        for turn in self.turns:
            if turn.role is Role.USER:
                return turn
        return None

    def last_assistant_turn(self) -> Turn | None:
        for turn in reversed(self.turns):
            if turn.role is Role.ASSISTANT:
                return turn
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [t.to_dict() for t in self.turns],
            "created": self.created_at.isoformat(),
            "updated": self.updated_at.isoformat(),
            "title_set": self.title_set,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Conversation":
        created = _parse_datetime(data.get("created"))
        updated = _parse_datetime(data.get("updated")) or created
        title = data.get("title") or DEFAULT_TITLE
        title_set = data.get("title_set")
        if not isinstance(title_set, bool):
            # Entries written before the flag existed
            title_set = title != DEFAULT_TITLE
        return cls(
            id=str(data["id"]),
            title=title,
            title_set=title_set,
            turns=tuple(Turn.from_dict(m) for m in data.get("messages", [])),
            created_at=created or datetime.now(timezone.utc),
            updated_at=updated or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class IndexEntry:
    """One row of the conversation history list."""

    id: str
    title: str
    last_update: datetime
    turn_count: int


@dataclass(frozen=True)
class Settings:
    """Options that shape every completion request."""

    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    system_instructions: str = ""
    theme: Theme = Theme.LIGHT

    def __post_init__(self):
        if not isinstance(self.model, str) or not self.model.strip():
            raise ValidationError("model must be a non-empty identifier")
        if isinstance(self.temperature, bool) or not isinstance(self.temperature, (int, float)):
            raise ValidationError("temperature must be a number")
        if not 0 <= self.temperature <= 2:
            raise ValidationError(f"temperature must be within [0, 2], got {self.temperature}")
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise ValidationError(f"max_tokens must be a positive integer, got {self.max_tokens!r}")
        if not isinstance(self.system_instructions, str):
            raise ValidationError("system_instructions must be text")
        try:
            object.__setattr__(self, "theme", Theme(self.theme))
        except ValueError:
            raise ValidationError(f"theme must be 'light' or 'dark', got {self.theme!r}") from None

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "system_instructions": self.system_instructions,
            "theme": self.theme.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass(frozen=True)
class SendOutcome:
    """Result of one send: committed, failed at the gateway, or rejected up front."""

    status: str  # "committed" | "failed" | "rejected"
    conversation_id: str
    content: str | None = None  # assistant reply when committed
    error: str | None = None
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == "committed"


@dataclass(frozen=True)
class SpeechOutcome:
    audio: bytes | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.audio is not None


def make_title(text: str) -> str:
    """Derive a conversation title from the first user message."""
    if len(text) <= TITLE_MAX_LEN:
        return text
    return text[:TITLE_MAX_LEN] + "..."


def mint_id(prefix: str = "chat") -> str:
    """Return a fresh id of the form ``<prefix>_<epoch ms>``."""
    return f"{prefix}_{int(time.time() * 1000)}"


def _parse_datetime(value) -> datetime | None:
    """Parse an ISO string or epoch-millisecond number, or None."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None

"""In-memory conversation repository, flushed to the store on every mutation.

The whole map is re-serialized under the ``history`` key after each
change. Conversation counts are small and human-paced, so there is no
partial write or compaction.

Stored entries that cannot be parsed are kept verbatim and written back
with every flush. When the stored history cannot be read at all, nothing
is written to ``history`` for the rest of the session.
"""

from __future__ import annotations

import logging
from typing import Any

from .context import ChatContext
from .core import Conversation, IndexEntry, Turn, make_title, mint_id
from .errors import NotFoundError, PersistenceError
from .transfer import parse_import

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"


class ConversationRepository:
    """Map of conversation id to Conversation, hydrated from the store at startup."""

    def __init__(self, context: ChatContext):
        self.context = context
        self._conversations: dict[str, Conversation] = {}
        self._warnings: list[str] = []
        self._unreadable: dict[str, Any] = {}  # raw entries kept for write-back
        self._read_only = False  # set when the stored history could not be loaded
        self._hydrate()

    # ── Queries ──────────────────────────────────────────────────────

    def get(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def list(self) -> list[IndexEntry]:
        """Return index entries, most recently updated first."""
        entries = [
            IndexEntry(
                id=c.id,
                title=c.title,
                last_update=c.updated_at,
                turn_count=len(c.turns),
            )
            for c in self._conversations.values()
        ]
        entries.sort(key=lambda e: e.last_update, reverse=True)
        return entries

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    # ── Mutations ────────────────────────────────────────────────────

    def create_if_absent(self, conversation_id: str, first_user_content: str | None = None) -> Conversation:
        """Return the conversation for conversation_id, creating an empty one if needed.

        An existing conversation is returned untouched. The title stays at its
        placeholder until ``set_title_once`` runs after the first reply.
        """
        existing = self._conversations.get(conversation_id)
        if existing is not None:
            return existing

        now = self.context.clock()
        conversation = Conversation(id=conversation_id, created_at=now, updated_at=now)
        self._conversations[conversation_id] = conversation
        logger.info(
            "Created conversation %s (%d chars of opening text)",
            conversation_id,
            len(first_user_content or ""),
        )
        self._flush()
        return conversation

    def append_turn(self, conversation_id: str, turn: Turn) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError(conversation_id)
        conversation.turns = conversation.turns + (turn,)
        conversation.updated_at = self.context.clock()
        self._flush()

    def set_title_once(self, conversation_id: str, title: str) -> bool:
        """Set the title unless it was set before. Returns True if it changed."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError(conversation_id)
        if conversation.title_set:
            return False
        conversation.title = make_title(title)
        conversation.title_set = True
        conversation.updated_at = self.context.clock()
        self._flush()
        return True

    def import_conversation(self, blob: str | bytes) -> Conversation:
        """Add an exported conversation under a fresh ``imported_`` id.

        Raises ImportFormatError and leaves the repository unchanged when
        the blob is malformed.
        """
        conversation_id = mint_id("imported")
        suffix = 1
        while conversation_id in self._conversations:
            conversation_id = f"{mint_id('imported')}_{suffix}"
            suffix += 1

        conversation = parse_import(blob, conversation_id, self.context.clock())
        self._conversations[conversation.id] = conversation
        logger.info("Imported conversation %s with %d turns", conversation.id, len(conversation.turns))
        self._flush()
        return conversation

    def drain_warnings(self) -> list[str]:
        """Return and forget persistence warnings collected so far."""
        warnings, self._warnings = self._warnings, []
        return warnings

    # ── Persistence ──────────────────────────────────────────────────

    def _hydrate(self) -> None:
        try:
            data = self.context.store.load(HISTORY_KEY)
        except PersistenceError as e:
            self._read_only = True
            self._warn(f"Could not load conversation history, changes will not be saved: {e}")
            return

        if data is None:
            return
        if not isinstance(data, dict):
            self._read_only = True
            self._warn("Stored conversation history is not an object, changes will not be saved")
            return

        for key, value in data.items():
            try:
                conversation = Conversation.from_dict(value)
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                self._warn(f"Skipping unreadable conversation {key}: {e}")
                self._unreadable[key] = value
                continue
            self._conversations[conversation.id] = conversation
        logger.info("Loaded %d conversations", len(self._conversations))

    def _flush(self) -> None:
        if self._read_only:
            self._warn("Conversation history not saved: stored history could not be read")
            return
        payload = dict(self._unreadable)
        payload.update({cid: c.to_dict() for cid, c in self._conversations.items()})
        try:
            self.context.store.save(HISTORY_KEY, payload)
        except PersistenceError as e:
            self._warn(f"Conversation history not saved: {e}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._warnings.append(message)

"""Export conversations to JSON and Markdown, and parse JSON imports."""

import json
from datetime import datetime, timezone

from .core import Conversation, Turn
from .errors import ImportFormatError

IMPORTED_TITLE = "Imported Chat"


def conversation_to_markdown(conversation: Conversation) -> str:
    """Export a conversation as clean Markdown."""
    lines = [f"# {conversation.title}", ""]

    lines.append(f"**Created:** {conversation.created_at.isoformat()}")
    lines.append(f"**Updated:** {conversation.updated_at.isoformat()}")
    lines.append(f"**Messages:** {len(conversation.turns)}")
    lines.extend(["", "---", ""])

    for turn in conversation.turns:
        lines.append(f"## {turn.role.value.capitalize()}")
        lines.append("")
        lines.append(turn.content)
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def conversation_to_json(conversation: Conversation, model: str, exported: datetime | None = None) -> str:
    """Export a conversation in the ``{"metadata": ..., "messages": [...]}`` format."""
    exported = exported or datetime.now(timezone.utc)
    data = {
        "metadata": {
            "title": conversation.title,
            "model": model,
            "exported": exported.isoformat(),
        },
        "messages": [t.to_dict() for t in conversation.turns],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def parse_import(blob: str | bytes, conversation_id: str, now: datetime) -> Conversation:
    """Parse exported JSON into a new Conversation under conversation_id.

    Raises ImportFormatError when the blob is not JSON, is not an object,
    or holds a message without a known role and string content. Nothing is
    returned for partially valid data.
    """
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Invalid format: not JSON ({e})") from e

    if not isinstance(data, dict):
        raise ImportFormatError("Invalid format: expected a JSON object")

    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ImportFormatError("Invalid format: 'metadata' must be an object")

    messages = data.get("messages")
    if not isinstance(messages, list):
        raise ImportFormatError("Invalid format: 'messages' must be a list")

    turns = []
    for i, msg in enumerate(messages):
        if not isinstance(msg, dict):
            raise ImportFormatError(f"Invalid format: message {i} is not an object")
        try:
            turns.append(Turn.from_dict(msg))
        except (KeyError, ValueError, TypeError) as e:
            raise ImportFormatError(f"Invalid format: message {i}: {e}") from e

    title = metadata.get("title")
    if not isinstance(title, str) or not title.strip():
        title = IMPORTED_TITLE

    return Conversation(
        id=conversation_id,
        title=title,
        title_set=True,
        turns=tuple(turns),
        created_at=now,
        updated_at=now,
    )

"""Exception hierarchy for chatrelay."""


class ChatRelayError(Exception):
    """Base class for all chatrelay errors."""


class ValidationError(ChatRelayError):
    """Input rejected before any state changed (empty message, bad setting)."""


class NotFoundError(ChatRelayError):
    """A conversation id is not present in the repository."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class GatewayError(ChatRelayError):
    """A gateway returned an error body or could not be reached."""

    def __init__(self, message: str, error_type: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code


class PersistenceError(ChatRelayError):
    """The persistent store failed to read or write a key."""


class ImportFormatError(ChatRelayError):
    """Imported conversation data is malformed."""

"""chatrelay: a chat client that keeps its conversations and proxies an AI completion service."""

from .context import ChatContext
from .controller import ConversationController
from .repository import ConversationRepository

__version__ = "0.1.0"

__all__ = ["ChatContext", "ConversationController", "ConversationRepository"]

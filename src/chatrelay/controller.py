"""Conversation controller: one user message in, one outcome out.

A send moves Idle -> AwaitingResponse -> Committed | Failed. The user
turn is committed before the gateway is called and is never rolled back.
"""

import logging

from .config import DEFAULT_VOICE
from .context import ChatContext
from .core import Role, SendOutcome, SpeechOutcome, Turn, mint_id
from .errors import ChatRelayError, GatewayError, ValidationError
from .gateway import CompletionGateway, CompletionRequest, SpeechGateway
from .repository import ConversationRepository

logger = logging.getLogger(__name__)


class ConversationController:
    """Sends user turns through the completion gateway and records the results."""

    def __init__(
        self,
        context: ChatContext,
        repository: ConversationRepository,
        gateway: CompletionGateway,
        speech: SpeechGateway | None = None,
    ):
        self.context = context
        self.repository = repository
        self.gateway = gateway
        self.speech = speech
        self._busy = False  # single in-flight send across all conversations

    @property
    def busy(self) -> bool:
        return self._busy

    def new_conversation_id(self) -> str:
        """Return an id no conversation uses yet."""
        conversation_id = mint_id("chat")
        suffix = 1
        while conversation_id in self.repository:
            conversation_id = f"{mint_id('chat')}_{suffix}"
            suffix += 1
        return conversation_id

    def build_context(self, conversation_id: str) -> list[Turn]:
        """Return the messages sent to the gateway for a conversation.

        An optional system turn from the settings, then the most recent
        ``history_window`` turns in order. Older turns are dropped.
        """
        messages = []
        instructions = self.context.settings.current.system_instructions
        if instructions.strip():
            messages.append(Turn(Role.SYSTEM, instructions))

        conversation = self.repository.get(conversation_id)
        if conversation is not None:
            window = self.context.history_window
            messages.extend(conversation.turns[-window:] if window > 0 else ())
        return messages

    def send_user_message(self, conversation_id: str, text: str) -> SendOutcome:
        """Send text as a user turn and return what happened."""
        message = text.strip() if isinstance(text, str) else ""
        if not message:
            return self._rejected(conversation_id, ValidationError("Message is empty"))
        if self._busy:
            return self._rejected(conversation_id, ValidationError("A message is already being sent"))

        self._busy = True
        try:
            return self._send(conversation_id, message)
        except ChatRelayError as e:
            logger.error("Send to %s failed: %s", conversation_id, e)
            return self._outcome("failed", conversation_id, error=str(e))
        finally:
            self._busy = False

    def _send(self, conversation_id: str, message: str) -> SendOutcome:
        self.repository.create_if_absent(conversation_id, message)
        self.repository.append_turn(conversation_id, Turn(Role.USER, message))

        settings = self.context.settings.current
        request = CompletionRequest(
            model=settings.model,
            messages=tuple(self.build_context(conversation_id)),
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )

        try:
            reply = self.gateway.complete(request)
        except GatewayError as e:
            logger.error("Completion failed for %s: %s", conversation_id, e.message)
            return self._outcome("failed", conversation_id, error=e.message)

        self.repository.append_turn(conversation_id, Turn(Role.ASSISTANT, reply))

        # The first committed reply names the conversation; later replies are no-ops.
        conversation = self.repository.get(conversation_id)
        if not conversation.title_set:
            first = conversation.first_user_turn()
            self.repository.set_title_once(conversation_id, first.content if first else message)

        return self._outcome("committed", conversation_id, content=reply)

    def speak_last_reply(self, conversation_id: str, voice: str = DEFAULT_VOICE) -> SpeechOutcome:
        """Synthesize the latest assistant turn of a conversation."""
        if self.speech is None:
            return SpeechOutcome(error="No speech gateway configured")

        conversation = self.repository.get(conversation_id)
        turn = conversation.last_assistant_turn() if conversation else None
        if turn is None:
            return SpeechOutcome(error="Nothing to speak")

        try:
            return SpeechOutcome(audio=self.speech.synthesize(turn.content, voice=voice))
        except GatewayError as e:
            logger.error("Speech failed for %s: %s", conversation_id, e.message)
            return SpeechOutcome(error=e.message)

    def check_status(self) -> bool:
        """Return True if the completion gateway answers a tiny request."""
        request = CompletionRequest(
            model=self.context.settings.current.model,
            messages=(Turn(Role.USER, "Hello"),),
            max_tokens=5,
        )
        try:
            self.gateway.complete(request)
        except GatewayError as e:
            logger.info("Completion gateway offline: %s", e.message)
            return False
        return True

    # ── Outcomes ─────────────────────────────────────────────────────

    def _rejected(self, conversation_id: str, error: ValidationError) -> SendOutcome:
        logger.debug("Rejected send to %s: %s", conversation_id, error)
        return SendOutcome(status="rejected", conversation_id=conversation_id, error=str(error))

    def _outcome(self, status: str, conversation_id: str, content: str | None = None, error: str | None = None) -> SendOutcome:
        return SendOutcome(
            status=status,
            conversation_id=conversation_id,
            content=content,
            error=error,
            warnings=tuple(self.repository.drain_warnings()),
        )

"""Tests for the conversation controller."""

from chatrelay.core import Role, Turn
from chatrelay.errors import GatewayError


class TestSendScenarios:
    def test_first_message_to_new_conversation(self, controller, gateway, repository):
        gateway.replies = ["Hi there!"]
        outcome = controller.send_user_message("c1", "Hello")

        assert outcome.ok
        assert outcome.content == "Hi there!"
        (request,) = gateway.requests
        assert request.to_payload()["messages"] == [{"role": "user", "content": "Hello"}]

        conv = repository.get("c1")
        assert conv.turns == (Turn(Role.USER, "Hello"), Turn(Role.ASSISTANT, "Hi there!"))
        assert conv.title == "Hello"

    def test_gateway_error_keeps_user_turn(self, controller, gateway, repository):
        gateway.replies = [GatewayError("rate limited", error_type="rate_limit_error")]
        outcome = controller.send_user_message("c1", "Hello")

        assert not outcome.ok
        assert outcome.status == "failed"
        assert outcome.error == "rate limited"
        conv = repository.get("c1")
        assert conv.turns == (Turn(Role.USER, "Hello"),)
        assert conv.title == "New Chat"

    def test_request_uses_settings(self, context, controller, gateway):
        context.settings.update(model="gpt-4o", temperature=0.2, max_tokens=256)
        controller.send_user_message("c1", "Hello")
        payload = gateway.requests[0].to_payload()
        assert payload["model"] == "gpt-4o"
        assert payload["temperature"] == 0.2
        assert payload["max_tokens"] == 256

    def test_message_is_trimmed(self, controller, repository):
        controller.send_user_message("c1", "  Hello  \n")
        assert repository.get("c1").turns[0].content == "Hello"


class TestRejection:
    def test_empty_text_is_a_no_op(self, controller, gateway, repository):
        for text in ("", "   ", "\n\t"):
            outcome = controller.send_user_message("c1", text)
            assert outcome.status == "rejected"
        assert gateway.requests == []
        assert repository.get("c1") is None

    def test_send_while_busy_is_rejected(self, controller, gateway, repository):
        inner = []

        class ReentrantGateway(type(gateway)):
            def complete(self, request):
                inner.append(controller.send_user_message("c2", "while waiting"))
                return "done"

        controller.gateway = ReentrantGateway()
        outcome = controller.send_user_message("c1", "first")

        assert outcome.ok
        assert inner[0].status == "rejected"
        assert repository.get("c2") is None
        assert not controller.busy


class TestContextWindow:
    def _seed(self, repository, count):
        repository.create_if_absent("c1")
        for i in range(count):
            role = Role.USER if i % 2 == 0 else Role.ASSISTANT
            repository.append_turn("c1", Turn(role, f"turn {i}"))

    def test_window_caps_history(self, controller, gateway, repository):
        self._seed(repository, 50)
        controller.send_user_message("c1", "latest")
        messages = gateway.requests[0].messages
        assert len(messages) == 20
        assert messages[-1] == Turn(Role.USER, "latest")
        assert messages[0].content == "turn 31"

    def test_system_instructions_lead(self, context, controller, gateway, repository):
        context.settings.update(system_instructions="Be brief.")
        self._seed(repository, 50)
        controller.send_user_message("c1", "latest")
        messages = gateway.requests[0].messages
        assert len(messages) == 21
        assert messages[0] == Turn(Role.SYSTEM, "Be brief.")
        assert all(m.role is not Role.SYSTEM for m in messages[1:])

    def test_blank_instructions_are_skipped(self, context, controller, gateway):
        context.settings.update(system_instructions="   ")
        controller.send_user_message("c1", "Hello")
        assert [m.role for m in gateway.requests[0].messages] == [Role.USER]

    def test_custom_window(self, context, controller, gateway, repository):
        context.history_window = 4
        self._seed(repository, 10)
        controller.send_user_message("c1", "latest")
        assert len(gateway.requests[0].messages) == 4

    def test_system_turns_are_not_stored(self, context, controller, repository):
        context.settings.update(system_instructions="Be brief.")
        controller.send_user_message("c1", "Hello")
        assert [t.role for t in repository.get("c1").turns] == [Role.USER, Role.ASSISTANT]


class TestTitle:
    def test_title_never_changes_after_first_reply(self, controller, repository):
        controller.send_user_message("c1", "What is the capital of France?")
        controller.send_user_message("c1", "And of Germany?")
        controller.send_user_message("c1", "Thanks")
        conv = repository.get("c1")
        assert conv.title == "What is the capital of France?"
        assert len(conv.turns) == 6

    def test_title_set_by_first_committed_reply_after_failure(self, controller, gateway, repository):
        gateway.replies = [GatewayError("boom"), "Recovered"]
        controller.send_user_message("c1", "First try")
        controller.send_user_message("c1", "Second try")
        assert repository.get("c1").title == "First try"

    def test_placeholder_text_is_kept_as_title(self, controller, repository):
        controller.send_user_message("c1", "New Chat")
        controller.send_user_message("c1", "Something else")
        conv = repository.get("c1")
        assert conv.title == "New Chat"
        assert conv.title_set is True


class TestWarnings:
    def test_persistence_failure_is_reported_not_fatal(self, controller, store, repository):
        store.fail_writes = True
        outcome = controller.send_user_message("c1", "Hello")
        assert outcome.ok
        assert outcome.warnings
        assert all("quota exceeded" in w for w in outcome.warnings)
        assert len(repository.get("c1").turns) == 2


class TestNewConversationId:
    def test_ids_are_unique(self, controller, repository):
        first = controller.new_conversation_id()
        repository.create_if_absent(first)
        second = controller.new_conversation_id()
        assert first.startswith("chat_")
        assert second != first


class TestSpeech:
    def test_speaks_last_reply(self, controller, speech):
        controller.send_user_message("c1", "Hello")
        outcome = controller.speak_last_reply("c1", voice="nova")
        assert outcome.ok
        assert outcome.audio == speech.audio
        assert speech.calls == [("OK", "nova")]

    def test_nothing_to_speak(self, controller):
        outcome = controller.speak_last_reply("missing")
        assert not outcome.ok
        assert outcome.error == "Nothing to speak"

    def test_speech_failure(self, controller, speech):
        speech.error = "voice unavailable"
        controller.send_user_message("c1", "Hello")
        outcome = controller.speak_last_reply("c1")
        assert outcome.error == "voice unavailable"


class TestStatus:
    def test_online(self, controller, gateway):
        assert controller.check_status() is True
        assert gateway.requests[0].max_tokens == 5

    def test_offline(self, controller, gateway):
        gateway.replies = [GatewayError("connection refused")]
        assert controller.check_status() is False

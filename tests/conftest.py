"""Shared test fixtures for chatrelay."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from chatrelay.backends import MemoryStore
from chatrelay.context import ChatContext
from chatrelay.controller import ConversationController
from chatrelay.errors import GatewayError, PersistenceError
from chatrelay.gateway import CompletionGateway, SpeechGateway
from chatrelay.repository import ConversationRepository


class FakeGateway(CompletionGateway):
    """Records requests and answers with canned replies or errors."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.requests = []

    def complete(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else "OK"
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeSpeech(SpeechGateway):
    def __init__(self, audio=b"ID3fake-mp3", error=None):
        self.audio = audio
        self.error = error
        self.calls = []

    def synthesize(self, text, voice="alloy"):
        self.calls.append((text, voice))
        if self.error:
            raise GatewayError(self.error)
        return self.audio


class FailingStore(MemoryStore):
    """Memory store whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def save(self, key, value):
        if self.fail_writes:
            raise PersistenceError("quota exceeded")
        super().save(key, value)


@pytest.fixture
def clock():
    """A clock that advances one second per call."""
    start = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def store():
    return FailingStore()


@pytest.fixture
def context(store, clock):
    return ChatContext.from_store(store, clock=clock)


@pytest.fixture
def repository(context):
    return ConversationRepository(context)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def controller(context, repository, gateway, speech):
    return ConversationController(context, repository, gateway, speech=speech)

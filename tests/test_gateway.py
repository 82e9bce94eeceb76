"""Tests for the HTTP gateway clients."""

import json

import httpx
import pytest

from chatrelay.core import Role, Turn
from chatrelay.errors import GatewayError
from chatrelay.gateway import (
    CompletionRequest,
    HttpCompletionGateway,
    HttpImageGateway,
    HttpSpeechGateway,
)


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler), base_url="http://test")


def _completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }


REQUEST = CompletionRequest(
    model="gpt-3.5-turbo",
    messages=(Turn(Role.SYSTEM, "Be brief."), Turn(Role.USER, "Hello")),
    temperature=0.7,
    max_tokens=1000,
)


class TestCompletionGateway:
    def test_sends_payload_and_reads_first_choice(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("Hi there!"))

        gw = HttpCompletionGateway(client=_client(handler))
        assert gw.complete(REQUEST) == "Hi there!"
        assert seen["path"] == "/api/chat"
        assert seen["body"] == {
            "model": "gpt-3.5-turbo",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hello"},
            ],
            "temperature": 0.7,
            "max_tokens": 1000,
        }

    def test_error_body_is_surfaced_verbatim(self):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "rate limited", "type": "rate_limit_error"}})

        gw = HttpCompletionGateway(client=_client(handler))
        with pytest.raises(GatewayError) as exc:
            gw.complete(REQUEST)
        assert exc.value.message == "rate limited"
        assert exc.value.error_type == "rate_limit_error"
        assert exc.value.status_code == 500

    def test_error_body_with_success_status(self):
        def handler(request):
            return httpx.Response(200, json={"error": {"message": "quota"}})

        with pytest.raises(GatewayError, match="quota"):
            HttpCompletionGateway(client=_client(handler)).complete(REQUEST)

    def test_null_error_field_is_not_an_error(self):
        def handler(request):
            return httpx.Response(200, json={"error": None, **_completion("Fine")})

        assert HttpCompletionGateway(client=_client(handler)).complete(REQUEST) == "Fine"

    def test_non_json_failure(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(GatewayError, match="API error: 502"):
            HttpCompletionGateway(client=_client(handler)).complete(REQUEST)

    def test_malformed_success_body(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(GatewayError, match="Malformed"):
            HttpCompletionGateway(client=_client(handler)).complete(REQUEST)

    def test_null_content_becomes_empty(self):
        def handler(request):
            return httpx.Response(200, json=_completion(None))

        assert HttpCompletionGateway(client=_client(handler)).complete(REQUEST) == ""

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError, match="connection refused"):
            HttpCompletionGateway(client=_client(handler)).complete(REQUEST)


class TestSpeechGateway:
    def test_returns_audio(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"ID3audio", headers={"content-type": "audio/mpeg"})

        gw = HttpSpeechGateway(client=_client(handler))
        assert gw.synthesize("Hello", voice="nova") == b"ID3audio"
        assert seen["body"] == {"text": "Hello", "voice": "nova"}

    def test_error_string(self):
        def handler(request):
            return httpx.Response(500, json={"error": "invalid voice"})

        with pytest.raises(GatewayError, match="invalid voice"):
            HttpSpeechGateway(client=_client(handler)).synthesize("Hello")


class TestImageGateway:
    def test_returns_urls(self):
        def handler(request):
            body = json.loads(request.content)
            assert body == {"prompt": "a cat", "size": "512x512", "n": 2}
            return httpx.Response(200, json={"created": 1, "data": [{"url": "https://img/1"}, {"url": "https://img/2"}]})

        urls = HttpImageGateway(client=_client(handler)).generate("a cat", size="512x512", n=2)
        assert urls == ["https://img/1", "https://img/2"]

    def test_error(self):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "content policy"}})

        with pytest.raises(GatewayError, match="content policy"):
            HttpImageGateway(client=_client(handler)).generate("a cat")

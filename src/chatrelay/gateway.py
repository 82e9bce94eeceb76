"""Clients for the completion, speech and image proxy handlers.

Each gateway is a single request/response call. Error bodies and
transport failures are converted to ``GatewayError`` here so callers
only ever deal with one exception type.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from .config import DEFAULT_VOICE, REQUEST_TIMEOUT, get_api_url
from .core import Turn
from .errors import GatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    messages: tuple[Turn, ...] = field(default_factory=tuple)
    temperature: float = 0.7
    max_tokens: int = 1000

    def to_payload(self) -> dict:
        return {
            "model": self.model,
            "messages": [t.to_dict() for t in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


class CompletionGateway(ABC):
    """Turns a list of messages into one assistant reply."""

    @abstractmethod
    def complete(self, request: CompletionRequest) -> str:
        """Return the content of the first choice. Raises GatewayError on failure."""
        ...


class SpeechGateway(ABC):
    @abstractmethod
    def synthesize(self, text: str, voice: str = DEFAULT_VOICE) -> bytes:
        """Return audio/mpeg bytes for text. Raises GatewayError on failure."""
        ...


class ImageGateway(ABC):
    @abstractmethod
    def generate(self, prompt: str, size: str = "1024x1024", n: int = 1) -> list[str]:
        """Return URLs of generated images. Raises GatewayError on failure."""
        ...


# ── HTTP implementations ─────────────────────────────────────────


class _HttpGateway:
    """Shared httpx plumbing for the proxy handlers."""

    def __init__(self, base_url: str | None = None, client: httpx.Client | None = None):
        self.client = client or httpx.Client(base_url=base_url or get_api_url(), timeout=REQUEST_TIMEOUT)

    def _post(self, path: str, payload: dict) -> httpx.Response:
        try:
            return self.client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", path, e)
            raise GatewayError(f"Transport error: {e}") from e

    def close(self) -> None:
        self.client.close()


def _error_from_body(data, status_code: int) -> GatewayError | None:
    """Build a GatewayError from an ``{"error": ...}`` body, or None if there is no error."""
    err = data.get("error") if isinstance(data, dict) else None
    if not err:
        return None
    if isinstance(err, dict):
        return GatewayError(
            str(err.get("message") or "Unknown error"),
            error_type=err.get("type"),
            status_code=status_code,
        )
    return GatewayError(str(err), status_code=status_code)


def _json_or_fail(resp: httpx.Response):
    try:
        data = resp.json()
    except ValueError:
        if not resp.is_success:
            raise GatewayError(f"API error: {resp.status_code}", status_code=resp.status_code)
        raise GatewayError("Response is not valid JSON", status_code=resp.status_code)

    err = _error_from_body(data, resp.status_code)
    if err is not None:
        raise err
    if not resp.is_success:
        raise GatewayError(f"API error: {resp.status_code}", status_code=resp.status_code)
    return data


class HttpCompletionGateway(_HttpGateway, CompletionGateway):
    """Posts to ``/api/chat``."""

    path = "/api/chat"

    def complete(self, request: CompletionRequest) -> str:
        resp = self._post(self.path, request.to_payload())
        data = _json_or_fail(resp)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GatewayError(f"Malformed completion response: {e}", status_code=resp.status_code) from e
        return content or ""


class HttpSpeechGateway(_HttpGateway, SpeechGateway):
    """Posts to ``/api/tts``."""

    path = "/api/tts"

    def synthesize(self, text: str, voice: str = DEFAULT_VOICE) -> bytes:
        resp = self._post(self.path, {"text": text, "voice": voice})
        content_type = resp.headers.get("content-type", "")
        if resp.is_success and content_type.startswith("audio/"):
            return resp.content
        _json_or_fail(resp)
        raise GatewayError(f"Unexpected content type: {content_type or 'none'}", status_code=resp.status_code)


class HttpImageGateway(_HttpGateway, ImageGateway):
    """Posts to ``/api/image``."""

    path = "/api/image"

    def generate(self, prompt: str, size: str = "1024x1024", n: int = 1) -> list[str]:
        resp = self._post(self.path, {"prompt": prompt, "size": size, "n": n})
        data = _json_or_fail(resp)
        try:
            return [item["url"] for item in data["data"]]
        except (KeyError, TypeError) as e:
            raise GatewayError(f"Malformed image response: {e}", status_code=resp.status_code) from e

"""FastAPI proxy handlers for chat completion, text-to-speech and image generation.

Each route is a single pass-through call to OpenAI. Upstream failures come
back as JSON error bodies with status 500.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from openai import AsyncOpenAI
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import DEFAULT_VOICE, TTS_MODEL, get_openai_api_key
from .core import DEFAULT_MAX_TOKENS, DEFAULT_MODEL, DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)

app = FastAPI(title="chatrelay", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Upstream client (created on first request)
_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    """Lazily initialize and cache the OpenAI client."""
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=get_openai_api_key())
        logger.info("OpenAI client initialized")
    return _client


class ChatRequest(BaseModel):
    model: str | None = None
    messages: list[dict]
    temperature: float | None = None
    max_tokens: int | None = None


class SpeechRequest(BaseModel):
    text: str
    voice: str | None = None


class ImageRequest(BaseModel):
    prompt: str
    size: str | None = None
    n: int = 1


def _upstream_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": {"message": str(exc), "type": getattr(exc, "type", None)}},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    """Answer wrong methods with the same JSON shape the handlers use."""
    if exc.status_code == 405:
        return JSONResponse(status_code=405, content={"error": "Method not allowed"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ── Routes ───────────────────────────────────────────────────────


@app.options("/api/chat")
async def chat_preflight():
    return Response(status_code=200)


@app.post("/api/chat")
async def chat(body: ChatRequest):
    """Forward a chat completion request and return the upstream completion object."""
    try:
        completion = await _get_client().chat.completions.create(
            model=body.model or DEFAULT_MODEL,
            messages=body.messages,
            temperature=DEFAULT_TEMPERATURE if body.temperature is None else body.temperature,
            max_tokens=body.max_tokens or DEFAULT_MAX_TOKENS,
        )
    except Exception as e:
        logger.error("Chat API error: %s", e)
        return _upstream_error(e)

    return completion.model_dump()


@app.post("/api/tts")
async def tts(body: SpeechRequest):
    """Return MP3 audio for the given text."""
    try:
        speech = await _get_client().audio.speech.create(
            model=TTS_MODEL,
            voice=body.voice or DEFAULT_VOICE,
            input=body.text,
        )
    except Exception as e:
        logger.error("TTS error: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return Response(content=speech.content, media_type="audio/mpeg")


@app.post("/api/image")
async def image(body: ImageRequest):
    """Generate images and return the upstream response with their URLs."""
    try:
        result = await _get_client().images.generate(
            prompt=body.prompt,
            size=body.size or "1024x1024",
            n=body.n,
        )
    except Exception as e:
        logger.error("Image API error: %s", e)
        return _upstream_error(e)

    return result.model_dump()

"""Shared fixtures for the Tokenlay SDK test suite."""

import asyncio
import json
import time

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from tokenlay.client import TokenlayOpenAI
from tokenlay.clients.models import TokenlayOptions
from tokenlay.config.settings import get_settings

TOKENLAY_KEY = "tk_test_123"
PROVIDER_KEY = "sk-test-456"
PROXY_BASE_URL = "http://proxy.test"


def build_fake_proxy() -> FastAPI:
    """In-process stand-in for the Tokenlay proxy.

    Records every request's headers and body on ``app.state.requests``.
    Response headers for completions come from ``app.state.response_headers``.
    The model name "invalid-model" yields a 400 and a wrong Tokenlay key a 401.
    Setting ``app.state.release`` to an asyncio.Event holds completions inside
    the handler (after recording) until it is set; ``app.state.entered`` is
    set once a request is being held.
    """
    app = FastAPI()
    app.state.requests = []
    app.state.entered = asyncio.Event()
    app.state.release = None
    app.state.response_headers = {
        "x-request-id": "req_test_123",
        "x-tokenlay-rule-id": "test-rule",
        "x-tokenlay-rule-action": "allow",
        "x-tokenlay-cost": "0.00018",
        "x-tokenlay-tokens-used": "18",
        "x-tokenlay-input-tokens": "10",
        "x-tokenlay-output-tokens": "8",
        "x-tokenlay-duration": "42",
    }

    def _authorized(request: Request) -> bool:
        return request.headers.get("authorization") == f"Bearer {TOKENLAY_KEY}"

    @app.get("/health")
    async def health(request: Request):
        if not _authorized(request):
            return JSONResponse({"error": "invalid key"}, status_code=401)
        return {"status": "healthy"}

    @app.post("/v1/chat/completions")
    async def chat_completions(request: Request):
        body = await request.json()
        app.state.requests.append({"headers": dict(request.headers), "body": body})
        if app.state.release is not None:
            app.state.entered.set()
            await app.state.release.wait()

        if not _authorized(request):
            return JSONResponse(
                {"error": {"message": "Invalid Tokenlay key", "type": "invalid_request_error"}},
                status_code=401,
            )
        if body.get("model") == "invalid-model":
            return JSONResponse(
                {"error": {"message": "The model does not exist", "type": "invalid_request_error"}},
                status_code=400,
            )

        content = body["messages"][-1]["content"] if body.get("messages") else ""
        if body.get("stream"):
            return StreamingResponse(
                _sse_chunks(body.get("model", "gpt-4o-mini"), f"echo: {content}"),
                media_type="text/event-stream",
                headers=app.state.response_headers,
            )
        return JSONResponse(
            {
                "id": "chatcmpl-test",
                "object": "chat.completion",
                "created": int(time.time()),
                "model": body.get("model", "gpt-4o-mini"),
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": f"echo: {content}"},
                        "finish_reason": "stop",
                    }
                ],
                "usage": {"prompt_tokens": 10, "completion_tokens": 8, "total_tokens": 18},
            },
            headers=app.state.response_headers,
        )

    return app


async def _sse_chunks(model: str, text: str, chunk_size: int = 5):
    """Yield OpenAI-style SSE lines for text, split into small deltas."""
    for i in range(0, len(text), chunk_size):
        chunk = {
            "id": "chatcmpl-test",
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": model,
            "choices": [{"index": 0, "delta": {"content": text[i:i + chunk_size]}, "finish_reason": None}],
        }
        yield f"data: {json.dumps(chunk)}\n\n"
    yield "data: [DONE]\n\n"


@pytest.fixture
def fake_proxy() -> FastAPI:
    return build_fake_proxy()


@pytest.fixture
async def proxy_http_client(fake_proxy):
    """httpx AsyncClient wired to the fake proxy over ASGI transport."""
    transport = httpx.ASGITransport(app=fake_proxy)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def make_client(proxy_http_client):
    """Factory fixture: TokenlayOpenAI talking to the fake proxy.

    Usage:
        client = make_client(metadata={"env": "test"})
    """
    def _make(**kwargs) -> TokenlayOpenAI:
        values = {
            "tokenlay_key": TOKENLAY_KEY,
            "provider_api_key": PROVIDER_KEY,
            "tokenlay_base_url": PROXY_BASE_URL,
            "max_retries": 0,
            "http_client": proxy_http_client,
        }
        values.update(kwargs)
        return TokenlayOpenAI(TokenlayOptions(**values))

    return _make


@pytest.fixture
def chat_params() -> dict:
    """Standard chat completion parameters."""
    return {
        "model": "gpt-4o-mini",
        "messages": [{"role": "user", "content": "Hello!"}],
    }


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(TOKENLAY_KEY="tk_env", OPENAI_API_KEY="sk-env")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    get_settings.cache_clear()

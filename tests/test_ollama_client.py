"""Tests for the Ollama streaming client."""

from __future__ import annotations

import json

import httpx
import pytest
from pydantic import AnyHttpUrl

from narrator.config import Settings
from narrator.ollama import OllamaClient, OllamaError

pytestmark = pytest.mark.asyncio


def ndjson(*chunks) -> bytes:
    return "\n".join(json.dumps(c, ensure_ascii=False) for c in chunks).encode()


def make_client(handler) -> OllamaClient:
    settings = Settings(
        ollama_base_url=AnyHttpUrl("http://ollama.test:11434/"),
        ollama_model="gemma3:27b",
    )
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaClient(settings, http_client=http)


async def collect(client: OllamaClient, prompt: str = "質問") -> list[dict]:
    return [chunk async for chunk in client.stream_generate(prompt)]


async def test_streams_chunks_until_done():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = ndjson(
            {"response": "こん", "done": False},
            {"response": "にちは。", "done": False},
            {"response": "", "done": True},
            {"response": "ignored", "done": False},
        )
        return httpx.Response(200, content=body)

    chunks = await collect(make_client(handler))

    assert [c["response"] for c in chunks] == ["こん", "にちは。", ""]
    assert chunks[-1]["done"] is True
    assert str(seen[0].url) == "http://ollama.test:11434/api/generate"
    assert json.loads(seen[0].content) == {
        "model": "gemma3:27b",
        "prompt": "質問",
        "stream": True,
    }


async def test_blank_lines_are_skipped():
    def handler(request: httpx.Request) -> httpx.Response:
        body = b'{"response": "a", "done": false}\n\n{"response": "", "done": true}\n'
        return httpx.Response(200, content=body)

    chunks = await collect(make_client(handler))

    assert len(chunks) == 2


async def test_http_error_status_raises_with_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "model 'x' not found"})

    with pytest.raises(OllamaError) as excinfo:
        await collect(make_client(handler))

    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "model 'x' not found"


async def test_error_chunk_mid_stream_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        body = ndjson({"response": "a", "done": False}, {"error": "out of memory"})
        return httpx.Response(200, content=body)

    with pytest.raises(OllamaError, match="out of memory"):
        await collect(make_client(handler))


async def test_transport_failure_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(OllamaError) as excinfo:
        await collect(make_client(handler))

    assert excinfo.value.status_code == 502


async def test_malformed_chunk_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not json\n")

    with pytest.raises(OllamaError, match="Malformed"):
        await collect(make_client(handler))

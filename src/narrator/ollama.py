"""Ollama streaming generation client."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx
from fastapi import status

from .config import Settings

logger = logging.getLogger(__name__)


class OllamaError(Exception):
    """Wrap transport or API failures when communicating with Ollama."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class OllamaClient:
    """Client responsible for streaming completions from an Ollama server."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._override_client = http_client

    def _client_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._override_client is not None:
            return self._override_client

        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=10,
                    max_keepalive_connections=5,
                )
                client = httpx.AsyncClient(timeout=timeout, limits=limits)
                self.__class__._client_pool[key] = client
        return client

    @property
    def _base_url(self) -> str:
        """Return the Ollama base URL without a trailing slash."""

        return str(self._settings.ollama_base_url).rstrip("/")

    def _build_payload(self, prompt: str, model: Optional[str]) -> dict[str, Any]:
        return {
            "model": model or self._settings.ollama_model,
            "prompt": prompt,
            "stream": True,
        }

    async def stream_generate(
        self, prompt: str, *, model: Optional[str] = None
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Stream `/api/generate` chunks as decoded JSON objects.

        Each chunk carries ``response`` (a text delta) and ``done``. The
        final chunk has ``done`` set to true.
        """

        url = f"{self._base_url}/api/generate"
        payload = self._build_payload(prompt, model)

        client = await self._get_http_client()
        try:
            async with client.stream("POST", url, json=payload) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise OllamaError(
                        response.status_code, self._extract_error_detail(body)
                    )

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError as exc:
                        raise OllamaError(
                            status.HTTP_502_BAD_GATEWAY,
                            f"Malformed stream chunk: {exc.msg}",
                        ) from exc
                    if not isinstance(chunk, dict):
                        continue
                    if chunk.get("error"):
                        raise OllamaError(status.HTTP_502_BAD_GATEWAY, chunk["error"])
                    yield chunk
                    if chunk.get("done"):
                        return
        except httpx.HTTPError as exc:
            raise OllamaError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close Ollama HTTP client", exc_info=True)

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Ollama returned an empty error response."
        text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload


__all__ = ["OllamaClient", "OllamaError"]

"""VOICEVOX engine client.

Synthesis is a two-step exchange: ``POST /audio_query`` turns text into a
query document, then ``POST /synthesis`` renders that document to WAV. The
engine keeps no state between calls.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx
from fastapi import status

from .config import Settings

logger = logging.getLogger(__name__)


class VoicevoxError(Exception):
    """Transport or HTTP failure from the VOICEVOX engine."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class InvalidSynthesisInput(ValueError):
    """Raised for text that must not be sent to the engine."""


class VoicevoxClient:
    """Synthesize speech with a shared, pooled HTTP client."""

    # Singleton HTTP client for connection pooling
    _http_client: Optional[httpx.AsyncClient] = None

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._override_client = http_client

    @property
    def _base_url(self) -> str:
        return str(self._settings.voicevox_base_url).rstrip("/")

    def _client(self) -> httpx.AsyncClient:
        if self._override_client is not None:
            return self._override_client
        cls = self.__class__
        if cls._http_client is None:
            cls._http_client = httpx.AsyncClient(
                timeout=self._settings.synthesis_timeout
            )
            logger.info("Created shared httpx.AsyncClient for VOICEVOX")
        return cls._http_client

    @classmethod
    async def close_http_client(cls) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        if cls._http_client is not None:
            await cls._http_client.aclose()
            cls._http_client = None
            logger.info("Closed VOICEVOX HTTP client")

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client().post(f"{self._base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            raise VoicevoxError(
                status.HTTP_502_BAD_GATEWAY,
                f"VOICEVOX engine unreachable at {self._base_url}: {exc}",
            ) from exc
        if response.status_code >= 400:
            raise VoicevoxError(
                response.status_code,
                f"{path.lstrip('/')} failed with status {response.status_code}",
            )
        return response

    async def audio_query(self, text: str, speaker_id: str) -> dict[str, Any]:
        """Request a synthesis query document for ``text``."""
        response = await self._post(
            "/audio_query",
            params={"text": text, "speaker": speaker_id},
            headers={"Content-Type": "application/json"},
        )
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise VoicevoxError(
                status.HTTP_502_BAD_GATEWAY, "audio_query returned invalid JSON"
            ) from exc

    async def synthesis(self, audio_query: dict[str, Any], speaker_id: str) -> bytes:
        """Render a query document to WAV bytes."""
        response = await self._post(
            "/synthesis",
            params={"speaker": speaker_id},
            json=audio_query,
        )
        return response.content

    async def synthesize(
        self, text: str, speaker_id: str, *, speed: Optional[float] = None
    ) -> bytes:
        """
        Turn text into WAV audio.

        Args:
            text: Text to speak; surrounding whitespace is stripped
            speaker_id: VOICEVOX speaker (style) id
            speed: ``speedScale`` override; defaults to the configured speed

        Raises:
            InvalidSynthesisInput: If the text is blank. No request is made.
            VoicevoxError: If either engine call fails.
        """
        trimmed = text.strip()
        if not trimmed:
            raise InvalidSynthesisInput("Text input is empty.")

        query = await self.audio_query(trimmed, speaker_id)
        query["speedScale"] = self._settings.speed_scale if speed is None else speed
        return await self.synthesis(query, speaker_id)


__all__ = ["InvalidSynthesisInput", "VoicevoxClient", "VoicevoxError"]

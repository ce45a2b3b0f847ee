"""
Synthesis/Playback Port.

The coordinator only issues ``speak`` and ``stop``; every ``speak`` must end
in exactly one ``PlaybackFinished`` or ``PlaybackError`` reported through
the event sink. ``WebSocketPlaybackPort`` synthesizes on the server with
VOICEVOX and hands the WAV to the connected browser, which plays it and
answers with the completion message.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional, Protocol

from ..voicevox import InvalidSynthesisInput, VoicevoxError
from .events import ErrorKind, PlaybackError
from .generation_feed import EventSink
from .session import VoiceParams

logger = logging.getLogger(__name__)

SendJson = Callable[[dict[str, Any]], Awaitable[None]]


class PlaybackPort(Protocol):
    async def speak(
        self, text: str, voice: VoiceParams, *, epoch: int, index: int
    ) -> None: ...

    async def stop(self) -> None: ...

    async def aclose(self) -> None: ...


class Synthesizer(Protocol):
    async def synthesize(
        self, text: str, speaker_id: str, *, speed: Optional[float] = None
    ) -> bytes: ...


class WebSocketPlaybackPort:
    """Synthesize server-side and stream the WAV to the client for playback."""

    def __init__(self, synthesizer: Synthesizer, send: SendJson, sink: EventSink):
        self._synthesizer = synthesizer
        self._send = send
        self._sink = sink
        self._task: Optional[asyncio.Task] = None

    async def speak(
        self, text: str, voice: VoiceParams, *, epoch: int, index: int
    ) -> None:
        """Start synthesis in the background and return immediately."""
        await self._cancel_pending()
        self._task = asyncio.create_task(
            self._synthesize_and_send(text, voice, epoch, index),
            name=f"synthesis-{epoch}-{index}",
        )

    async def _synthesize_and_send(
        self, text: str, voice: VoiceParams, epoch: int, index: int
    ) -> None:
        try:
            audio = await self._synthesizer.synthesize(
                text, voice.speaker_id, speed=voice.speed
            )
        except InvalidSynthesisInput as exc:
            logger.info("Rejected segment %d before synthesis: %s", index, exc)
            self._sink(PlaybackError(epoch, str(exc), ErrorKind.INVALID_INPUT))
            return
        except VoicevoxError as exc:
            logger.error("VOICEVOX synthesis failed for segment %d: %s", index, exc)
            self._sink(PlaybackError(epoch, str(exc), ErrorKind.SYNTHESIS))
            return
        except Exception as exc:
            logger.exception("Unexpected synthesis error for segment %d", index)
            self._sink(PlaybackError(epoch, str(exc), ErrorKind.SYNTHESIS))
            return

        try:
            await self._send(
                {
                    "type": "play_audio",
                    "epoch": epoch,
                    "index": index,
                    "text": text,
                    "media_type": "audio/wav",
                    "data": base64.b64encode(audio).decode("ascii"),
                }
            )
        except Exception as exc:
            logger.warning("Could not deliver audio for segment %d: %s", index, exc)
            self._sink(PlaybackError(epoch, str(exc), ErrorKind.DEVICE))

    async def _cancel_pending(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def stop(self) -> None:
        """Abort synthesis in flight and tell the client to stop playing."""
        await self._cancel_pending()
        try:
            await self._send({"type": "stop_playback"})
        except Exception as exc:
            logger.debug("stop_playback not delivered: %s", exc)

    async def aclose(self) -> None:
        await self._cancel_pending()


__all__ = ["PlaybackPort", "SendJson", "Synthesizer", "WebSocketPlaybackPort"]

"""
Playback Coordinator runtime.

Events from the user interface, the generation feed and the playback port
all land in one queue. A single consumer task applies them to the session
through ``transition`` one at a time, in arrival order, and then carries out
the resulting commands. Nothing else mutates the session.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Optional

from .events import (
    AbortPlayback,
    CancelGeneration,
    Command,
    ErrorKind,
    Event,
    GenerationDone,
    PlaybackError,
    PublishState,
    Speak,
    Start,
    StartGeneration,
    Stop,
    TextEdited,
    Warn,
)
from .generation_feed import EventSink, GenerationFeed, GenerationSource
from .playback import PlaybackPort
from .segmenter import TextSegmenter
from .session import Session, Snapshot, VoiceParams
from .state_machine import transition

logger = logging.getLogger(__name__)

PublishCallback = Callable[[Snapshot], Awaitable[None]]
WarnCallback = Callable[[str], Awaitable[None]]
PortFactory = Callable[[EventSink], PlaybackPort]


class PlaybackCoordinator:
    """Serializes narration events for one user-facing session."""

    def __init__(
        self,
        source: GenerationSource,
        port_factory: PortFactory,
        *,
        publish: PublishCallback,
        warn: WarnCallback,
        segmenter: Optional[TextSegmenter] = None,
        voice: Optional[VoiceParams] = None,
        initial_prompt: str = "",
    ):
        self._inbox: asyncio.Queue[Event] = asyncio.Queue()
        self._session = Session(prompt=initial_prompt)
        self._segmenter = segmenter or TextSegmenter()
        self._voice = voice or VoiceParams()
        self._publish = publish
        self._warn = warn
        self._feed = GenerationFeed(source, self.submit)
        self._port = port_factory(self.submit)
        self._runner: Optional[asyncio.Task] = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def feed(self) -> GenerationFeed:
        return self._feed

    def submit(self, event: Event) -> None:
        """Queue an event; safe to call from any task on the loop."""
        self._inbox.put_nowait(event)

    def start(self, prompt: Optional[str] = None) -> None:
        self.submit(Start(prompt))

    def stop(self) -> None:
        self.submit(Stop())

    def text_edited(self, prompt: str) -> None:
        self.submit(TextEdited(prompt))

    def start_processing(self) -> asyncio.Task:
        if self._runner is None or self._runner.done():
            self._runner = asyncio.create_task(self.run(), name="playback-coordinator")
        return self._runner

    async def run(self) -> None:
        while True:
            event = await self._inbox.get()
            try:
                await self.handle(event)
            except Exception:
                logger.exception("Failed to handle %s", type(event).__name__)
            finally:
                self._inbox.task_done()

    async def handle(self, event: Event) -> None:
        """Apply one event. Only the consumer loop (or a test) calls this."""
        result = transition(
            self._session, event, segmenter=self._segmenter, voice=self._voice
        )
        self._session = result.session
        for command in result.commands:
            await self._execute(command)

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._inbox.join()

    async def publish_current(self) -> None:
        await self._publish(self._session.snapshot())

    async def _execute(self, command: Command) -> None:
        try:
            if isinstance(command, StartGeneration):
                self._feed.start(command.prompt, command.token)
            elif isinstance(command, CancelGeneration):
                self._feed.cancel(command.token)
            elif isinstance(command, Speak):
                await self._port.speak(
                    command.text,
                    command.voice,
                    epoch=command.epoch,
                    index=command.index,
                )
            elif isinstance(command, AbortPlayback):
                await self._port.stop()
            elif isinstance(command, PublishState):
                await self._publish(command.snapshot)
            elif isinstance(command, Warn):
                await self._warn(command.message)
            else:
                raise TypeError(f"Unhandled narration command: {command!r}")
        except Exception as exc:
            logger.exception("Command %s failed", type(command).__name__)
            # Feed the failure back so sequencing never waits forever.
            if isinstance(command, Speak):
                self.submit(PlaybackError(command.epoch, str(exc), ErrorKind.SYNTHESIS))
            elif isinstance(command, StartGeneration):
                self.submit(GenerationDone(command.token, error=str(exc)))

    async def aclose(self) -> None:
        """Stop generation and playback, then end the consumer loop."""
        if self._session.generation_token is not None:
            self._feed.cancel(self._session.generation_token)
        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            with suppress(asyncio.CancelledError):
                await runner
        await self._feed.aclose()
        await self._port.aclose()


__all__ = ["PlaybackCoordinator", "PortFactory", "PublishCallback", "WarnCallback"]

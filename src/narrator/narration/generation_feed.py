"""
Generation Feed.

Runs the model stream as a cancellable background task and forwards every
text delta, then exactly one done event, to an event sink. Events carry the
token they were started with so the coordinator can discard output from a
generation it has already abandoned.

Registration is two-step: ``start`` returns a ``GenerationHandle``
synchronously, and the running task binds itself to that handle once it is
scheduled. Cancelling a handle that is not bound yet marks it, and the task
exits as soon as it binds.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, AsyncIterator, Callable, Optional, Protocol

import httpx

from ..ollama import OllamaError
from .events import Event, GenerationDelta, GenerationDone

logger = logging.getLogger(__name__)

EventSink = Callable[[Event], None]


class GenerationSource(Protocol):
    def stream_generate(self, prompt: str) -> AsyncIterator[dict[str, Any]]: ...


class GenerationHandle:
    """Cancellable identity of one generation task."""

    def __init__(self, token: int):
        self.token = token
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False

    @property
    def bound(self) -> bool:
        return self._task is not None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def bind(self, task: asyncio.Task) -> bool:
        """Attach the running task. Returns False if it should not run."""
        self._task = task
        return not self._cancel_requested

    def cancel(self) -> None:
        """Idempotent; safe before binding and after completion."""
        self._cancel_requested = True
        if self._task is not None and not self._task.done():
            if self._task is not asyncio.current_task():
                self._task.cancel()


class GenerationFeed:
    """Owns the generation tasks spawned for one coordinator."""

    def __init__(self, source: GenerationSource, sink: EventSink):
        self._source = source
        self._sink = sink
        self._handles: dict[int, GenerationHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def start(self, prompt: str, token: int) -> GenerationHandle:
        handle = GenerationHandle(token)
        self._handles[token] = handle
        task = asyncio.get_running_loop().create_task(
            self._run(handle, prompt), name=f"generation-{token}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    def cancel(self, token: int) -> None:
        """Cancel the generation started with ``token``, if it still runs."""
        handle = self._handles.get(token)
        if handle is None:
            logger.debug("No live generation for token %d", token)
            return
        logger.info("Cancelling generation %d", token)
        handle.cancel()

    def is_active(self, token: int) -> bool:
        return token in self._handles

    async def _run(self, handle: GenerationHandle, prompt: str) -> None:
        token = handle.token
        current = asyncio.current_task()
        try:
            if current is None or not handle.bind(current):
                logger.info("Generation %d cancelled before it started", token)
                return

            async for chunk in self._source.stream_generate(prompt):
                if chunk.get("done"):
                    break
                text = chunk.get("response")
                if text:
                    self._sink(GenerationDelta(epoch=token, text=text))
        except asyncio.CancelledError:
            logger.info("Generation %d terminated", token)
            raise
        except (OllamaError, httpx.HTTPError) as exc:
            logger.error("Generation %d failed: %s", token, exc)
            self._sink(GenerationDone(epoch=token, error=str(exc)))
        except Exception as exc:
            logger.exception("Unexpected error in generation %d", token)
            self._sink(GenerationDone(epoch=token, error=str(exc)))
        else:
            self._sink(GenerationDone(epoch=token))
        finally:
            if self._handles.get(token) is handle:
                del self._handles[token]

    async def aclose(self) -> None:
        for handle in list(self._handles.values()):
            handle.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task


__all__ = ["EventSink", "GenerationFeed", "GenerationHandle", "GenerationSource"]

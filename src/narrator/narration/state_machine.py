"""
Playback state machine.

A single exhaustive ``transition`` function maps the current ``Session`` and
one tagged event to the next ``Session`` plus the commands the runtime must
carry out. It performs no I/O, so the whole sequencing policy can be driven
deterministically from tests.

Sequencing rules:
- First speak: while nothing has been spoken, a delta that moves the segment
  count from exactly 1 to exactly 2 dispatches segment 0.
- Advance: a playback finish (or error) dispatches the next segment if it is
  playable, otherwise playback goes quiet until more text arrives.
- Resume: while quiet after earlier speech, a delta that completes a new
  segment dispatches it.
- Flush: once generation is done, a non-blank trailing segment is playable.
- At most one speak command is outstanding at any time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Tuple

from .events import (
    AbortPlayback,
    CancelGeneration,
    Command,
    ErrorKind,
    Event,
    GenerationDelta,
    GenerationDone,
    PlaybackError,
    PlaybackFinished,
    PublishState,
    Speak,
    Start,
    StartGeneration,
    Stop,
    TextEdited,
    Warn,
)
from .segmenter import TextSegmenter
from .session import Session, VoiceParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    session: Session
    commands: Tuple[Command, ...] = ()


def transition(
    session: Session,
    event: Event,
    *,
    segmenter: TextSegmenter,
    voice: VoiceParams,
) -> Transition:
    """Apply one event to ``session``."""

    if isinstance(event, Start):
        return _on_start(session, event)
    if isinstance(event, Stop):
        return _on_stop(session)
    if isinstance(event, TextEdited):
        return _on_text_edited(session, event)
    if isinstance(event, GenerationDelta):
        return _on_delta(session, event, segmenter, voice)
    if isinstance(event, GenerationDone):
        return _on_generation_done(session, event, voice)
    if isinstance(event, (PlaybackFinished, PlaybackError)):
        return _on_playback_done(session, event, voice)
    raise TypeError(f"Unhandled narration event: {event!r}")


def _is_stale(session: Session, epoch: int, event: Event) -> bool:
    if epoch != session.epoch:
        logger.debug(
            "Discarding %s from epoch %d (current %d)",
            type(event).__name__,
            epoch,
            session.epoch,
        )
        return True
    return False


def _speak(session: Session, index: int, voice: VoiceParams) -> Tuple[Session, Speak]:
    logger.info("Speaking segment %d: %s", index, session.segments[index][:40])
    updated = replace(session, current_index=index, spoken_count=index + 1)
    return updated, Speak(
        text=session.segments[index],
        index=index,
        epoch=session.epoch,
        voice=voice,
    )


def _go_idle(session: Session) -> Session:
    logger.info("Narration complete for epoch %d", session.epoch)
    return replace(
        session,
        current_index=None,
        generation_token=None,
        accepting_start=True,
    )


def _on_start(session: Session, event: Start) -> Transition:
    if not session.accepting_start:
        logger.info("Ignoring start while narration is active")
        return Transition(session)

    prompt = session.prompt if event.prompt is None else event.prompt
    if not prompt.strip():
        return Transition(
            session.with_prompt(prompt),
            (Warn("Please enter a prompt before starting."),),
        )

    epoch = session.epoch + 1
    started = replace(
        Session(epoch=epoch, prompt=prompt),
        generating=True,
        generation_token=epoch,
        accepting_start=False,
    )
    logger.info("Starting narration epoch %d", epoch)
    return Transition(
        started,
        (
            StartGeneration(prompt=prompt, token=epoch),
            PublishState(started.snapshot()),
        ),
    )


def _on_stop(session: Session) -> Transition:
    commands: list[Command] = []
    if session.generation_token is not None:
        commands.append(CancelGeneration(token=session.generation_token))
    commands.append(AbortPlayback())

    stopped = session.reset(session.epoch + 1)
    logger.info("Stopped narration; now at epoch %d", stopped.epoch)
    commands.append(PublishState(stopped.snapshot()))
    return Transition(stopped, tuple(commands))


def _on_text_edited(session: Session, event: TextEdited) -> Transition:
    if not session.accepting_start:
        logger.debug("Ignoring prompt edit during active narration")
        return Transition(session)
    return Transition(session.with_prompt(event.prompt))


def _on_delta(
    session: Session,
    event: GenerationDelta,
    segmenter: TextSegmenter,
    voice: VoiceParams,
) -> Transition:
    if _is_stale(session, event.epoch, event) or not session.generating:
        return Transition(session)

    full_text = session.full_text + event.text
    segments = segmenter.segment(full_text)
    previous_count = session.previous_segment_count
    updated = replace(
        session,
        full_text=full_text,
        segments=segments,
        previous_segment_count=len(segments),
    )

    commands: list[Command] = []
    if updated.current_index is None:
        if updated.spoken_count == 0:
            if previous_count == 1 and len(segments) == 2:
                updated, speak = _speak(updated, 0, voice)
                commands.append(speak)
        elif updated.spoken_count < updated.playable_count():
            updated, speak = _speak(updated, updated.spoken_count, voice)
            commands.append(speak)

    commands.append(PublishState(updated.snapshot()))
    return Transition(updated, tuple(commands))


def _on_generation_done(
    session: Session, event: GenerationDone, voice: VoiceParams
) -> Transition:
    if _is_stale(session, event.epoch, event) or not session.generating:
        return Transition(session)

    commands: list[Command] = []
    if event.error:
        logger.warning("Generation failed: %s", event.error)
        commands.append(Warn(f"Generation stopped early: {event.error}"))

    updated = replace(session, generating=False, generation_token=None)
    if updated.current_index is None:
        if updated.spoken_count < updated.playable_count():
            updated, speak = _speak(updated, updated.spoken_count, voice)
            commands.append(speak)
        else:
            updated = _go_idle(updated)

    commands.append(PublishState(updated.snapshot()))
    return Transition(updated, tuple(commands))


def _on_playback_done(
    session: Session,
    event: PlaybackFinished | PlaybackError,
    voice: VoiceParams,
) -> Transition:
    if _is_stale(session, event.epoch, event):
        return Transition(session)
    if session.current_index is None:
        logger.warning("Playback completion with nothing outstanding; ignoring")
        return Transition(session)

    commands: list[Command] = []
    if isinstance(event, PlaybackError):
        if event.kind is ErrorKind.INVALID_INPUT:
            logger.info(
                "Skipped segment %d: %s", session.current_index, event.reason
            )
        else:
            logger.warning(
                "Playback of segment %d failed (%s): %s",
                session.current_index,
                event.kind.value,
                event.reason,
            )
            commands.append(Warn(f"Speech playback failed: {event.reason}"))

    next_index = session.current_index + 1
    if next_index < session.playable_count():
        updated, speak = _speak(session, next_index, voice)
        commands.append(speak)
    else:
        updated = replace(session, current_index=None, spoken_count=next_index)
        if not updated.generating:
            updated = _go_idle(updated)

    commands.append(PublishState(updated.snapshot()))
    return Transition(updated, tuple(commands))


__all__ = ["Transition", "transition"]

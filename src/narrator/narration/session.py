"""Session value owned by the playback coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple


class Phase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class VoiceParams:
    """Voice settings forwarded with every speak command."""

    speaker_id: str = "1"
    speed: float = 1.5


@dataclass(frozen=True)
class Snapshot:
    """What the user interface needs to render a session."""

    can_start: bool
    segments: Tuple[str, ...]
    input_text: str
    phase: Phase
    current_index: Optional[int]


@dataclass(frozen=True)
class Session:
    """
    Immutable narration state. Every transition returns a new value.

    ``previous_segment_count`` is the segment count observed at the last
    delta and starts at 1 so that the first completed sentence moves it to 2.
    ``spoken_count`` is how many segments have already been dispatched;
    ``current_index`` is the one being spoken right now, if any.
    ``generation_token`` equals the epoch of the start that spawned the
    in-flight generation.
    """

    epoch: int = 0
    prompt: str = ""
    full_text: str = ""
    segments: Tuple[str, ...] = field(default_factory=tuple)
    previous_segment_count: int = 1
    current_index: Optional[int] = None
    spoken_count: int = 0
    generation_token: Optional[int] = None
    generating: bool = False
    accepting_start: bool = True

    @property
    def phase(self) -> Phase:
        if self.generating:
            return Phase.GENERATING
        if self.current_index is not None:
            return Phase.SPEAKING
        return Phase.IDLE

    def playable_count(self) -> int:
        """Number of leading segments that may be spoken.

        The trailing segment is excluded while generation may still extend
        it. Once generation is done it is included unless blank.
        """
        if not self.segments:
            return 0
        if self.generating or not self.segments[-1].strip():
            return len(self.segments) - 1
        return len(self.segments)

    def reset(self, epoch: int) -> "Session":
        """Empty session for ``epoch`` keeping only the staged prompt."""
        return Session(epoch=epoch, prompt=self.prompt)

    def with_prompt(self, prompt: str) -> "Session":
        return replace(self, prompt=prompt)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            can_start=self.accepting_start,
            segments=self.segments,
            input_text=self.prompt,
            phase=self.phase,
            current_index=self.current_index,
        )


__all__ = ["Phase", "Session", "Snapshot", "VoiceParams"]

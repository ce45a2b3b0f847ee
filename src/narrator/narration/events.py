"""Tagged events consumed by the coordinator and commands it emits."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .session import Snapshot, VoiceParams


class ErrorKind(str, Enum):
    """Why a speak request ended without a normal playback finish."""

    SYNTHESIS = "synthesis"
    DEVICE = "device"
    INVALID_INPUT = "invalid_input"


# --- Inbound: user interface ---


@dataclass(frozen=True)
class Start:
    prompt: Optional[str] = None


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class TextEdited:
    prompt: str


# --- Inbound: asynchronous collaborators (epoch tagged) ---


@dataclass(frozen=True)
class GenerationDelta:
    epoch: int
    text: str


@dataclass(frozen=True)
class GenerationDone:
    """End of the model stream. ``error`` is set when the stream failed."""

    epoch: int
    error: Optional[str] = None


@dataclass(frozen=True)
class PlaybackFinished:
    epoch: int


@dataclass(frozen=True)
class PlaybackError:
    epoch: int
    reason: str
    kind: ErrorKind = ErrorKind.SYNTHESIS


Event = Union[
    Start,
    Stop,
    TextEdited,
    GenerationDelta,
    GenerationDone,
    PlaybackFinished,
    PlaybackError,
]


# --- Outbound commands ---


@dataclass(frozen=True)
class StartGeneration:
    prompt: str
    token: int


@dataclass(frozen=True)
class CancelGeneration:
    token: int


@dataclass(frozen=True)
class Speak:
    text: str
    index: int
    epoch: int
    voice: VoiceParams


@dataclass(frozen=True)
class AbortPlayback:
    pass


@dataclass(frozen=True)
class PublishState:
    snapshot: Snapshot


@dataclass(frozen=True)
class Warn:
    message: str


Command = Union[
    StartGeneration,
    CancelGeneration,
    Speak,
    AbortPlayback,
    PublishState,
    Warn,
]


__all__ = [
    "AbortPlayback",
    "CancelGeneration",
    "Command",
    "ErrorKind",
    "Event",
    "GenerationDelta",
    "GenerationDone",
    "PlaybackError",
    "PlaybackFinished",
    "PublishState",
    "Speak",
    "Start",
    "StartGeneration",
    "Stop",
    "TextEdited",
    "Warn",
]

"""
Incremental narration of streamed model output.

    ┌──────────────┐  deltas  ┌─────────────────────┐  speak  ┌───────────────┐
    │GenerationFeed│─────────▶│ PlaybackCoordinator │────────▶│ PlaybackPort  │
    └──────────────┘          │  (TextSegmenter +   │◀────────│ (VOICEVOX +   │
                              │   state machine)    │finished │  browser)     │
                              └─────────────────────┘         └───────────────┘
"""

from .coordinator import PlaybackCoordinator
from .events import ErrorKind
from .generation_feed import GenerationFeed, GenerationHandle
from .playback import PlaybackPort, WebSocketPlaybackPort
from .segmenter import TextSegmenter, segment
from .session import Phase, Session, Snapshot, VoiceParams
from .state_machine import Transition, transition

__all__ = [
    "ErrorKind",
    "GenerationFeed",
    "GenerationHandle",
    "Phase",
    "PlaybackCoordinator",
    "PlaybackPort",
    "Session",
    "Snapshot",
    "TextSegmenter",
    "Transition",
    "VoiceParams",
    "WebSocketPlaybackPort",
    "segment",
    "transition",
]

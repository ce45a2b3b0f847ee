"""WebSocket message schemas for the narration endpoint."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ..narration.events import (
    ErrorKind,
    Event,
    PlaybackError,
    PlaybackFinished,
    Start,
    Stop,
    TextEdited,
)
from ..narration.session import Phase, Snapshot


class StartMessage(BaseModel):
    type: Literal["start"]
    text: Optional[str] = Field(
        default=None,
        description="Prompt to narrate; the staged prompt is used when omitted.",
    )

    def to_event(self) -> Event:
        return Start(self.text)


class StopMessage(BaseModel):
    type: Literal["stop"]

    def to_event(self) -> Event:
        return Stop()


class UpdateTextMessage(BaseModel):
    type: Literal["update_text"]
    text: str

    def to_event(self) -> Event:
        return TextEdited(self.text)


class PlaybackFinishedMessage(BaseModel):
    type: Literal["playback_finished"]
    epoch: int

    def to_event(self) -> Event:
        return PlaybackFinished(self.epoch)


class PlaybackErrorMessage(BaseModel):
    """Client-side playback failure, e.g. the browser blocked autoplay."""

    type: Literal["playback_error"]
    epoch: int
    reason: str = "playback failed"

    def to_event(self) -> Event:
        return PlaybackError(self.epoch, self.reason, ErrorKind.DEVICE)


ClientMessage = Annotated[
    Union[
        StartMessage,
        StopMessage,
        UpdateTextMessage,
        PlaybackFinishedMessage,
        PlaybackErrorMessage,
    ],
    Field(discriminator="type"),
]

_CLIENT_MESSAGE_ADAPTER: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(data: Any) -> ClientMessage:
    """Validate a decoded JSON message from the client."""

    return _CLIENT_MESSAGE_ADAPTER.validate_python(data)


class StateMessage(BaseModel):
    type: Literal["state"] = "state"
    can_start: bool
    segments: list[str]
    input_text: str
    phase: Phase
    current_index: Optional[int] = None

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "StateMessage":
        return cls(
            can_start=snapshot.can_start,
            segments=list(snapshot.segments),
            input_text=snapshot.input_text,
            phase=snapshot.phase,
            current_index=snapshot.current_index,
        )


class WarningMessage(BaseModel):
    type: Literal["warning"] = "warning"
    message: str


__all__ = [
    "ClientMessage",
    "PlaybackErrorMessage",
    "PlaybackFinishedMessage",
    "StartMessage",
    "StateMessage",
    "StopMessage",
    "UpdateTextMessage",
    "WarningMessage",
    "parse_client_message",
]

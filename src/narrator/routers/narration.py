import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from narrator.config import Settings
from narrator.narration import (
    PlaybackCoordinator,
    Snapshot,
    TextSegmenter,
    VoiceParams,
    WebSocketPlaybackPort,
)
from narrator.schemas.narration import (
    StateMessage,
    WarningMessage,
    parse_client_message,
)

router = APIRouter(prefix="/api/narration", tags=["Narration"])
logger = logging.getLogger(__name__)


def build_coordinator(
    websocket: WebSocket, settings: Settings, ollama_client, voicevox_client
) -> PlaybackCoordinator:
    """Wire one coordinator to the collaborators for this connection."""

    async def send(message: dict) -> None:
        await websocket.send_json(message)

    async def publish(snapshot: Snapshot) -> None:
        await send(StateMessage.from_snapshot(snapshot).model_dump(mode="json"))

    async def warn(message: str) -> None:
        await send(WarningMessage(message=message).model_dump(mode="json"))

    return PlaybackCoordinator(
        ollama_client,
        lambda sink: WebSocketPlaybackPort(voicevox_client, send, sink),
        publish=publish,
        warn=warn,
        segmenter=TextSegmenter(
            terminators=settings.segment_terminators,
            separators=settings.segment_separators,
        ),
        voice=VoiceParams(speaker_id=settings.speaker_id, speed=settings.speed_scale),
        initial_prompt=settings.default_prompt,
    )


@router.websocket("/ws")
async def narration_socket(websocket: WebSocket):
    """
    Drive one narration session from a browser.

    Client → server: start, stop, update_text, playback_finished,
    playback_error. Server → client: state, play_audio, stop_playback,
    warning.
    """
    app_state = websocket.app.state
    await websocket.accept()

    coordinator = build_coordinator(
        websocket,
        app_state.settings,
        app_state.ollama_client,
        app_state.voicevox_client,
    )
    coordinator.start_processing()
    await coordinator.publish_current()
    logger.info("Narration client connected")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = parse_client_message(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Rejected narration message: %s", exc)
                await websocket.send_json(
                    WarningMessage(message="Unrecognized message").model_dump(mode="json")
                )
                continue
            coordinator.submit(message.to_event())
    except WebSocketDisconnect:
        logger.info("Narration client disconnected")
    except Exception as e:
        logger.error(f"Unexpected narration socket error: {e}", exc_info=True)
    finally:
        await coordinator.aclose()

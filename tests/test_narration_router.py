from __future__ import annotations

import base64
from typing import Any, Callable

from fastapi.testclient import TestClient

from narrator.app import create_app
from narrator.config import Settings


class StubOllama:
    def __init__(self, texts: list[str]) -> None:
        self.texts = texts
        self.prompts: list[str] = []

    async def stream_generate(self, prompt: str):
        self.prompts.append(prompt)
        for text in self.texts:
            yield {"response": text, "done": False}
        yield {"response": "", "done": True}


class StubVoicevox:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def synthesize(self, text, speaker_id, *, speed=None) -> bytes:
        self.calls.append(text)
        return f"WAV:{text}".encode()


def make_client(texts: list[str]) -> tuple[TestClient, StubOllama, StubVoicevox]:
    app = create_app(Settings(_env_file=None, default_prompt="Elixirについて"))
    ollama = StubOllama(texts)
    voicevox = StubVoicevox()
    app.state.ollama_client = ollama
    app.state.voicevox_client = voicevox
    return TestClient(app), ollama, voicevox


def receive_until(ws, predicate: Callable[[dict[str, Any]], bool]) -> dict[str, Any]:
    for _ in range(50):
        message = ws.receive_json()
        if predicate(message):
            return message
    raise AssertionError("expected message never arrived")


def is_type(kind: str) -> Callable[[dict[str, Any]], bool]:
    return lambda message: message["type"] == kind


def test_initial_state_is_idle_with_default_prompt() -> None:
    client, _, _ = make_client([])

    with client, client.websocket_connect("/api/narration/ws") as ws:
        state = ws.receive_json()

    assert state == {
        "type": "state",
        "can_start": True,
        "segments": [],
        "input_text": "Elixirについて",
        "phase": "idle",
        "current_index": None,
    }


def test_narrates_and_returns_to_idle() -> None:
    client, ollama, voicevox = make_client(["こんにちは。", "元気ですか。"])

    with client, client.websocket_connect("/api/narration/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "update_text", "text": "調子はどう？"})
        ws.send_json({"type": "start"})

        first = receive_until(ws, is_type("play_audio"))
        assert first["text"] == "こんにちは"
        assert base64.b64decode(first["data"]) == "WAV:こんにちは".encode()
        ws.send_json({"type": "playback_finished", "epoch": first["epoch"]})

        second = receive_until(ws, is_type("play_audio"))
        assert second["text"] == "元気ですか"
        assert second["index"] == 1
        ws.send_json({"type": "playback_finished", "epoch": second["epoch"]})

        final = receive_until(
            ws, lambda m: m["type"] == "state" and m["can_start"]
        )

    assert final["phase"] == "idle"
    assert final["segments"] == ["こんにちは", "元気ですか", ""]
    assert ollama.prompts == ["調子はどう？"]
    assert voicevox.calls == ["こんにちは", "元気ですか"]


def test_stop_resets_state() -> None:
    client, _, _ = make_client(["こんにちは。", "元気ですか。"])

    with client, client.websocket_connect("/api/narration/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "start"})
        receive_until(ws, is_type("play_audio"))

        ws.send_json({"type": "stop"})
        receive_until(ws, is_type("stop_playback"))
        state = receive_until(ws, is_type("state"))

    assert state["can_start"] is True
    assert state["segments"] == []
    assert state["phase"] == "idle"


def test_invalid_message_gets_warning() -> None:
    client, _, _ = make_client([])

    with client, client.websocket_connect("/api/narration/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "rewind"})
        warning = ws.receive_json()

    assert warning == {"type": "warning", "message": "Unrecognized message"}


def test_non_json_frame_gets_warning_and_session_survives() -> None:
    client, ollama, _ = make_client(["こんにちは。"])

    with client, client.websocket_connect("/api/narration/ws") as ws:
        ws.receive_json()
        ws.send_text("not json{")
        warning = ws.receive_json()

        ws.send_json({"type": "start"})
        audio = receive_until(ws, is_type("play_audio"))

    assert warning == {"type": "warning", "message": "Unrecognized message"}
    assert audio["text"] == "こんにちは"
    assert ollama.prompts == ["Elixirについて"]


def test_health_reports_configuration() -> None:
    client, _, _ = make_client([])

    with client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["model"] == "gemma3:27b"

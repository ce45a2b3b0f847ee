"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ollama_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("http://localhost:11434"),
        validation_alias=AliasChoices("OLLAMA_BASE_URL", "ollama_base_url"),
    )
    ollama_model: str = Field(
        default="gemma3:27b",
        validation_alias=AliasChoices("OLLAMA_MODEL", "ollama_model"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("OLLAMA_TIMEOUT", "request_timeout"),
        ge=1,
    )

    # VOICEVOX engine
    voicevox_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("http://localhost:50021"),
        validation_alias=AliasChoices("VOICEVOX_URL", "voicevox_base_url"),
    )
    speaker_id: str = Field(
        default="1",
        validation_alias=AliasChoices("VOICEVOX_SPEAKER_ID", "speaker_id"),
    )
    speed_scale: float = Field(
        default=1.5,
        gt=0,
        validation_alias=AliasChoices("VOICEVOX_SPEED_SCALE", "speed_scale"),
    )
    synthesis_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices("VOICEVOX_TIMEOUT", "synthesis_timeout"),
    )

    # Segmentation policy: strong terminators plus clause separators.
    segment_terminators: list[str] = Field(
        default_factory=lambda: ["。"],
        validation_alias=AliasChoices("NARRATION_TERMINATORS", "segment_terminators"),
    )
    segment_separators: list[str] = Field(
        default_factory=lambda: ["、"],
        validation_alias=AliasChoices("NARRATION_SEPARATORS", "segment_separators"),
        description="Clause separators; set to [] to split on terminators only.",
    )

    default_prompt: str = Field(
        default="Elixirについて教えてください",
        validation_alias=AliasChoices("NARRATION_DEFAULT_PROMPT", "default_prompt"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]

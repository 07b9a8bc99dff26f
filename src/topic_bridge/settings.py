# topic_bridge/settings.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class BridgeSettings(BaseSettings):
    """Process-level knobs. Everything has a default so library use needs no environment."""

    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)
    default_travel_year: int = Field(default=2026, ge=2000, le=2100)
    session_prefix: str = Field(default="sess_page_")
    catalog_path: Path | None = Field(default=None)
    definitions_path: Path | None = Field(default=None)
    records_path: Path = Field(default=Path("artifacts/topic_records.jsonl"))

    model_config = SettingsConfigDict(
        env_prefix="TOPIC_BRIDGE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> BridgeSettings:
    return BridgeSettings()

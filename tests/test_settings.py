from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from topic_bridge.settings import BridgeSettings


def test_defaults_need_no_environment() -> None:
    settings = BridgeSettings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.default_travel_year == 2026
    assert settings.session_prefix == "sess_page_"
    assert settings.catalog_path is None
    assert settings.records_path == Path("artifacts/topic_records.jsonl")


def test_environment_overrides_use_the_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOPIC_BRIDGE_LOG_LEVEL", "debug")
    monkeypatch.setenv("TOPIC_BRIDGE_DEFAULT_TRAVEL_YEAR", "2027")
    monkeypatch.setenv("TOPIC_BRIDGE_RECORDS_PATH", "build/records.jsonl")

    settings = BridgeSettings(_env_file=None)

    assert settings.log_level == "DEBUG"
    assert settings.default_travel_year == 2027
    assert settings.records_path == Path("build/records.jsonl")


def test_dotenv_file_is_read(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TOPIC_BRIDGE_SESSION_PREFIX=sess_env_\n", encoding="utf-8")

    assert BridgeSettings(_env_file=env_file).session_prefix == "sess_env_"


@pytest.mark.parametrize("field, value", [("log_level", "LOUD"), ("default_travel_year", 1999)])
def test_invalid_values_are_rejected(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        BridgeSettings(_env_file=None, **{field: value})

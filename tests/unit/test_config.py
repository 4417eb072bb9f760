# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig
from constants import DEFAULT_LIVE_MODEL, DEFAULT_VOICE_NAME

ENV_VARS = (
    "ENV", "LOG_LEVEL", "GEMINI_API_KEY", "LIVE_MODEL", "LIVE_VOICE", "OWNER_NAME",
    "DEFAULT_LANGUAGE", "INPUT_DEVICE", "OUTPUT_DEVICE", "ENABLE_JSON_LOGS",
    "HUD_HOST", "HUD_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AppConfig.load_from_env()

    assert config.gemini_api_key is None
    assert config.live_model == DEFAULT_LIVE_MODEL
    assert config.live_voice == DEFAULT_VOICE_NAME
    assert config.default_language == "english"
    assert config.input_device is None
    assert config.enable_json_logs
    assert config.hud_port == 8000


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    monkeypatch.setenv("LIVE_VOICE", "Puck")
    monkeypatch.setenv("OWNER_NAME", "Sara")
    monkeypatch.setenv("DEFAULT_LANGUAGE", "urdu")
    monkeypatch.setenv("INPUT_DEVICE", "USB Mic")
    monkeypatch.setenv("OUTPUT_DEVICE", "")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")
    monkeypatch.setenv("HUD_PORT", "9001")

    config = AppConfig.load_from_env()

    assert config.gemini_api_key == "k"
    assert config.live_voice == "Puck"
    assert config.owner_name == "Sara"
    assert config.default_language == "urdu"
    assert config.input_device == "USB Mic"
    assert config.output_device is None
    assert not config.enable_json_logs
    assert config.hud_port == 9001


def test_config_is_immutable() -> None:
    config = AppConfig.load_from_env()

    with pytest.raises(AttributeError):
        config.owner_name = "someone else"  # type: ignore[misc]

"""Tests for environment-driven settings."""

from pathlib import Path

from messenger.config import ROOT, load_settings


def test_defaults(monkeypatch):
    for name in (
        "MESSENGER_DATA_PATH",
        "MESSENGER_RESPONSES_PATH",
        "MESSENGER_AUTORESPONDER_ID",
        "MESSENGER_DELAY_SCALE",
        "MESSENGER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.data_path == ROOT / "data" / "messenger.json"
    assert settings.responses_path == ROOT / "data" / "responses.json"
    assert settings.autoresponder_id == "mimi"
    assert settings.delay_scale == 1.0
    assert settings.log_level == "INFO"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("MESSENGER_DATA_PATH", str(tmp_path / "s.json"))
    monkeypatch.setenv("MESSENGER_AUTORESPONDER_ID", "bot")
    monkeypatch.setenv("MESSENGER_DELAY_SCALE", "0.25")
    monkeypatch.setenv("MESSENGER_LOG_LEVEL", "debug")
    settings = load_settings()
    assert settings.data_path == Path(tmp_path / "s.json")
    assert settings.autoresponder_id == "bot"
    assert settings.delay_scale == 0.25
    assert settings.log_level == "DEBUG"


def test_bad_delay_scale_falls_back(monkeypatch):
    monkeypatch.setenv("MESSENGER_DELAY_SCALE", "fast")
    assert load_settings().delay_scale == 1.0
    monkeypatch.setenv("MESSENGER_DELAY_SCALE", "-2")
    assert load_settings().delay_scale == 0.0

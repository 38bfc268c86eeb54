import os

import pytest

from voice_convo.config import AppConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("VOICE_"):
            monkeypatch.delenv(name)


def test_defaults():
    config = AppConfig.from_env()
    assert config.mode == "console"
    assert config.pause_threshold == 3.0
    assert config.cooldown == 1.0
    assert config.speech_rate == 0.9
    assert config.pitch == 1.0
    assert config.language == "en-US"
    assert config.sample_rate == 16000
    assert config.cues is True


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("VOICE_MODE", "AUDIO")
    monkeypatch.setenv("VOICE_COOLDOWN", "0.25")
    monkeypatch.setenv("VOICE_PAUSE_THRESHOLD", "1.5")
    monkeypatch.setenv("VOICE_LANGUAGE", "de-DE")
    monkeypatch.setenv("VOICE_WHISPER_PORT", "10301")
    monkeypatch.setenv("VOICE_CUES", "off")
    monkeypatch.setenv("VOICE_REPLY_TEMPLATE", "Got it: {text}")

    config = AppConfig.from_env()

    assert config.mode == "audio"
    assert config.cooldown == 0.25
    assert config.pause_threshold == 1.5
    assert config.language == "de-DE"
    assert config.whisper_port == 10301
    assert config.cues is False
    assert config.reply_template == "Got it: {text}"


def test_non_numeric_value_names_the_variable(monkeypatch):
    monkeypatch.setenv("VOICE_COOLDOWN", "soon")
    with pytest.raises(ValueError, match="VOICE_COOLDOWN"):
        AppConfig.from_env()


def test_bad_integer(monkeypatch):
    monkeypatch.setenv("VOICE_PIPER_PORT", "10200.5")
    with pytest.raises(ValueError, match="VOICE_PIPER_PORT must be an integer"):
        AppConfig.from_env()


@pytest.mark.parametrize(
    "name, value",
    [
        ("VOICE_COOLDOWN", "-1"),
        ("VOICE_PAUSE_THRESHOLD", "0"),
        ("VOICE_SPEECH_RATE", "0"),
        ("VOICE_PITCH", "-0.5"),
        ("VOICE_MODE", "gui"),
        ("VOICE_REPLY_TEMPLATE", "static reply"),
    ],
)
def test_invalid_settings_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        AppConfig.from_env()


def test_zero_cooldown_allowed(monkeypatch):
    monkeypatch.setenv("VOICE_COOLDOWN", "0")
    assert AppConfig.from_env().cooldown == 0.0

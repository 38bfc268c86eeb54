"""Configuration helpers for the conversation loop."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

# Load .env file if present
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv is optional

from .reply import DEFAULT_TEMPLATE


@dataclass
class AppConfig:
    """
    Runtime configuration for the conversation loop.

    Attributes:
        mode: "console" or "audio" for selecting implementations.
        pause_threshold: Seconds of trailing silence that end a live utterance.
        cooldown: Seconds to wait after playback before listening again.
        speech_rate: Relative speaking speed (1.0 = the voice's normal speed).
        pitch: Relative pitch (1.0 = unchanged).
        language: BCP-47 locale passed to recognizers and synthesizers.
        reply_template: Template for the reply generator; must contain ``{text}``.
        stt_mode: "local" or "wyoming" for the transcriber.
        tts_mode: "local" or "wyoming" for the synthesizer.
        whisper_model: Whisper model size for local STT.
        whisper_device: Device for Whisper ("cpu"/"cuda"/None).
        whisper_host: Wyoming ASR host (when stt_mode=wyoming).
        whisper_port: Wyoming ASR port (when stt_mode=wyoming).
        piper_model_path: Path to a Piper `.onnx` model (tts_mode=local).
        piper_binary: Piper binary name/path.
        piper_speaker: Optional speaker id/name for Piper.
        piper_host: Wyoming TTS host (when tts_mode=wyoming).
        piper_port: Wyoming TTS port (when tts_mode=wyoming).
        sample_rate: Microphone sample rate in Hz (mono).
        silence_level: Mean absolute amplitude below which input counts as silence.
        max_utterance: Upper bound in seconds for one live utterance.
        recordings_dir: Directory for manual recordings as WAV; None keeps them in memory.
        cues: Whether to play tones when manual recording starts and stops.

    Usage:
        >>> config = AppConfig.from_env()
        >>> config.cooldown
        1.0
    """

    mode: str = "console"
    pause_threshold: float = 3.0
    cooldown: float = 1.0
    speech_rate: float = 0.9
    pitch: float = 1.0
    language: str = "en-US"
    reply_template: str = DEFAULT_TEMPLATE
    stt_mode: str = "local"
    tts_mode: str = "local"
    whisper_model: str = "base"
    whisper_device: Optional[str] = None
    whisper_host: str = "localhost"
    whisper_port: int = 10300
    piper_model_path: Optional[str] = None
    piper_binary: str = "piper"
    piper_speaker: Optional[str] = None
    piper_host: str = "localhost"
    piper_port: int = 10200
    sample_rate: int = 16000
    silence_level: float = 0.01
    max_utterance: float = 30.0
    recordings_dir: Optional[str] = None
    cues: bool = True

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Build an :class:`AppConfig` from environment variables.

        Supported variables:
            - VOICE_MODE: "console" (default) or "audio" to enable mic + TTS.
            - VOICE_PAUSE_THRESHOLD: Silence in seconds ending a live utterance (default: 3).
            - VOICE_COOLDOWN: Delay in seconds before re-listening after a reply (default: 1).
            - VOICE_SPEECH_RATE: Relative speaking speed (default: 0.9).
            - VOICE_PITCH: Relative pitch (default: 1.0).
            - VOICE_LANGUAGE: Locale code (default: "en-US").
            - VOICE_REPLY_TEMPLATE: Reply template containing "{text}".
            - VOICE_STT_MODE: "local" (default) or "wyoming".
            - VOICE_TTS_MODE: "local" (default) or "wyoming".
            - VOICE_WHISPER_MODEL: Whisper model size (default: "base").
            - VOICE_WHISPER_DEVICE: Whisper device (e.g., "cuda" or "cpu").
            - VOICE_WHISPER_HOST / VOICE_WHISPER_PORT: Wyoming ASR endpoint (default: localhost:10300).
            - VOICE_PIPER_MODEL: Path to Piper .onnx model (required for local TTS in audio mode).
            - VOICE_PIPER_BINARY: Piper binary name/path (default: "piper").
            - VOICE_PIPER_SPEAKER: Optional speaker id/name passed to Piper.
            - VOICE_PIPER_HOST / VOICE_PIPER_PORT: Wyoming TTS endpoint (default: localhost:10200).
            - VOICE_SAMPLE_RATE: Capture sample rate in Hz (default: 16000).
            - VOICE_SILENCE_LEVEL: VAD amplitude threshold (default: 0.01).
            - VOICE_MAX_UTTERANCE: Max seconds per live utterance (default: 30).
            - VOICE_RECORDINGS_DIR: Directory where manual recordings are saved as WAV.
            - VOICE_CUES: "false"/"0" to disable recording tones (default: true).
        """

        config = cls(
            mode=os.environ.get("VOICE_MODE", "console").lower(),
            pause_threshold=_float_env("VOICE_PAUSE_THRESHOLD", 3.0),
            cooldown=_float_env("VOICE_COOLDOWN", 1.0),
            speech_rate=_float_env("VOICE_SPEECH_RATE", 0.9),
            pitch=_float_env("VOICE_PITCH", 1.0),
            language=os.environ.get("VOICE_LANGUAGE") or "en-US",
            reply_template=os.environ.get("VOICE_REPLY_TEMPLATE") or DEFAULT_TEMPLATE,
            stt_mode=os.environ.get("VOICE_STT_MODE", "local").lower(),
            tts_mode=os.environ.get("VOICE_TTS_MODE", "local").lower(),
            whisper_model=os.environ.get("VOICE_WHISPER_MODEL", "base"),
            whisper_device=os.environ.get("VOICE_WHISPER_DEVICE") or None,
            whisper_host=os.environ.get("VOICE_WHISPER_HOST", "localhost"),
            whisper_port=_int_env("VOICE_WHISPER_PORT", 10300),
            piper_model_path=os.environ.get("VOICE_PIPER_MODEL") or None,
            piper_binary=os.environ.get("VOICE_PIPER_BINARY", "piper"),
            piper_speaker=os.environ.get("VOICE_PIPER_SPEAKER") or None,
            piper_host=os.environ.get("VOICE_PIPER_HOST", "localhost"),
            piper_port=_int_env("VOICE_PIPER_PORT", 10200),
            sample_rate=_int_env("VOICE_SAMPLE_RATE", 16000),
            silence_level=_float_env("VOICE_SILENCE_LEVEL", 0.01),
            max_utterance=_float_env("VOICE_MAX_UTTERANCE", 30.0),
            recordings_dir=os.environ.get("VOICE_RECORDINGS_DIR") or None,
            cues=os.environ.get("VOICE_CUES", "true").lower() in {"1", "true", "yes", "on"},
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ``ValueError`` for settings the controller or backends cannot honor."""
        if self.mode not in {"console", "audio"}:
            raise ValueError(f"Unknown mode '{self.mode}' (expected 'console' or 'audio')")
        if self.cooldown < 0:
            raise ValueError("VOICE_COOLDOWN must be >= 0")
        for name, value in (
            ("VOICE_PAUSE_THRESHOLD", self.pause_threshold),
            ("VOICE_SPEECH_RATE", self.speech_rate),
            ("VOICE_PITCH", self.pitch),
            ("VOICE_SAMPLE_RATE", self.sample_rate),
            ("VOICE_MAX_UTTERANCE", self.max_utterance),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be > 0")
        if "{text}" not in self.reply_template:
            raise ValueError("VOICE_REPLY_TEMPLATE must contain '{text}'")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc

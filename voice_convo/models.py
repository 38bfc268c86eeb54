"""Shared dataclasses for the conversation loop."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from .exceptions import VoiceError


class Mode(str, Enum):
    """Phase of the session. Only one capture, transcription or playback phase runs at a time."""

    IDLE = "idle"
    MANUAL_RECORDING = "manual_recording"
    MANUAL_TRANSCRIBING = "manual_transcribing"
    CALL_LISTENING = "call_listening"
    CALL_SPEAKING = "call_speaking"
    CALL_COOLING_DOWN = "call_cooling_down"

    @property
    def is_call(self) -> bool:
        return self in _CALL_MODES


_CALL_MODES = frozenset({Mode.CALL_LISTENING, Mode.CALL_SPEAKING, Mode.CALL_COOLING_DOWN})


class Role(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class Message:
    """A single conversation turn. Never mutated once appended to the history."""

    role: Role
    text: str
    timestamp: float = field(default_factory=time.time)

    def as_dict(self) -> Dict[str, str]:
        """Convert to the plain shape used by the console transcript view."""
        return {"role": self.role.value, "text": self.text}


@dataclass(frozen=True)
class RecordingHandle:
    """
    Audio captured in manual mode, handed from the capture source to the transcriber.

    Attributes:
        data: Mono PCM16 little-endian samples. Empty when the audio lives only at ``path``.
        sample_rate: Sample rate in Hz (16000 for every built-in source).
        started_at: Wall-clock time capture began.
        path: Optional WAV file holding the same audio.
        transcript_hint: Text used by the console harness in lieu of real audio.
    """

    data: bytes
    sample_rate: int
    started_at: float
    path: Optional[str] = None
    transcript_hint: Optional[str] = None

    @property
    def duration(self) -> float:
        if not self.sample_rate:
            return 0.0
        return len(self.data) / 2 / self.sample_rate


@dataclass(frozen=True)
class RecognitionEvent:
    """A partial or final hypothesis from the live recognizer."""

    text: str
    is_final: bool


@dataclass(frozen=True)
class TranscriptSegment:
    """Timed span of a transcript, in seconds from the start of the recording."""

    start: float
    end: float
    text: str


@dataclass(frozen=True)
class Transcript:
    """Text produced by the offline transcriber plus optional timing metadata."""

    text: str
    segments: Tuple[TranscriptSegment, ...] = ()
    language: Optional[str] = None


@dataclass(frozen=True)
class Notice:
    """
    User-visible notification for a recovered failure.

    Attributes:
        kind: Phase that failed ("recording", "transcription", "synthesis", "recognition", "reply").
        message: Human readable description.
        error: The underlying taxonomy error.
    """

    kind: str
    message: str
    error: VoiceError


@dataclass(frozen=True)
class SessionView:
    """Read-only projection of the session for the presentation layer."""

    mode: Mode
    in_call: bool
    history: Tuple[Message, ...]
    transcript: str
    speaking: bool
    last_notice: Optional[Notice]

    @property
    def busy(self) -> bool:
        """True while a manual toggle would be ignored."""
        return self.mode is Mode.MANUAL_TRANSCRIBING

"""Protocol interfaces for dependency injection."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from .exceptions import RecognizerError, SynthesisFailure
from .models import RecognitionEvent, RecordingHandle, Transcript

EventCallback = Callable[[RecognitionEvent], None]
ErrorCallback = Callable[[RecognizerError], None]
DoneCallback = Callable[[Optional[SynthesisFailure]], None]


class MicrophonePermission(Protocol):
    """Grants or denies access to the microphone."""

    def request_microphone(self) -> bool:
        """Return True when capture may proceed."""


class AudioCaptureSource(Protocol):
    """
    Wraps a recording or live-listening backend.

    Manual mode uses :meth:`start`/:meth:`stop`, call mode uses
    :meth:`start_listening`/:meth:`stop_listening`.
    """

    def start(self) -> None:
        """
        Begin recording and return once capture is running.

        Raises:
            PermissionDenied: Microphone access is missing.
            RecordingError: The backend could not open the input device.
        """

    def stop(self) -> RecordingHandle:
        """
        Stop recording and hand over the captured audio.

        Raises:
            NoActiveRecording: No recording is in progress.
        """

    def start_listening(self, on_event: EventCallback, on_error: ErrorCallback) -> None:
        """
        Start the live recognizer. No-op when already listening.

        Raises:
            RecognizerError: The recognizer could not start.
        """

    def stop_listening(self) -> None:
        """Halt the recognizer and drop its callbacks. No-op when not listening."""


class Transcriber(Protocol):
    """Converts a finished recording into text."""

    def transcribe(self, handle: RecordingHandle, *, language: Optional[str] = None) -> Transcript:
        """
        Return the transcript for the provided recording.

        Raises:
            TranscriptionFailure: The backend failed or the audio was unreadable.
            ModelUnavailable: The model has not been provisioned yet.
        """


class ReplyGenerator(Protocol):
    """Turns a user utterance into reply text. Must accept any input, including ''."""

    def generate(self, user_text: str) -> str:
        """Return the reply for ``user_text``."""


class SpeechSynthesizer(Protocol):
    """Speaks text asynchronously. Latest call wins, nothing is queued."""

    def speak(self, text: str, on_done: DoneCallback) -> None:
        """
        Start speaking ``text``, stopping any utterance already in flight.

        ``on_done`` fires exactly once, with ``None`` on success or the
        :class:`SynthesisFailure` that ended playback, unless the utterance is
        cancelled by :meth:`stop` or superseded by another ``speak``.
        """

    def stop(self) -> None:
        """Cancel the in-flight utterance and suppress its completion."""


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running if it has not fired yet."""


class Scheduler(Protocol):
    """Runs delayed callbacks (the call-mode cool-down)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke ``callback`` after ``delay`` seconds on a background thread."""

"""Custom exceptions for the conversation loop."""

from __future__ import annotations


class VoiceError(RuntimeError):
    """Base class for recoverable failures surfaced by the controller."""


class PermissionDenied(VoiceError):
    """Raised when microphone access is not granted."""


class NoActiveRecording(VoiceError):
    """Raised when a recording is stopped that was never started."""


class RecordingError(VoiceError):
    """Raised when the capture backend cannot open or read the microphone."""


class TranscriptionFailure(VoiceError):
    """Raised when the offline transcriber cannot produce text."""


class ModelUnavailable(TranscriptionFailure):
    """Raised when transcription is requested before the model is provisioned."""


class SynthesisFailure(VoiceError):
    """Raised when the speech synthesizer cannot render an utterance."""


class RecognizerError(VoiceError):
    """Raised when the live recognizer fails to start or reports an error."""

"""STT placeholder that echoes the typed transcript hint."""

from __future__ import annotations

from typing import Optional

from ..exceptions import TranscriptionFailure
from ..interfaces import Transcriber
from ..models import RecordingHandle, Transcript


class EchoTranscriber(Transcriber):
    """
    Minimal transcriber for the console harness.

    It simply trusts the transcript hint supplied by :class:`ConsoleCaptureSource`.
    """

    def transcribe(self, handle: RecordingHandle, *, language: Optional[str] = None) -> Transcript:
        if handle.transcript_hint is None:
            raise TranscriptionFailure("No transcript_hint found; use an audio transcriber for real recordings.")
        return Transcript(text=handle.transcript_hint, language=language)

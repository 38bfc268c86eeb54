"""Capture source that treats typed lines as speech."""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

from ..exceptions import NoActiveRecording
from ..interfaces import AudioCaptureSource, ErrorCallback, EventCallback
from ..models import RecognitionEvent, RecordingHandle

logger = logging.getLogger(__name__)


class ConsoleCaptureSource(AudioCaptureSource):
    """
    Records pseudo-audio from typed text.

    The CLI forwards every non-command line to :meth:`feed`. While recording,
    lines are collected into the handle's ``transcript_hint``; while listening,
    each line is delivered as a partial event (its first word) and then a
    final event.

    Usage:
        source = ConsoleCaptureSource()
        source.start()
        source.feed("hello world")
        handle = source.stop()
        print(handle.transcript_hint)
    """

    def __init__(self, *, sample_rate: int = 16000) -> None:
        self.sample_rate = sample_rate
        self._lock = threading.Lock()
        self._lines: Optional[List[str]] = None
        self._started_at = 0.0
        self._on_event: Optional[EventCallback] = None

    @property
    def recording(self) -> bool:
        return self._lines is not None

    @property
    def listening(self) -> bool:
        return self._on_event is not None

    def start(self) -> None:
        with self._lock:
            self._lines = []
            self._started_at = time.time()

    def stop(self) -> RecordingHandle:
        with self._lock:
            if self._lines is None:
                raise NoActiveRecording("Console recording was not started.")
            text = " ".join(self._lines)
            self._lines = None
        return RecordingHandle(
            data=b"",
            sample_rate=self.sample_rate,
            started_at=self._started_at,
            transcript_hint=text,
        )

    def start_listening(self, on_event: EventCallback, on_error: ErrorCallback) -> None:
        with self._lock:
            if self._on_event is None:
                self._on_event = on_event

    def stop_listening(self) -> None:
        with self._lock:
            self._on_event = None

    def feed(self, text: str) -> bool:
        """
        Deliver a typed line as if it had been spoken.

        Returns:
            False when neither recording nor listening.
        """
        with self._lock:
            if self._lines is not None:
                self._lines.append(text.strip())
                return True
            callback = self._on_event

        if callback is None:
            logger.debug("Ignoring input while the microphone is closed: %r", text)
            return False
        words = text.split()
        if len(words) > 1:
            callback(RecognitionEvent(text=words[0], is_final=False))
        callback(RecognitionEvent(text=text.strip(), is_final=True))
        return True

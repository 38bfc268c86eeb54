"""Shared machinery for synthesizers that render speech on a background thread."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from ..exceptions import SynthesisFailure
from ..interfaces import DoneCallback, SpeechSynthesizer

logger = logging.getLogger(__name__)


class BackgroundSynthesizer(SpeechSynthesizer):
    """
    Base class implementing the latest-wins ``speak``/``stop`` contract.

    Each utterance runs :meth:`render` on its own daemon thread together with a
    cancellation event. ``on_done`` is invoked once when rendering returns,
    unless the utterance was stopped or replaced in the meantime. Subclasses
    implement :meth:`render` and may override :meth:`interrupt` to abort
    blocking I/O (e.g., stop audio output or kill a subprocess).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._cancel: Optional[threading.Event] = None
        self._worker: Optional[threading.Thread] = None

    @property
    def speaking(self) -> bool:
        with self._lock:
            return self._cancel is not None and not self._cancel.is_set()

    def speak(self, text: str, on_done: DoneCallback) -> None:
        self.stop()
        with self._lock:
            self._generation += 1
            generation = self._generation
            cancel = threading.Event()
            self._cancel = cancel
            self._worker = threading.Thread(
                target=self._run,
                args=(generation, text, cancel, on_done),
                name=f"tts-{generation}",
                daemon=True,
            )
            self._worker.start()

    def stop(self) -> None:
        with self._lock:
            if self._cancel is None or self._cancel.is_set():
                return
            self._cancel.set()
            self._generation += 1
        self.interrupt()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the current utterance thread to exit."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)

    def render(self, text: str, cancel: threading.Event) -> None:
        """Synthesize and play ``text``; return early once ``cancel`` is set."""
        raise NotImplementedError

    def interrupt(self) -> None:
        """Abort blocking playback of the current utterance."""

    def _run(self, generation: int, text: str, cancel: threading.Event, on_done: DoneCallback) -> None:
        error: Optional[SynthesisFailure] = None
        try:
            self.render(text, cancel)
        except SynthesisFailure as exc:
            error = exc
        except Exception as exc:
            logger.exception("Speech rendering failed")
            error = SynthesisFailure(str(exc) or type(exc).__name__)

        with self._lock:
            if cancel.is_set() or generation != self._generation:
                logger.debug("Utterance %d cancelled; completion suppressed", generation)
                return
            cancel.set()
        on_done(error)


def play_pcm(
    pcm: np.ndarray,
    sample_rate: int,
    cancel: threading.Event,
    *,
    poll_interval: float = 0.05,
) -> None:
    """
    Play float32 samples through the default output device until done or cancelled.

    Raises:
        SynthesisFailure: ``sounddevice`` is missing or the device failed.
    """
    sd = _lazy_import_sounddevice()
    try:
        sd.play(pcm, samplerate=sample_rate)
        duration = len(pcm) / float(sample_rate)
        # Poll rather than sd.wait() so a stop() from another thread is honored promptly.
        waited = 0.0
        while waited < duration and not cancel.is_set():
            cancel.wait(poll_interval)
            waited += poll_interval
        if cancel.is_set():
            sd.stop()
        else:
            sd.wait()
    except sd.PortAudioError as exc:  # pragma: no cover - hardware dependent
        raise SynthesisFailure(f"Audio output failed: {exc}") from exc


def pcm16_to_float(raw: bytes, width: int = 2) -> np.ndarray:
    if width == 2:
        return np.frombuffer(raw, dtype=np.int16).astype(np.float32) / 32768.0
    if width == 4:
        return np.frombuffer(raw, dtype=np.int32).astype(np.float32) / 2147483648.0
    raise SynthesisFailure(f"Unsupported audio width: {width}")


def _lazy_import_sounddevice():
    try:
        import sounddevice as sd  # type: ignore
    except (ImportError, OSError) as exc:  # pragma: no cover - runtime dependency
        raise SynthesisFailure("sounddevice is required for audio playback. Install via pip.") from exc
    return sd

"""Microphone capture backed by sounddevice, with energy-based utterance detection."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from typing import List, Optional, Tuple

import numpy as np

from ..exceptions import (
    NoActiveRecording,
    RecognizerError,
    RecordingError,
    TranscriptionFailure,
)
from ..interfaces import AudioCaptureSource, ErrorCallback, EventCallback, Transcriber
from ..models import RecognitionEvent, RecordingHandle
from .audio_feedback import play_start_cue, play_stop_cue
from .audio_io import float_to_pcm16, write_wav

logger = logging.getLogger(__name__)


class UtteranceSegmenter:
    """
    Splits a stream of audio blocks into utterances.

    An utterance starts at the first block louder than ``silence_level`` and
    ends after ``pause_threshold`` seconds of quieter blocks, or once it
    reaches ``max_seconds``.

    Usage:
        >>> seg = UtteranceSegmenter(sample_rate=16000, pause_threshold=0.5)
        >>> seg.push(np.zeros(1600, dtype=np.float32)) is None
        True
    """

    def __init__(
        self,
        *,
        sample_rate: int,
        pause_threshold: float,
        silence_level: float = 0.01,
        max_seconds: float = 30.0,
    ) -> None:
        self.sample_rate = sample_rate
        self.pause_threshold = pause_threshold
        self.silence_level = silence_level
        self.max_seconds = max_seconds
        self._blocks: List[np.ndarray] = []
        self._samples = 0
        self._silent_samples = 0

    @property
    def in_speech(self) -> bool:
        return bool(self._blocks)

    def push(self, block: np.ndarray) -> Optional[np.ndarray]:
        """Feed one mono block; return the finished utterance when one ends."""
        loud = float(np.abs(block).mean()) > self.silence_level if block.size else False
        if not self._blocks and not loud:
            return None

        self._blocks.append(block.astype(np.float32, copy=True))
        self._samples += block.size
        self._silent_samples = 0 if loud else self._silent_samples + block.size

        if self._silent_samples >= self.pause_threshold * self.sample_rate:
            return self._flush()
        if self._samples >= self.max_seconds * self.sample_rate:
            logger.debug("Utterance reached %.1fs cap", self.max_seconds)
            return self._flush()
        return None

    def reset(self) -> None:
        self._blocks = []
        self._samples = 0
        self._silent_samples = 0

    def _flush(self) -> np.ndarray:
        utterance = np.concatenate(self._blocks)
        self.reset()
        return utterance


class SoundDeviceCaptureSource(AudioCaptureSource):
    """
    Records from the default microphone with sounddevice.

    Manual recordings are kept as PCM16 in memory and optionally written to
    ``recordings_dir`` as WAV. Live listening segments the input with
    :class:`UtteranceSegmenter` and transcribes each utterance on a worker
    thread with ``transcriber``; every utterance yields one final event.

    Args:
        transcriber: Offline transcriber used for live recognition.
        sample_rate: Capture rate in Hz (mono).
        pause_threshold: Seconds of silence that end a live utterance.
        silence_level: Mean absolute amplitude treated as silence.
        max_utterance: Upper bound in seconds for a live utterance.
        recordings_dir: Where to save manual recordings; None keeps them in memory.
        cues: Play tones when manual recording starts and stops.
        language: Locale hint handed to the transcriber.
    """

    def __init__(
        self,
        *,
        transcriber: Transcriber,
        sample_rate: int = 16000,
        pause_threshold: float = 3.0,
        silence_level: float = 0.01,
        max_utterance: float = 30.0,
        recordings_dir: Optional[str] = None,
        cues: bool = True,
        language: Optional[str] = None,
    ) -> None:
        self.transcriber = transcriber
        self.sample_rate = sample_rate
        self.pause_threshold = pause_threshold
        self.silence_level = silence_level
        self.max_utterance = max_utterance
        self.recordings_dir = recordings_dir
        self.cues = cues
        self.language = language

        self._lock = threading.Lock()
        self._stream = None
        self._state: Optional[str] = None  # "recording" | "listening"
        self._chunks: List[np.ndarray] = []
        self._started_at = 0.0
        self._generation = 0
        self._pending: "queue.Queue[Optional[Tuple[int, np.ndarray, EventCallback, ErrorCallback]]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    # Manual mode

    def start(self) -> None:
        with self._lock:
            if self._state is not None:
                raise RecordingError(f"Microphone is busy ({self._state}).")
        if self.cues:
            play_start_cue()

        sd = _lazy_import_sounddevice(RecordingError)
        chunks: List[np.ndarray] = []

        def callback(indata, frames, time_info, status):
            if status:
                logger.debug("Input status: %s", status)
            chunks.append(indata[:, 0].copy())

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                callback=callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise RecordingError(f"Could not open microphone: {exc}") from exc

        with self._lock:
            self._stream = stream
            self._chunks = chunks
            self._started_at = time.time()
            self._state = "recording"
        logger.info("Recording started")

    def stop(self) -> RecordingHandle:
        with self._lock:
            if self._state != "recording":
                raise NoActiveRecording("No recording in progress.")
            stream, chunks, started_at = self._stream, self._chunks, self._started_at
            self._stream, self._chunks, self._state = None, [], None

        sd = _lazy_import_sounddevice(RecordingError)
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as exc:
            raise RecordingError(f"Could not close microphone: {exc}") from exc
        if self.cues:
            play_stop_cue()

        samples = np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.float32)
        pcm = float_to_pcm16(samples)
        logger.info("Recorded %.2fs of audio", samples.size / self.sample_rate)

        path = None
        if self.recordings_dir:
            path = os.path.join(self.recordings_dir, f"recording-{int(started_at * 1000)}.wav")
            try:
                os.makedirs(self.recordings_dir, exist_ok=True)
                write_wav(path, pcm, self.sample_rate)
            except OSError as exc:
                logger.warning("Could not save recording to %s: %s", path, exc)
                path = None
        return RecordingHandle(data=pcm, sample_rate=self.sample_rate, started_at=started_at, path=path)

    # Call mode

    def start_listening(self, on_event: EventCallback, on_error: ErrorCallback) -> None:
        with self._lock:
            if self._state == "listening":
                return
            if self._state is not None:
                raise RecognizerError(f"Microphone is busy ({self._state}).")

        sd = _lazy_import_sounddevice(RecognizerError)
        segmenter = UtteranceSegmenter(
            sample_rate=self.sample_rate,
            pause_threshold=self.pause_threshold,
            silence_level=self.silence_level,
            max_seconds=self.max_utterance,
        )
        with self._lock:
            self._generation += 1
            generation = self._generation

        def callback(indata, frames, time_info, status):
            if status:
                logger.debug("Input status: %s", status)
            utterance = segmenter.push(indata[:, 0])
            if utterance is not None:
                self._pending.put((generation, utterance, on_event, on_error))

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                callback=callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise RecognizerError(f"Could not open microphone: {exc}") from exc

        with self._lock:
            self._stream = stream
            self._state = "listening"
            self._ensure_worker()
        logger.info("Listening (pause threshold %.1fs)", self.pause_threshold)

    def stop_listening(self) -> None:
        with self._lock:
            if self._state != "listening":
                return
            stream = self._stream
            self._stream, self._state = None, None
            self._generation += 1
        sd = _lazy_import_sounddevice(RecognizerError)
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as exc:
            logger.warning("Could not close microphone stream: %s", exc)
        logger.debug("Listening stopped")

    def close(self) -> None:
        """Stop any capture and let the recognition worker exit."""
        self.stop_listening()
        with self._lock:
            recording = self._state == "recording"
        if recording:
            self.stop()
        self._pending.put(None)

    def _ensure_worker(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(target=self._recognize_loop, name="live-stt", daemon=True)
            self._worker.start()

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and self._state == "listening"

    def _recognize_loop(self) -> None:
        while True:
            item = self._pending.get()
            if item is None:
                return
            generation, samples, on_event, on_error = item
            if not self._is_current(generation):
                continue

            handle = RecordingHandle(
                data=float_to_pcm16(samples),
                sample_rate=self.sample_rate,
                started_at=time.time() - samples.size / self.sample_rate,
            )
            try:
                transcript = self.transcriber.transcribe(handle, language=self.language)
            except TranscriptionFailure as exc:
                self._deliver_error(generation, on_error, exc)
                continue
            except Exception as exc:
                logger.exception("Live transcription raised an unexpected error")
                self._deliver_error(generation, on_error, exc)
                continue

            if self._is_current(generation):
                on_event(RecognitionEvent(text=transcript.text, is_final=True))

    def _deliver_error(self, generation: int, on_error: ErrorCallback, exc: Exception) -> None:
        if self._is_current(generation):
            on_error(RecognizerError(f"Live recognition failed: {str(exc) or type(exc).__name__}"))


def _lazy_import_sounddevice(error_cls):
    try:
        import sounddevice as sd  # type: ignore
    except (ImportError, OSError) as exc:  # pragma: no cover - runtime dependency
        raise error_cls("sounddevice is required for microphone capture. Install via pip.") from exc
    return sd

"""Whisper-based STT adapter."""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Optional

import numpy as np

from ..exceptions import ModelUnavailable, TranscriptionFailure
from ..interfaces import Transcriber
from ..models import RecordingHandle, Transcript, TranscriptSegment
from .audio_io import load_pcm

logger = logging.getLogger(__name__)

WHISPER_RATE = 16000


class WhisperTranscriber(Transcriber):
    """
    Offline transcription using OpenAI Whisper.

    Args:
        model_size: Whisper model name (e.g., "tiny", "base", "small", "medium", "large").
        device: Device string passed to whisper (e.g., "cpu", "cuda").

    Notes:
        - Requires the `openai-whisper` package.
        - :meth:`load` is the provisioning step; :meth:`transcribe` raises
          :class:`ModelUnavailable` until it has succeeded.
        - Audio at other sample rates is linearly resampled to 16 kHz.
    """

    def __init__(self, *, model_size: str = "base", device: Optional[str] = None) -> None:
        self.model_size = model_size
        self.device = device
        self._model = None
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        """Load the model into memory. Safe to call more than once."""
        with self._lock:
            if self._model is not None:
                return
            try:
                self._model = _load_whisper(self.model_size, self.device)
            except ModelUnavailable:
                raise
            except Exception as exc:
                raise ModelUnavailable(f"Whisper model '{self.model_size}' failed to load: {exc}") from exc
            logger.info("Whisper model '%s' loaded", self.model_size)

    def transcribe(self, handle: RecordingHandle, *, language: Optional[str] = None) -> Transcript:
        if self._model is None:
            raise ModelUnavailable(f"Whisper model '{self.model_size}' is not loaded yet.")

        samples = pcm_to_whisper_input(load_pcm(handle), handle.sample_rate)
        lang = language.split("-")[0] if language else None
        try:
            # The model is shared by manual and live recognition; one inference at a time.
            with self._lock:
                result = self._model.transcribe(samples, language=lang, fp16=False)
        except Exception as exc:
            raise TranscriptionFailure(f"Whisper transcription failed: {exc}") from exc

        segments = tuple(
            TranscriptSegment(
                start=float(seg.get("start", 0.0)),
                end=float(seg.get("end", 0.0)),
                text=str(seg.get("text", "")).strip(),
            )
            for seg in result.get("segments", [])
        )
        return Transcript(
            text=str(result.get("text", "")).strip(),
            segments=segments,
            language=result.get("language") or lang,
        )


def pcm_to_whisper_input(pcm: bytes, sample_rate: int) -> np.ndarray:
    """Decode PCM16 bytes to float32 at 16 kHz."""
    samples = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0
    if sample_rate == WHISPER_RATE or samples.size == 0:
        return samples
    target = int(round(samples.size * WHISPER_RATE / sample_rate))
    positions = np.linspace(0, samples.size - 1, num=target)
    return np.interp(positions, np.arange(samples.size), samples).astype(np.float32)


@lru_cache(maxsize=1)
def _load_whisper(model_size: str, device: Optional[str]):
    try:
        import whisper  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime dependency
        raise ModelUnavailable("openai-whisper is required for WhisperTranscriber. Install via pip.") from exc

    return whisper.load_model(model_size, device=device)

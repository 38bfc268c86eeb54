"""PCM helpers shared by the microphone source and the transcribers."""

from __future__ import annotations

import wave

import numpy as np

from ..exceptions import TranscriptionFailure
from ..models import RecordingHandle


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Convert float32 [-1.0, 1.0] samples to 16-bit little-endian PCM bytes."""
    pcm = np.clip(samples, -1.0, 1.0)
    return (pcm * 32767).astype("<i2").tobytes()


def write_wav(path: str, pcm: bytes, sample_rate: int) -> None:
    """Write mono PCM16 bytes to ``path``."""
    with wave.open(path, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)


def load_pcm(handle: RecordingHandle) -> bytes:
    """
    Return the PCM16 payload of a recording, reading ``handle.path`` when the
    handle carries no in-memory data.

    Raises:
        TranscriptionFailure: The file is missing, unreadable or not mono PCM16.
    """
    if handle.data:
        return handle.data
    if not handle.path:
        raise TranscriptionFailure("Recording contains no audio.")
    try:
        with wave.open(handle.path, "rb") as wav:
            if wav.getnchannels() != 1 or wav.getsampwidth() != 2:
                raise TranscriptionFailure(f"{handle.path} is not mono 16-bit PCM")
            data = wav.readframes(wav.getnframes())
    except (OSError, wave.Error, EOFError) as exc:
        raise TranscriptionFailure(f"Cannot read {handle.path}: {exc}") from exc
    if not data:
        raise TranscriptionFailure("Recording contains no audio.")
    return data

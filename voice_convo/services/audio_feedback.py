"""Audio feedback tones for recording start and stop."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

CUE_RATE = 22050


def sweep(freq_start: float, freq_end: float, duration: float, *, volume: float = 0.75) -> np.ndarray:
    """Return a sine sweep with a short fade at both ends."""
    n = int(CUE_RATE * duration)
    freqs = np.linspace(freq_start, freq_end, n, endpoint=False)
    phase = np.cumsum(2 * np.pi * freqs / CUE_RATE)
    tone = np.sin(phase)

    fade = min(int(CUE_RATE * 0.03), n // 2)
    if fade > 0:
        ramp = np.linspace(0, 1, fade) ** 2
        tone[:fade] *= ramp
        tone[-fade:] *= ramp[::-1]
    return (tone * volume).astype(np.float32)


def play_start_cue() -> None:
    """Rising tone: the microphone is open."""
    _play(sweep(400, 800, 0.25))


def play_stop_cue() -> None:
    """Falling tone: the microphone is closed."""
    _play(sweep(800, 500, 0.25))


def _play(tone: np.ndarray) -> None:
    try:
        import sounddevice as sd  # type: ignore
    except (ImportError, OSError):
        logger.debug("sounddevice not available; skipping cue")
        return
    try:
        sd.play(tone, samplerate=CUE_RATE, blocking=True)
    except sd.PortAudioError as exc:  # pragma: no cover - hardware dependent
        logger.warning("Failed to play cue: %s", exc)

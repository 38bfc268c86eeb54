"""Piper TTS adapter that calls the `piper` CLI and plays audio via sounddevice."""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from typing import List, Optional

from ..exceptions import SynthesisFailure
from .playback import BackgroundSynthesizer, pcm16_to_float, play_pcm

logger = logging.getLogger(__name__)


class PiperSpeechSynthesizer(BackgroundSynthesizer):
    """
    Text-to-speech using the `piper` command-line binary.

    Args:
        model_path: Path to a Piper `.onnx` model.
        binary_path: Piper executable name or path (default: "piper").
        speaker: Optional speaker ID/name, passed via `--speaker`.
        sample_rate: Native sample rate of the model (Hz).
        speech_rate: Relative speed, mapped to Piper's `--length_scale` (inverse).
        pitch: Relative pitch, applied by scaling the playback rate.

    Notes:
        - Requires the Piper binary in PATH (or provide binary_path).
        - Requires `sounddevice` for playback.
        - Scaling the playback rate for pitch also changes tempo slightly; keep
          pitch close to 1.0.
    """

    def __init__(
        self,
        *,
        model_path: str,
        binary_path: str = "piper",
        speaker: Optional[str] = None,
        sample_rate: int = 22050,
        speech_rate: float = 1.0,
        pitch: float = 1.0,
    ) -> None:
        super().__init__()
        if not shutil.which(binary_path):
            raise RuntimeError(
                f"Piper binary '{binary_path}' not found. Install Piper and adjust binary_path or PATH."
            )
        self.model_path = model_path
        self.binary_path = binary_path
        self.speaker = speaker
        self.sample_rate = sample_rate
        self.speech_rate = speech_rate
        self.pitch = pitch
        self._proc: Optional[subprocess.Popen] = None

    def command(self) -> List[str]:
        cmd = [
            self.binary_path,
            "--model",
            self.model_path,
            "--output-raw",
            "--length_scale",
            f"{1.0 / self.speech_rate:.3f}",
        ]
        if self.speaker:
            cmd.extend(["--speaker", self.speaker])
        return cmd

    def render(self, text: str, cancel: threading.Event) -> None:
        if not text.strip():
            return

        try:
            proc = subprocess.Popen(
                self.command(),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise SynthesisFailure(f"Could not start Piper: {exc}") from exc
        self._proc = proc
        try:
            raw, stderr = proc.communicate(text.encode("utf-8"))
        finally:
            self._proc = None

        if cancel.is_set():
            return
        if proc.returncode != 0:
            raise SynthesisFailure(
                f"Piper failed (exit {proc.returncode}): {stderr.decode('utf-8', errors='ignore')}"
            )
        if not raw:
            raise SynthesisFailure("Piper produced no audio output.")

        logger.debug("Piper rendered %d bytes", len(raw))
        play_pcm(pcm16_to_float(raw), int(self.sample_rate * self.pitch), cancel)

    def interrupt(self) -> None:
        proc = self._proc
        if proc is not None and proc.poll() is None:
            proc.kill()

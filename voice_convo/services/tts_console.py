"""Console TTS implementation that prints replies."""

from __future__ import annotations

import threading

from .playback import BackgroundSynthesizer


class ConsoleSpeechSynthesizer(BackgroundSynthesizer):
    """
    Speaks by printing to stdout, then holds the "speaker" for roughly as long
    as saying the text aloud would take.

    Args:
        speech_rate: Relative speed; 1.0 speaks at ``words_per_second``.
        words_per_second: Speaking pace at rate 1.0.
        prefix: Label printed in brackets before the text.

    Swap this out for Piper or a Wyoming TTS service without touching the controller.
    """

    def __init__(self, *, speech_rate: float = 1.0, words_per_second: float = 2.5, prefix: str = "speaking") -> None:
        super().__init__()
        self.speech_rate = speech_rate
        self.words_per_second = words_per_second
        self.prefix = prefix

    def duration_for(self, text: str) -> float:
        words = len(text.split())
        return words / (self.words_per_second * self.speech_rate)

    def render(self, text: str, cancel: threading.Event) -> None:
        print(f"[{self.prefix}] {text}")
        cancel.wait(self.duration_for(text))

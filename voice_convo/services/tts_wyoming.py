"""Wyoming Piper TTS adapter via Wyoming protocol."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import List, Optional, Tuple

from wyoming.audio import AudioChunk, AudioStop
from wyoming.client import AsyncTcpClient
from wyoming.tts import Synthesize, SynthesizeVoice

from ..exceptions import SynthesisFailure
from .playback import BackgroundSynthesizer, pcm16_to_float, play_pcm

logger = logging.getLogger(__name__)


class WyomingSpeechSynthesizer(BackgroundSynthesizer):
    """
    Text-to-speech using the Wyoming Piper protocol.

    Args:
        host: Wyoming service host (e.g., "localhost")
        port: Wyoming service port (e.g., 10200 for piper)
        timeout: Per-event read timeout in seconds.
        speaker: Optional voice name known to the server.
        pitch: Relative pitch, applied by scaling the playback rate.
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 10200,
        timeout: float = 30.0,
        speaker: Optional[str] = None,
        pitch: float = 1.0,
    ) -> None:
        super().__init__()
        self._host = host
        self._port = port
        self._timeout = timeout
        self._speaker = speaker
        self._pitch = pitch

    def render(self, text: str, cancel: threading.Event) -> None:
        if not text.strip():
            return

        try:
            audio, rate, width, channels = asyncio.run(self._synthesize(text))
        except SynthesisFailure:
            raise
        except (OSError, asyncio.TimeoutError) as exc:
            raise SynthesisFailure(f"Wyoming Piper error: {exc}") from exc

        if cancel.is_set():
            return
        pcm = pcm16_to_float(audio, width)
        if channels > 1:
            pcm = pcm.reshape(-1, channels)
        play_pcm(pcm, int(rate * self._pitch), cancel)

    async def _synthesize(self, text: str) -> Tuple[bytes, int, int, int]:
        voice = SynthesizeVoice(name=self._speaker) if self._speaker else None
        chunks: List[bytes] = []
        rate, width, channels = 22050, 2, 1

        async with AsyncTcpClient(self._host, self._port) as client:
            await client.write_event(Synthesize(text=text, voice=voice).event())
            while True:
                event = await asyncio.wait_for(client.read_event(), timeout=self._timeout)
                if event is None:
                    break
                if AudioChunk.is_type(event.type):
                    chunk = AudioChunk.from_event(event)
                    chunks.append(chunk.audio)
                    rate, width, channels = chunk.rate, chunk.width, chunk.channels
                elif AudioStop.is_type(event.type):
                    break

        if not chunks:
            raise SynthesisFailure("Wyoming Piper produced no audio output")
        logger.debug("Received %d audio chunks from %s:%d", len(chunks), self._host, self._port)
        return b"".join(chunks), rate, width, channels

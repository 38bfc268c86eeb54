"""Wyoming Whisper STT adapter via Wyoming protocol."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from wyoming.asr import Transcribe, Transcript as WyomingTranscript
from wyoming.audio import AudioChunk, AudioStart, AudioStop
from wyoming.client import AsyncTcpClient

from ..exceptions import ModelUnavailable, TranscriptionFailure
from ..interfaces import Transcriber
from ..models import RecordingHandle, Transcript
from .audio_io import load_pcm

logger = logging.getLogger(__name__)


class WyomingTranscriber(Transcriber):
    """
    Transcription through a Wyoming Whisper service.

    Args:
        host: Wyoming service host (e.g., "localhost")
        port: Wyoming service port (e.g., 10300 for whisper)
        timeout: Per-event read timeout in seconds.
        chunk_size: Bytes of PCM sent per AudioChunk event.
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 10300,
        timeout: float = 30.0,
        chunk_size: int = 8192,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._chunk_size = chunk_size

    def transcribe(self, handle: RecordingHandle, *, language: Optional[str] = None) -> Transcript:
        pcm = load_pcm(handle)
        lang = language.split("-")[0] if language else None
        try:
            text = asyncio.run(self._transcribe(pcm, handle.sample_rate, lang))
        except ConnectionRefusedError as exc:
            raise ModelUnavailable(f"No Wyoming ASR service at {self._host}:{self._port}") from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise TranscriptionFailure(f"Wyoming Whisper error: {exc}") from exc
        except TranscriptionFailure:
            raise
        except Exception as exc:
            raise TranscriptionFailure(f"Wyoming Whisper protocol error: {exc}") from exc
        return Transcript(text=text, language=lang)

    async def _transcribe(self, pcm: bytes, sample_rate: int, language: Optional[str]) -> str:
        async with AsyncTcpClient(self._host, self._port) as client:
            await client.write_event(Transcribe(language=language).event())
            await client.write_event(AudioStart(rate=sample_rate, width=2, channels=1).event())
            for i in range(0, len(pcm), self._chunk_size):
                await client.write_event(
                    AudioChunk(
                        audio=pcm[i:i + self._chunk_size],
                        rate=sample_rate,
                        width=2,
                        channels=1,
                    ).event()
                )
            await client.write_event(AudioStop().event())

            while True:
                event = await asyncio.wait_for(client.read_event(), timeout=self._timeout)
                if event is None:
                    break
                if WyomingTranscript.is_type(event.type):
                    return WyomingTranscript.from_event(event).text.strip()

        raise TranscriptionFailure("No transcript received from Wyoming Whisper")

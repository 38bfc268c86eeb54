"""CLI harness for the voice conversation loop."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import AppConfig
from .controller import ConversationController
from .interfaces import AudioCaptureSource
from .models import Mode, Notice, Role, SessionView
from .reply import TemplateReplyGenerator
from .services.console_capture import ConsoleCaptureSource
from .services.permission import GrantedPermission, SoundDevicePermission
from .services.stt_echo import EchoTranscriber
from .services.tts_console import ConsoleSpeechSynthesizer

logger = logging.getLogger(__name__)

HELP = """Commands:
  /rec      start or stop a recording (push-to-talk), then transcribe it
  /speak    read the last transcript aloud
  /call     start a call (listen -> reply -> speak -> listen ...)
  /end      end the call
  /history  print the conversation so far
  /reset    clear transcript and history
  /quit     exit
Any other line is treated as speech."""


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@dataclass
class Harness:
    controller: ConversationController
    capture: AudioCaptureSource

    def close(self) -> None:
        self.controller.close()
        close = getattr(self.capture, "close", None)
        if close is not None:
            close()


def build_harness(config: AppConfig) -> Harness:
    """Wire up the controller with console or audio implementations."""
    reply_generator = TemplateReplyGenerator(config.reply_template)

    if config.mode == "audio":
        # Imported here so console mode works without audio libraries installed
        from .services.mic_capture import SoundDeviceCaptureSource

        if config.stt_mode == "wyoming":
            from .services.stt_wyoming import WyomingTranscriber

            transcriber = WyomingTranscriber(host=config.whisper_host, port=config.whisper_port)
        else:
            from .services.stt_whisper import WhisperTranscriber

            transcriber = WhisperTranscriber(model_size=config.whisper_model, device=config.whisper_device)
            logger.info("Loading Whisper model '%s'...", config.whisper_model)
            transcriber.load()

        if config.tts_mode == "wyoming":
            from .services.tts_wyoming import WyomingSpeechSynthesizer

            synthesizer = WyomingSpeechSynthesizer(
                host=config.piper_host,
                port=config.piper_port,
                speaker=config.piper_speaker,
                pitch=config.pitch,
            )
        else:
            if not config.piper_model_path:
                raise RuntimeError("VOICE_PIPER_MODEL must be set when VOICE_TTS_MODE=local.")
            from .services.tts_piper import PiperSpeechSynthesizer

            synthesizer = PiperSpeechSynthesizer(
                model_path=config.piper_model_path,
                binary_path=config.piper_binary,
                speaker=config.piper_speaker,
                speech_rate=config.speech_rate,
                pitch=config.pitch,
            )

        capture = SoundDeviceCaptureSource(
            transcriber=transcriber,
            sample_rate=config.sample_rate,
            pause_threshold=config.pause_threshold,
            silence_level=config.silence_level,
            max_utterance=config.max_utterance,
            recordings_dir=config.recordings_dir,
            cues=config.cues,
            language=config.language,
        )
        permission = SoundDevicePermission()
    else:
        capture = ConsoleCaptureSource(sample_rate=config.sample_rate)
        transcriber = EchoTranscriber()
        synthesizer = ConsoleSpeechSynthesizer(speech_rate=config.speech_rate)
        permission = GrantedPermission()

    controller = ConversationController(
        capture=capture,
        transcriber=transcriber,
        reply_generator=reply_generator,
        synthesizer=synthesizer,
        permission=permission,
        cooldown=config.cooldown,
        language=config.language,
    )
    return Harness(controller=controller, capture=capture)


class ConsoleView:
    """Prints mode changes, new messages and notices as they happen."""

    def __init__(self) -> None:
        self._mode: Optional[Mode] = None
        self._seen = 0
        self._transcript = ""

    def render(self, view: SessionView) -> None:
        for message in view.history[self._seen:]:
            if message.role is Role.USER:
                print(f"You: {message.text}")
            else:
                print(f"Bot: {message.text}")
        self._seen = len(view.history)

        if view.transcript and view.transcript != self._transcript:
            print(f"[transcript] {view.transcript}")
        self._transcript = view.transcript

        if view.mode is not self._mode:
            self._mode = view.mode
            print(f"[{view.mode.value.replace('_', ' ')}]")

    def notify(self, notice: Notice) -> None:
        print(f"[error] {notice.kind}: {notice.message}")


def print_history(view: SessionView) -> None:
    if not view.history:
        print("(no messages yet)")
    for message in view.history:
        print(f"  {message.role.value:>4}: {message.text}")


def run_console(harness: Harness, *, start_in_call: bool = False) -> None:
    """Read commands and pseudo-speech from stdin until /quit."""
    controller = harness.controller
    view = ConsoleView()
    controller.subscribe(view.render)
    controller.on_notice(view.notify)

    commands: Dict[str, Callable[[], object]] = {
        "/rec": controller.toggle_record_and_transcribe,
        "/speak": controller.speak,
        "/call": controller.start_call,
        "/end": controller.end_call,
        "/history": lambda: print_history(controller.view()),
        "/reset": controller.reset,
        "/help": lambda: print(HELP),
    }

    print(HELP)
    if start_in_call:
        controller.start_call()

    while True:
        try:
            line = input().strip()
        except (KeyboardInterrupt, EOFError):
            print()
            break
        if not line:
            continue
        if line in {"/quit", "/exit"}:
            break
        if line.startswith("/"):
            action = commands.get(line.split()[0])
            if action is None:
                print(f"Unknown command '{line}'. Type /help.")
            else:
                action()
            continue

        feed = getattr(harness.capture, "feed", None)
        if feed is None:
            print("(audio mode: speak into the microphone)")
        elif not feed(line):
            print("(microphone closed: use /rec or /call first)")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the voice conversation loop (CLI harness).")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--mode",
        choices=["console", "audio"],
        help="Override VOICE_MODE (console/audio).",
    )
    parser.add_argument(
        "--cooldown",
        type=float,
        help="Override VOICE_COOLDOWN (seconds before listening again).",
    )
    parser.add_argument(
        "--call",
        action="store_true",
        help="Start directly in call mode.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    config = AppConfig.from_env()
    if args.mode:
        config.mode = args.mode
    if args.cooldown is not None:
        config.cooldown = args.cooldown
    config.validate()

    harness = build_harness(config)
    try:
        run_console(harness, start_in_call=args.call)
    finally:
        harness.close()


if __name__ == "__main__":
    main()

import builtins

import pytest

from voice_convo.cli import ConsoleView, build_harness, parse_args, run_console
from voice_convo.config import AppConfig
from voice_convo.exceptions import PermissionDenied
from voice_convo.models import Message, Mode, Notice, Role, SessionView
from voice_convo.services.console_capture import ConsoleCaptureSource


def _feed_input(monkeypatch, lines):
    it = iter(lines)

    def fake_input(prompt=""):
        try:
            return next(it)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr(builtins, "input", fake_input)


def test_console_harness_uses_console_backends():
    harness = build_harness(AppConfig())
    try:
        assert isinstance(harness.capture, ConsoleCaptureSource)
        assert harness.controller.mode is Mode.IDLE
    finally:
        harness.close()


def test_audio_mode_requires_piper_model(monkeypatch):
    from voice_convo.services import stt_whisper

    monkeypatch.setattr(stt_whisper, "_load_whisper", lambda size, device: object())
    with pytest.raises(RuntimeError, match="VOICE_PIPER_MODEL"):
        build_harness(AppConfig(mode="audio"))


def test_console_loop_handles_commands(monkeypatch, capsys):
    _feed_input(monkeypatch, ["/help", "hello", "/bogus", "/history", "/quit", "never read"])
    harness = build_harness(AppConfig())
    try:
        run_console(harness)
    finally:
        harness.close()

    out = capsys.readouterr().out
    assert "microphone closed" in out
    assert "Unknown command '/bogus'" in out
    assert "(no messages yet)" in out


def test_console_view_prints_new_messages_once(capsys):
    view = ConsoleView()
    history = (Message(Role.USER, "hi"), Message(Role.BOT, "hello"))
    snapshot = SessionView(Mode.CALL_SPEAKING, True, history, "", True, None)

    view.render(snapshot)
    view.render(snapshot)
    view.notify(Notice("recording", "denied", PermissionDenied("denied")))

    out = capsys.readouterr().out.splitlines()
    assert out == ["You: hi", "Bot: hello", "[call speaking]", "[error] recording: denied"]


def test_parse_args():
    args = parse_args(["--mode", "audio", "--cooldown", "2", "--call"])
    assert args.mode == "audio"
    assert args.cooldown == 2.0
    assert args.call is True

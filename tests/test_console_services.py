import pytest

from voice_convo.exceptions import NoActiveRecording, TranscriptionFailure
from voice_convo.models import RecordingHandle
from voice_convo.services.console_capture import ConsoleCaptureSource
from voice_convo.services.permission import GrantedPermission
from voice_convo.services.stt_echo import EchoTranscriber


def test_recording_collects_typed_lines():
    source = ConsoleCaptureSource()
    source.start()
    assert source.feed("hello")
    assert source.feed("  world ")
    handle = source.stop()

    assert handle.transcript_hint == "hello world"
    assert handle.sample_rate == 16000
    assert not source.recording


def test_stop_without_start():
    with pytest.raises(NoActiveRecording):
        ConsoleCaptureSource().stop()


def test_listening_emits_partial_then_final():
    source = ConsoleCaptureSource()
    events = []
    source.start_listening(events.append, lambda error: None)

    source.feed("turn on the light")

    assert [(e.text, e.is_final) for e in events] == [
        ("turn", False),
        ("turn on the light", True),
    ]


def test_single_word_emits_only_final():
    source = ConsoleCaptureSource()
    events = []
    source.start_listening(events.append, lambda error: None)
    source.feed("hi")
    assert [(e.text, e.is_final) for e in events] == [("hi", True)]


def test_start_listening_twice_keeps_first_callback():
    source = ConsoleCaptureSource()
    first, second = [], []
    source.start_listening(first.append, lambda error: None)
    source.start_listening(second.append, lambda error: None)
    source.feed("hi")
    assert len(first) == 1
    assert second == []


def test_feed_while_closed_is_rejected():
    source = ConsoleCaptureSource()
    assert source.feed("anyone?") is False

    source.start_listening(lambda event: None, lambda error: None)
    source.stop_listening()
    source.stop_listening()
    assert source.feed("anyone?") is False


def test_echo_transcriber_uses_hint():
    handle = RecordingHandle(data=b"", sample_rate=16000, started_at=0.0, transcript_hint="hello world")
    transcript = EchoTranscriber().transcribe(handle, language="en-US")
    assert transcript.text == "hello world"
    assert transcript.language == "en-US"


def test_echo_transcriber_needs_hint():
    handle = RecordingHandle(data=b"\x00\x00", sample_rate=16000, started_at=0.0)
    with pytest.raises(TranscriptionFailure):
        EchoTranscriber().transcribe(handle)


def test_granted_permission():
    assert GrantedPermission().request_microphone() is True

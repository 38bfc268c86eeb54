"""Deterministic collaborators for driving the controller in tests."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Callable, List, Optional

import pytest

from voice_convo.controller import ConversationController
from voice_convo.exceptions import NoActiveRecording
from voice_convo.models import RecognitionEvent, RecordingHandle, Transcript
from voice_convo.reply import TemplateReplyGenerator


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        """Run the callback regardless of cancellation, like a timer that already left the gate."""
        self.fired = True
        self.callback()


class FakeScheduler:
    """Manual clock: timers only fire from :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.pending, key=lambda t: t.due):
            if timer.due <= self.now and not timer.cancelled:
                timer.fire()


class DeferredExecutor(Executor):
    """Holds submitted work until the test runs it."""

    def __init__(self) -> None:
        self.jobs: List[tuple] = []

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> None:
        future, fn, args, kwargs = self.jobs.pop(0)
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    def run_all(self) -> None:
        while self.jobs:
            self.run_next()


class FakeCapture:
    def __init__(self) -> None:
        self.recording = False
        self.listening = False
        self.start_calls = 0
        self.listen_calls = 0
        self.stop_listen_calls = 0
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.listen_error: Optional[Exception] = None
        self.handle = RecordingHandle(data=b"\x00\x00" * 160, sample_rate=16000, started_at=0.0)
        self.spans: List[tuple] = []

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.recording = True

    def stop(self) -> RecordingHandle:
        if not self.recording:
            raise NoActiveRecording("not recording")
        self.recording = False
        if self.stop_error is not None:
            raise self.stop_error
        return self.handle

    def start_listening(self, on_event, on_error) -> None:
        self.listen_calls += 1
        if self.listen_error is not None:
            raise self.listen_error
        if self.listening:
            return
        self.listening = True
        self.spans.append((on_event, on_error))

    def stop_listening(self) -> None:
        if self.listening:
            self.stop_listen_calls += 1
            self.listening = False

    def say(self, text: str, *, final: bool = True) -> None:
        """Deliver an event through the callbacks of the current listening span."""
        assert self.listening, "recognizer is not running"
        on_event, _ = self.spans[-1]
        on_event(RecognitionEvent(text=text, is_final=final))

    def fail(self, error: Exception) -> None:
        _, on_error = self.spans[-1]
        on_error(error)


class FakeTranscriber:
    def __init__(self, text: str = "hello world") -> None:
        self.text = text
        self.error: Optional[Exception] = None
        self.calls: List[RecordingHandle] = []

    def transcribe(self, handle: RecordingHandle, *, language: Optional[str] = None) -> Transcript:
        self.calls.append(handle)
        if self.error is not None:
            raise self.error
        return Transcript(text=self.text, language=language)


class FakeSynthesizer:
    def __init__(self) -> None:
        self.spoken: List[str] = []
        self.callbacks: List[Callable] = []
        self.stops = 0
        self.error: Optional[Exception] = None

    def speak(self, text: str, on_done) -> None:
        if self.error is not None:
            raise self.error
        self.spoken.append(text)
        self.callbacks.append(on_done)

    def stop(self) -> None:
        self.stops += 1

    def finish(self, error=None) -> None:
        """Complete the most recent utterance."""
        self.callbacks[-1](error)


class FakePermission:
    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.requests = 0

    def request_microphone(self) -> bool:
        self.requests += 1
        return self.granted


@dataclass
class Rig:
    controller: ConversationController
    capture: FakeCapture
    transcriber: FakeTranscriber
    synthesizer: FakeSynthesizer
    permission: FakePermission
    scheduler: FakeScheduler
    executor: Executor

    def record(self) -> None:
        """Push-to-talk: start, stop and let the transcription finish."""
        self.controller.toggle_record_and_transcribe()
        self.controller.toggle_record_and_transcribe()
        self.executor.run_all()


REPLY = TemplateReplyGenerator()


@pytest.fixture
def make_rig():
    def factory(*, cooldown: float = 1.0, reply_generator=REPLY, executor: Optional[Executor] = None) -> Rig:
        capture = FakeCapture()
        transcriber = FakeTranscriber()
        synthesizer = FakeSynthesizer()
        permission = FakePermission()
        scheduler = FakeScheduler()
        executor = executor or DeferredExecutor()
        controller = ConversationController(
            capture=capture,
            transcriber=transcriber,
            reply_generator=reply_generator,
            synthesizer=synthesizer,
            permission=permission,
            scheduler=scheduler,
            executor=executor,
            cooldown=cooldown,
        )
        return Rig(controller, capture, transcriber, synthesizer, permission, scheduler, executor)

    return factory


@pytest.fixture
def rig(make_rig) -> Rig:
    return make_rig()

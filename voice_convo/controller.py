"""Core conversation state machine."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional, Sequence

from .exceptions import (
    NoActiveRecording,
    PermissionDenied,
    RecognizerError,
    SynthesisFailure,
    TranscriptionFailure,
    VoiceError,
)
from .interfaces import (
    AudioCaptureSource,
    MicrophonePermission,
    ReplyGenerator,
    Scheduler,
    SpeechSynthesizer,
    TimerHandle,
    Transcriber,
)
from .models import Message, Mode, Notice, RecognitionEvent, Role, SessionView, Transcript
from .scheduling import ThreadingScheduler, transcription_executor

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionView], None]
NoticeListener = Callable[[Notice], None]


def normalize_transcript(text: str) -> str:
    """Trim the transcript and collapse whitespace runs for display."""
    return " ".join(text.split())


@dataclass
class Session:
    """Mutable conversation state. Only :class:`ConversationController` writes to it."""

    mode: Mode = Mode.IDLE
    in_call: bool = False
    history: List[Message] = field(default_factory=list)
    transcript: str = ""
    playing_transcript: bool = False
    last_notice: Optional[Notice] = None

    def view(self) -> SessionView:
        return SessionView(
            mode=self.mode,
            in_call=self.in_call,
            history=tuple(self.history),
            transcript=self.transcript,
            speaking=self.playing_transcript or self.mode is Mode.CALL_SPEAKING,
            last_notice=self.last_notice,
        )


class ConversationController:
    """
    Sequences recording, transcription, replies and playback for one session.

    Every entry point (UI operations and backend callbacks alike) takes the same
    re-entrant lock, so callbacks delivered on backend threads are serialized
    with user actions. Asynchronous continuations carry a token (listening span,
    utterance or transcription job) that is compared with the live value when
    they fire; anything issued before the latest stop or restart is dropped.

    Usage:
        controller = ConversationController(
            capture=ConsoleCaptureSource(),
            transcriber=EchoTranscriber(),
            reply_generator=TemplateReplyGenerator(),
            synthesizer=ConsoleSpeechSynthesizer(),
            permission=GrantedPermission(),
            cooldown=1.0,
        )
        controller.start_call()
    """

    def __init__(
        self,
        *,
        capture: AudioCaptureSource,
        transcriber: Transcriber,
        reply_generator: ReplyGenerator,
        synthesizer: SpeechSynthesizer,
        permission: MicrophonePermission,
        scheduler: Optional[Scheduler] = None,
        executor: Optional[Executor] = None,
        cooldown: float = 1.0,
        language: Optional[str] = None,
    ) -> None:
        if cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        self._capture = capture
        self._transcriber = transcriber
        self._reply_generator = reply_generator
        self._synthesizer = synthesizer
        self._permission = permission
        self._scheduler = scheduler or ThreadingScheduler()
        self._owns_executor = executor is None
        self._executor = executor or transcription_executor()
        self._cooldown = cooldown
        self._language = language

        self._lock = threading.RLock()
        self._session = Session()
        self._listen_span = 0
        self._utterance = 0
        self._job = 0
        self._timer: Optional[TimerHandle] = None
        self._state_listeners: List[StateListener] = []
        self._notice_listeners: List[NoticeListener] = []

    # ------------------------------------------------------------------
    # Read-only projections

    @property
    def mode(self) -> Mode:
        return self._session.mode

    @property
    def in_call(self) -> bool:
        return self._session.in_call

    @property
    def transcript(self) -> str:
        return self._session.transcript

    @property
    def history(self) -> Sequence[Message]:
        """Messages appended so far, oldest first."""
        with self._lock:
            return tuple(self._session.history)

    def view(self) -> SessionView:
        with self._lock:
            return self._session.view()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for state snapshots; returns an unsubscribe function."""
        with self._lock:
            self._state_listeners.append(listener)
        return partial(self._remove_listener, self._state_listeners, listener)

    def on_notice(self, listener: NoticeListener) -> Callable[[], None]:
        """Register ``listener`` for recovered errors; returns an unsubscribe function."""
        with self._lock:
            self._notice_listeners.append(listener)
        return partial(self._remove_listener, self._notice_listeners, listener)

    # ------------------------------------------------------------------
    # Manual mode

    def toggle_record_and_transcribe(self) -> Mode:
        """
        Start recording when idle, or stop and transcribe when recording.

        Ignored while a transcription is pending or a call is active.

        Returns:
            The mode after the toggle.
        """
        with self._lock:
            mode = self._session.mode
            if mode is Mode.IDLE:
                self._start_recording()
            elif mode is Mode.MANUAL_RECORDING:
                self._stop_recording()
            else:
                logger.debug("Toggle ignored while %s", mode.value)
                return mode
            self._publish()
            return self._session.mode

    def speak(self) -> bool:
        """
        Speak the current transcript, replacing any playback already running.

        Returns:
            True when playback started.
        """
        with self._lock:
            text = self._session.transcript
            if not text:
                return False
            if self._session.mode is not Mode.IDLE:
                logger.debug("speak ignored while %s", self._session.mode.value)
                return False

            self._synthesizer.stop()
            self._utterance += 1
            self._session.playing_transcript = True
            try:
                self._synthesizer.speak(text, partial(self._on_speech_done, self._utterance))
            except SynthesisFailure as exc:
                self._session.playing_transcript = False
                self._report("synthesis", exc)
            self._publish()
            return self._session.playing_transcript

    def stop_speaking(self) -> None:
        """Cancel manual playback of the transcript."""
        with self._lock:
            if self._stop_playback():
                self._publish()

    # ------------------------------------------------------------------
    # Call mode

    def start_call(self) -> bool:
        """
        Enter call mode and start listening.

        Returns:
            True when the call is running.
        """
        with self._lock:
            if self._session.in_call or self._session.mode is not Mode.IDLE:
                logger.debug("start_call ignored while %s", self._session.mode.value)
                return self._session.in_call
            if not self._permission.request_microphone():
                self._report("recognition", PermissionDenied("Microphone permission denied."))
                self._publish()
                return False

            self._stop_playback()
            self._session.in_call = True
            logger.info("Call started")
            self._begin_listening()
            self._publish()
            return self._session.in_call

    def end_call(self) -> None:
        """Leave call mode from any call state. Safe to call repeatedly."""
        with self._lock:
            if not self._session.in_call and not self._session.mode.is_call:
                logger.debug("end_call ignored: no call in progress")
                return
            self._capture.stop_listening()
            self._synthesizer.stop()
            self._cancel_timer()
            self._listen_span += 1
            self._utterance += 1
            self._session.in_call = False
            self._set_mode(Mode.IDLE)
            logger.info("Call ended")
            self._publish()

    # ------------------------------------------------------------------
    # Lifecycle

    def reset(self) -> None:
        """Abandon any activity and clear the transcript and history."""
        with self._lock:
            self.end_call()
            if self._session.mode is Mode.MANUAL_RECORDING:
                try:
                    self._capture.stop()
                except NoActiveRecording:
                    logger.debug("Recorder already stopped during reset")
            self._job += 1
            self._stop_playback()
            self._session.history.clear()
            self._session.transcript = ""
            self._session.last_notice = None
            self._set_mode(Mode.IDLE)
            self._publish()

    def close(self) -> None:
        """End any call, stop playback and release the transcription worker."""
        with self._lock:
            self.end_call()
            self._stop_playback()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Manual mode transitions

    def _start_recording(self) -> None:
        if not self._permission.request_microphone():
            self._report("recording", PermissionDenied("Microphone permission denied."))
            return
        self._stop_playback()
        try:
            self._capture.start()
        except VoiceError as exc:
            self._report("recording", exc)
            return
        self._set_mode(Mode.MANUAL_RECORDING)

    def _stop_recording(self) -> None:
        try:
            handle = self._capture.stop()
        except VoiceError as exc:
            self._set_mode(Mode.IDLE)
            self._report("recording", exc)
            return

        self._job += 1
        job = self._job
        self._set_mode(Mode.MANUAL_TRANSCRIBING)
        try:
            future = self._executor.submit(self._transcriber.transcribe, handle, language=self._language)
        except RuntimeError as exc:
            # Executor already shut down by close().
            self._set_mode(Mode.IDLE)
            self._report("transcription", TranscriptionFailure(f"Transcription worker unavailable: {exc}"))
            return
        future.add_done_callback(partial(self._on_transcribed, job))

    def _on_transcribed(self, job: int, future: "Future[Transcript]") -> None:
        with self._lock:
            if job != self._job or self._session.mode is not Mode.MANUAL_TRANSCRIBING:
                logger.debug("Discarding stale transcription result (job %d)", job)
                return
            self._set_mode(Mode.IDLE)
            try:
                transcript = future.result()
            except TranscriptionFailure as exc:
                self._report("transcription", exc)
            except Exception as exc:
                logger.exception("Transcriber raised an unexpected error")
                self._report("transcription", TranscriptionFailure(str(exc) or type(exc).__name__))
            else:
                self._session.transcript = normalize_transcript(transcript.text)
                logger.info("Transcript ready: %r", self._session.transcript)
            self._publish()

    # ------------------------------------------------------------------
    # Call mode transitions

    def _begin_listening(self) -> None:
        self._listen_span += 1
        span = self._listen_span
        self._set_mode(Mode.CALL_LISTENING)
        try:
            self._capture.start_listening(
                partial(self._on_recognition, span),
                partial(self._on_recognizer_error, span),
            )
        except VoiceError as exc:
            # No automatic retry: the user has to start a new call.
            self._listen_span += 1
            self._session.in_call = False
            self._set_mode(Mode.IDLE)
            self._report("recognition", exc)

    def _on_recognition(self, span: int, event: RecognitionEvent) -> None:
        with self._lock:
            if span != self._listen_span or self._session.mode is not Mode.CALL_LISTENING:
                logger.debug("Discarding stale recognition event %r", event)
                return
            if not event.is_final:
                logger.debug("Partial result: %r", event.text)
                return
            text = event.text.strip()
            if not text:
                return
            self._respond(text)
            self._publish()

    def _respond(self, text: str) -> None:
        self._capture.stop_listening()
        self._listen_span += 1
        try:
            reply = self._reply_generator.generate(text)
        except Exception as exc:
            logger.exception("Reply generator failed for %r", text)
            self._report("reply", VoiceError(f"Reply generation failed: {exc}"))
            self._begin_listening()
            return

        self._session.history.append(Message(Role.USER, text))
        self._session.history.append(Message(Role.BOT, reply))
        logger.info("User: %s | Bot: %s", text, reply)

        self._utterance += 1
        self._set_mode(Mode.CALL_SPEAKING)
        try:
            self._synthesizer.speak(reply, partial(self._on_speech_done, self._utterance))
        except SynthesisFailure as exc:
            self._report("synthesis", exc)
            self._begin_listening()

    def _on_recognizer_error(self, span: int, error: RecognizerError) -> None:
        with self._lock:
            if span != self._listen_span or self._session.mode is not Mode.CALL_LISTENING:
                logger.debug("Discarding recognizer error from closed span: %s", error)
                return
            self._report("recognition", error)
            self._capture.stop_listening()
            self._listen_span += 1
            self._cancel_timer()
            self._timer = self._scheduler.call_later(
                self._cooldown, partial(self._on_relisten_due, self._listen_span)
            )
            self._publish()

    def _on_relisten_due(self, span: int) -> None:
        with self._lock:
            if not self._session.in_call or span != self._listen_span:
                logger.debug("Skipping listening restart: call ended or span superseded")
                return
            self._timer = None
            self._begin_listening()
            self._publish()

    def _on_speech_done(self, utterance: int, error: Optional[SynthesisFailure]) -> None:
        with self._lock:
            if utterance != self._utterance:
                logger.debug("Discarding completion of superseded utterance %d", utterance)
                return
            if self._session.playing_transcript:
                self._session.playing_transcript = False
                if error is not None:
                    self._report("synthesis", error)
                self._publish()
                return
            if self._session.mode is not Mode.CALL_SPEAKING or not self._session.in_call:
                logger.debug("Discarding completion outside of a call")
                return

            if error is not None:
                self._report("synthesis", error)
            self._set_mode(Mode.CALL_COOLING_DOWN)
            self._timer = self._scheduler.call_later(
                self._cooldown, partial(self._on_cooldown_elapsed, utterance)
            )
            self._publish()

    def _on_cooldown_elapsed(self, utterance: int) -> None:
        with self._lock:
            if utterance != self._utterance or self._session.mode is not Mode.CALL_COOLING_DOWN:
                logger.debug("Discarding cool-down expiry for utterance %d", utterance)
                return
            self._timer = None
            if self._session.in_call:
                self._begin_listening()
            else:
                self._set_mode(Mode.IDLE)
            self._publish()

    # ------------------------------------------------------------------
    # Helpers

    def _stop_playback(self) -> bool:
        if not self._session.playing_transcript:
            return False
        self._synthesizer.stop()
        self._utterance += 1
        self._session.playing_transcript = False
        return True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_mode(self, mode: Mode) -> None:
        if mode is not self._session.mode:
            logger.debug("%s -> %s", self._session.mode.value, mode.value)
            self._session.mode = mode

    def _report(self, kind: str, error: VoiceError) -> None:
        notice = Notice(kind=kind, message=str(error) or type(error).__name__, error=error)
        self._session.last_notice = notice
        logger.warning("%s error: %s", kind.capitalize(), notice.message)
        for listener in list(self._notice_listeners):
            listener(notice)

    def _publish(self) -> None:
        view = self._session.view()
        for listener in list(self._state_listeners):
            listener(view)

    def _remove_listener(self, listeners: list, listener: Callable) -> None:
        with self._lock:
            if listener in listeners:
                listeners.remove(listener)

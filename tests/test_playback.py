import threading
import time

import pytest

from voice_convo.exceptions import SynthesisFailure
from voice_convo.services.playback import BackgroundSynthesizer
from voice_convo.services.tts_console import ConsoleSpeechSynthesizer


class GatedSynthesizer(BackgroundSynthesizer):
    """Renders until the test opens the gate or the utterance is cancelled."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()
        self.rendered = []
        self.error = None
        self.interrupts = 0

    def render(self, text, cancel):
        self.rendered.append(text)
        while not (self.gate.is_set() or cancel.is_set()):
            time.sleep(0.005)
        if self.error is not None:
            raise self.error

    def interrupt(self):
        self.interrupts += 1


def _collector():
    results = []
    done = threading.Event()

    def make(label):
        def on_done(error):
            results.append((label, error))
            done.set()

        return on_done

    return results, done, make


def test_completion_fires_once():
    synth = GatedSynthesizer()
    results, done, make = _collector()

    synth.speak("hello", make("a"))
    assert synth.speaking
    synth.gate.set()
    assert done.wait(2)
    synth.join(2)

    assert results == [("a", None)]
    assert not synth.speaking


def test_stop_suppresses_completion():
    synth = GatedSynthesizer()
    results, _, make = _collector()

    synth.speak("hello", make("a"))
    synth.stop()
    synth.join(2)

    assert results == []
    assert synth.interrupts == 1
    assert not synth.speaking


def test_stop_when_idle_is_noop():
    synth = GatedSynthesizer()
    synth.stop()
    assert synth.interrupts == 0


def test_latest_speak_wins():
    synth = GatedSynthesizer()
    results, done, make = _collector()

    synth.speak("first", make("first"))
    first_worker = synth._worker
    synth.speak("second", make("second"))
    first_worker.join(2)
    synth.gate.set()
    assert done.wait(2)
    synth.join(2)

    assert results == [("second", None)]
    assert synth.interrupts == 1


@pytest.mark.parametrize(
    "error, expected_message",
    [
        (SynthesisFailure("voice missing"), "voice missing"),
        (OSError("device gone"), "device gone"),
    ],
)
def test_render_errors_are_reported_as_synthesis_failures(error, expected_message):
    synth = GatedSynthesizer()
    synth.error = error
    synth.gate.set()
    results, done, make = _collector()

    synth.speak("hello", make("a"))
    assert done.wait(2)

    (label, reported), = results
    assert isinstance(reported, SynthesisFailure)
    assert str(reported) == expected_message


def test_console_synthesizer_prints_and_completes(capsys):
    synth = ConsoleSpeechSynthesizer(words_per_second=1000)
    results, done, make = _collector()

    synth.speak("turn on the light", make("a"))
    assert done.wait(2)
    synth.join(2)

    assert capsys.readouterr().out == "[speaking] turn on the light\n"
    assert results == [("a", None)]


def test_console_duration_scales_with_rate():
    slow = ConsoleSpeechSynthesizer(speech_rate=0.5, words_per_second=2)
    fast = ConsoleSpeechSynthesizer(speech_rate=2.0, words_per_second=2)
    assert slow.duration_for("one two three four") == pytest.approx(4.0)
    assert fast.duration_for("one two three four") == pytest.approx(1.0)

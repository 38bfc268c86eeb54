import threading

from voice_convo.scheduling import ThreadingScheduler


def test_callback_fires():
    fired = threading.Event()
    ThreadingScheduler().call_later(0.01, fired.set)
    assert fired.wait(2)


def test_cancelled_callback_does_not_fire():
    fired = threading.Event()
    handle = ThreadingScheduler().call_later(0.2, fired.set)
    handle.cancel()
    assert not fired.wait(0.4)

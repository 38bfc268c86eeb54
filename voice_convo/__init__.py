"""
Voice conversation orchestrator.

This package coordinates microphone capture, speech-to-text, a reply step and
text-to-speech playback into one conversational loop, in either push-to-talk
or continuous call mode. The default entrypoint for local experiments is
``python -m voice_convo``.
"""

__all__ = [
    "config",
    "controller",
    "interfaces",
    "models",
    "reply",
]

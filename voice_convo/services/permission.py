"""Microphone permission checks."""

from __future__ import annotations

import logging

from ..interfaces import MicrophonePermission

logger = logging.getLogger(__name__)


class GrantedPermission(MicrophonePermission):
    """Always grants access; used by the console harness."""

    def request_microphone(self) -> bool:
        return True


class SoundDevicePermission(MicrophonePermission):
    """
    Grants access when PortAudio exposes a default input device.

    Desktop platforms have no runtime permission prompt for PortAudio, so a
    missing or blocked device is the closest equivalent of a denial.
    """

    def request_microphone(self) -> bool:
        try:
            import sounddevice as sd  # type: ignore
        except (ImportError, OSError) as exc:
            logger.warning("sounddevice unavailable: %s", exc)
            return False
        try:
            device = sd.query_devices(kind="input")
        except (sd.PortAudioError, ValueError) as exc:
            logger.warning("No usable input device: %s", exc)
            return False
        logger.debug("Using input device %s", device.get("name"))
        return True

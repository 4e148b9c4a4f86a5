"""TTS modes: one per provider the gateway can dispatch to."""
from __future__ import annotations

from enum import Enum


class TTSMode(str, Enum):
    """
    Closed set of synthesis modes.

    The value is the name clients send in the ``mode`` query parameter and
    the label used in logs and metrics.
    """
    GTTS = "gTTS"
    ESPEAK = "eSpeak"
    POLLY = "Polly"
    GCLOUD = "gCloud"

    def __str__(self) -> str:
        return self.value

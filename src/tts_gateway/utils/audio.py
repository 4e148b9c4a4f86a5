"""
Audio Duration Estimates.

Backends that return a container soundfile can parse (MP3 from gTTS, WAV
from eSpeak) enforce a caller's max_length by reading the duration from
the stream headers. No samples are decoded into memory.

Estimates fail open: audio that cannot be parsed is reported as having no
known duration and is accepted by the length check.

Dependencies:
    - soundfile: libsndfile bindings (MP3 support needs libsndfile >= 1.1)
"""
from __future__ import annotations

import io
from typing import Optional

import soundfile as sf

from tts_gateway.core.logging import debug, get_logger

_LOG = get_logger("tts-gateway.audio")


def audio_duration_seconds(audio: bytes) -> Optional[float]:
    """
    Duration of an encoded audio file in seconds.

    Returns:
        Duration, or None if the bytes are not a format libsndfile reads.
    """
    if not audio:
        return None
    try:
        info = sf.info(io.BytesIO(audio))
    except (RuntimeError, ValueError, TypeError) as e:
        debug(_LOG, "duration_unknown", bytes=len(audio), error=str(e))
        return None
    return float(info.duration)


def within_length(audio: bytes, limit_seconds: float) -> bool:
    """
    True if the audio is shorter than limit_seconds, or its length is unknown.
    """
    duration = audio_duration_seconds(audio)
    if duration is None:
        return True
    return duration < limit_seconds

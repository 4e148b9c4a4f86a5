"""
Request Validation Against a Backend's Capabilities.

The dispatcher runs these in a fixed order; the first failure ends the
request:

    1. check_speaking_rate - rate above the backend maximum
    2. check_voice         - voice unknown to the backend
    3. check_length        - audio longer than max_length (after cache
                             lookup or synthesis, for both alike)

Usage:
    check_speaking_rate(backend, request.speaking_rate)
    await check_voice(backend, request.voice)
    ...
    check_length(backend, audio, request.max_length)
"""
from __future__ import annotations

from typing import Optional

from tts_gateway.core.logging import get_logger, verbose
from tts_gateway.services.errors import (
    AudioTooLong,
    BackendError,
    BackendUnavailable,
    InvalidSpeakingRate,
    UnknownVoice,
)
from tts_gateway.tts.backend import BaseBackend

_LOG = get_logger("tts-gateway.validators")


def check_speaking_rate(backend: BaseBackend, speaking_rate: Optional[float]) -> None:
    """
    Reject a rate above the backend's maximum. Equal to the maximum is fine.

    Raises:
        InvalidSpeakingRate: rate > backend.max_speaking_rate().
    """
    if speaking_rate is None:
        return
    max_rate = backend.max_speaking_rate()
    if max_rate is not None and speaking_rate > max_rate:
        verbose(_LOG, "rate_rejected", mode=backend.name, rate=speaking_rate, max=max_rate)
        raise InvalidSpeakingRate(speaking_rate)


async def check_voice(backend: BaseBackend, voice: str) -> None:
    """
    Reject a voice the backend doesn't know.

    Raises:
        UnknownVoice: The backend answered and the voice isn't there.
        BackendUnavailable: The backend's voice catalogue couldn't be read.
    """
    try:
        valid = await backend.is_valid_voice(voice)
    except BackendUnavailable:
        raise
    except BackendError as e:
        raise BackendUnavailable(e.provider, e.cause) from e

    if not valid:
        verbose(_LOG, "voice_rejected", mode=backend.name, voice=voice)
        raise UnknownVoice(voice)


def check_length(backend: BaseBackend, audio: bytes, max_length: Optional[int]) -> None:
    """
    Reject audio longer than max_length seconds, when a limit was given.

    Raises:
        AudioTooLong: backend.check_length() returned False.
    """
    if max_length is None:
        return
    if not backend.check_length(audio, max_length):
        verbose(_LOG, "length_rejected", mode=backend.name, max_length=max_length, bytes=len(audio))
        raise AudioTooLong(max_length)

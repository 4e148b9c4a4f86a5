"""
tts-gateway Services Layer.

This package provides the business logic between the API layer and the
backends:
    - dispatcher.py: Gateway (dispatch pipeline) and SynthesisRequest
    - validators.py: Rate, voice and length checks
    - errors.py: Error taxonomy with numeric codes and HTTP statuses

errors.py is imported by the lower layers (cache, backends), so the
dispatcher is exposed lazily to keep imports acyclic.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import (
    AudioTooLong,
    BackendError,
    BackendUnavailable,
    CacheUnavailable,
    CredentialError,
    ErrorCode,
    GatewayError,
    InvalidRequest,
    InvalidSpeakingRate,
    Unauthorized,
    UnknownVoice,
)


def __getattr__(name: str):
    if name in ("Gateway", "SynthesisRequest", "DispatchResult", "get_gateway", "reset_gateway"):
        from tts_gateway.services import dispatcher
        return getattr(dispatcher, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if TYPE_CHECKING:
    from tts_gateway.services.dispatcher import (
        DispatchResult,
        Gateway,
        SynthesisRequest,
        get_gateway,
        reset_gateway,
    )

__all__ = [
    "Gateway",
    "SynthesisRequest",
    "DispatchResult",
    "get_gateway",
    "reset_gateway",
    "GatewayError",
    "UnknownVoice",
    "AudioTooLong",
    "InvalidSpeakingRate",
    "InvalidRequest",
    "Unauthorized",
    "BackendError",
    "BackendUnavailable",
    "CredentialError",
    "CacheUnavailable",
    "ErrorCode",
]

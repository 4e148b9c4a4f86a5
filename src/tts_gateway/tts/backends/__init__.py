"""
Provider Adapters.

Each module wraps one provider behind BaseBackend:
    - gtts_backend.py: GTTSBackend (Google Translate web TTS)
    - espeak_backend.py: ESpeakBackend (local espeak binary)
    - polly_backend.py: PollyBackend (Amazon Polly, aioboto3)
    - gcloud_backend.py: GCloudBackend (Google Cloud TTS, signed JWT)
"""
from __future__ import annotations

from typing import TYPE_CHECKING

# Lazy imports so that unused providers (and aioboto3) are only loaded
# when their class is first accessed.


def __getattr__(name: str):
    if name == "GTTSBackend":
        from tts_gateway.tts.backends.gtts_backend import GTTSBackend
        return GTTSBackend
    if name == "ESpeakBackend":
        from tts_gateway.tts.backends.espeak_backend import ESpeakBackend
        return ESpeakBackend
    if name == "PollyBackend":
        from tts_gateway.tts.backends.polly_backend import PollyBackend
        return PollyBackend
    if name == "GCloudBackend":
        from tts_gateway.tts.backends.gcloud_backend import GCloudBackend
        return GCloudBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if TYPE_CHECKING:
    from tts_gateway.tts.backends.espeak_backend import ESpeakBackend
    from tts_gateway.tts.backends.gcloud_backend import GCloudBackend
    from tts_gateway.tts.backends.gtts_backend import GTTSBackend
    from tts_gateway.tts.backends.polly_backend import PollyBackend

__all__ = ["GTTSBackend", "ESpeakBackend", "PollyBackend", "GCloudBackend"]

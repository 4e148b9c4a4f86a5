"""
tts-gateway: One HTTP API in front of several Text-to-Speech backends.

The gateway accepts a single request shape (mode, text, voice and optional
parameters), validates it uniformly, dispatches it to the selected backend,
optionally caches the resulting audio encrypted at rest, and returns the raw
audio bytes.

Supported Modes:
    - gTTS: Google Translate's free web TTS endpoint (MP3)
    - eSpeak: Local espeak synthesizer (WAV)
    - Polly: Amazon Polly (OGG Vorbis / MP3 / PCM)
    - gCloud: Google Cloud Text-to-Speech (OGG Opus / MP3 / WAV)

Key Features:
    - Uniform validation: speaking-rate bounds, voice existence, max length
    - Optional Redis or in-memory cache, Fernet-encrypted entries
    - Lazily refreshed, single-flight service account tokens for gCloud
    - Prometheus metrics and structured logging

Example Usage:
    >>> from tts_gateway.core.config import Settings
    >>> from tts_gateway.services import Gateway, SynthesisRequest
    >>> from tts_gateway.tts.modes import TTSMode
    >>>
    >>> gateway = Gateway.from_settings(Settings(raw={}))
    >>> result = await gateway.dispatch(
    ...     SynthesisRequest(text="Hello", mode=TTSMode.GTTS, voice="en")
    ... )
    >>> result.content_type
    'audio/mpeg'
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

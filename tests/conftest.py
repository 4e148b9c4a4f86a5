"""Shared fixtures: fake backends and stores for driving the Gateway without providers."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from cryptography.fernet import Fernet

from tts_gateway.services.errors import CacheUnavailable
from tts_gateway.tts.backend import BaseBackend, SynthResult, VoiceDescriptor
from tts_gateway.tts.modes import TTSMode

_ENV_VARS = (
    "AUTH_KEY",
    "BIND_ADDR",
    "REDIS_URI",
    "CACHE_KEY",
    "LOG_LEVEL",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_PROFILE",
    "TTS_GATEWAY_SETTINGS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class FakeBackend(BaseBackend):
    """
    In-memory backend that counts calls.

    Audio is ``b"audio:" + text``; set ``fail_with`` to make synthesize()
    raise, ``delay`` to make it yield to the event loop first.
    """

    mode = TTSMode.GCLOUD
    max_rate = 4.0
    default_content_type = "audio/ogg"

    def __init__(
        self,
        mode: TTSMode = TTSMode.GCLOUD,
        voices: Optional[List[str]] = None,
        max_rate: Optional[float] = 4.0,
        length_ok: bool = True,
    ):
        self.mode = mode
        self.max_rate = max_rate
        super().__init__()
        self.voices = voices if voices is not None else ["en-US A", "de-DE B"]
        self.length_ok = length_ok
        self.fail_with: Optional[BaseException] = None
        self.voice_error: Optional[BaseException] = None
        self.delay = 0.0
        self.synth_calls = 0
        self.voice_calls = 0
        self.length_limits: List[int] = []

    async def list_voices(self) -> List[VoiceDescriptor]:
        return [VoiceDescriptor(name=v, language=v.partition(" ")[0]) for v in self.voices]

    async def list_raw_voices(self) -> List[Dict[str, Any]]:
        return [{"id": v} for v in self.voices]

    async def is_valid_voice(self, voice: str) -> bool:
        self.voice_calls += 1
        if self.voice_error is not None:
            raise self.voice_error
        return voice in self.voices

    async def synthesize(self, text, voice, speaking_rate=None, preferred_format=None) -> SynthResult:
        self.synth_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return SynthResult(audio=b"audio:" + text.encode("utf-8"), content_type=self.content_type(preferred_format))

    def check_length(self, audio: bytes, limit_seconds: int) -> bool:
        self.length_limits.append(limit_seconds)
        return self.length_ok

    def content_type(self, preferred_format=None) -> str:
        return "audio/mpeg" if preferred_format == "mp3" else self.default_content_type


class FakeStore:
    """Dict-backed key-value store that can be told to fail."""

    name = "fake"

    def __init__(self):
        self.data: Dict[bytes, bytes] = {}
        self.fail_get = False
        self.fail_set = False
        self.gets = 0
        self.sets = 0
        self.closed = False

    async def get(self, key: bytes) -> Optional[bytes]:
        self.gets += 1
        if self.fail_get:
            raise CacheUnavailable(ConnectionError("store down"))
        return self.data.get(key)

    async def set(self, key: bytes, value: bytes) -> None:
        self.sets += 1
        if self.fail_set:
            raise CacheUnavailable(ConnectionError("store down"))
        self.data[key] = value

    async def aclose(self) -> None:
        self.closed = True

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self.data)}


@pytest.fixture
def fernet_key() -> str:
    return Fernet.generate_key().decode("ascii")


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def audio_cache(fake_store, fernet_key):
    from tts_gateway.tts.cache import AudioCache, FernetCipher

    return AudioCache(fake_store, FernetCipher(fernet_key))


@pytest.fixture
def gateway(fake_backend, audio_cache):
    from tts_gateway.services.dispatcher import Gateway
    from tts_gateway.tts.backend import BackendRegistry

    return Gateway(BackendRegistry([fake_backend]), audio_cache)

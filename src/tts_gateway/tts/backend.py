"""
Backend Base Class and Registry.

This module provides:
    - VoiceDescriptor: Normalized voice record returned by /voices
    - SynthResult: Audio bytes plus content type from one provider call
    - BaseBackend: Capability set every provider adapter implements
    - BackendRegistry: TTSMode -> backend mapping built once at startup
    - build_registry(): Registry factory from a GatewayConfig

Backends:
    - gTTS: Google Translate web TTS (free, MP3)
    - eSpeak: local espeak binary (WAV)
    - Polly: Amazon Polly (OGG Vorbis, MP3 or PCM)
    - gCloud: Google Cloud Text-to-Speech (OGG Opus, MP3 or LINEAR16)

Availability:
    A provider whose requirements are not met (disabled, no credentials,
    binary not on PATH) is left out of the registry. Requests for it are
    answered with BackendUnavailable.

Implementing a New Backend:
    1. Create backends/<name>_backend.py
    2. Inherit from BaseBackend, set ``mode``
    3. Implement list_voices(), is_valid_voice() and synthesize()
    4. Register it in build_registry()
"""
from __future__ import annotations

import shutil
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional

import httpx

from tts_gateway.core.config import GatewayConfig
from tts_gateway.core.logging import error, get_logger, info, warn
from tts_gateway.services.errors import BackendUnavailable, CredentialError
from tts_gateway.tts.modes import TTSMode

_LOG = get_logger("tts-gateway.backend")


@dataclass(frozen=True)
class VoiceDescriptor:
    """
    Normalized voice record.

    Attributes:
        name: Value to pass as ``lang`` in a /tts request.
        language: Language code or display name, when the provider has one.
    """
    name: str
    language: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SynthResult:
    """
    Result of a provider call.

    Attributes:
        audio: Encoded audio bytes.
        content_type: MIME type of ``audio``.
    """
    audio: bytes
    content_type: str


class BaseBackend:
    """
    Base class for provider adapters.

    Subclasses must implement list_voices(), is_valid_voice() and
    synthesize(). Every method that talks to a provider raises
    BackendError (or BackendUnavailable) on failure, never a transport
    exception. Nothing here retries.

    Attributes:
        mode: TTSMode served by this backend.
        max_rate: Upper bound for speaking_rate, None if unconstrained.
        default_content_type: Content type when no format is requested.
    """
    mode: TTSMode
    max_rate: Optional[float] = None
    default_content_type: str = "application/octet-stream"

    def __init__(self):
        self.logger = get_logger(f"tts-gateway.backend.{self.mode.value}")

    @property
    def name(self) -> str:
        return self.mode.value

    async def list_voices(self) -> List[VoiceDescriptor]:
        raise NotImplementedError

    async def list_raw_voices(self) -> Any:
        """Provider-native voice records. Defaults to the normalized names."""
        return [v.name for v in await self.list_voices()]

    async def is_valid_voice(self, voice: str) -> bool:
        raise NotImplementedError

    def max_speaking_rate(self) -> Optional[float]:
        return self.max_rate

    async def synthesize(
        self,
        text: str,
        voice: str,
        speaking_rate: Optional[float] = None,
        preferred_format: Optional[str] = None,
    ) -> SynthResult:
        raise NotImplementedError

    def check_length(self, audio: bytes, limit_seconds: int) -> bool:
        """
        True if audio is within limit_seconds.

        Backends whose output duration can't be read cheaply accept
        everything.
        """
        return True

    def content_type(self, preferred_format: Optional[str] = None) -> str:
        """Content type that a synthesis with this format produces."""
        return self.default_content_type

    async def aclose(self) -> None:
        pass


class BackendRegistry:
    """
    Immutable TTSMode -> backend mapping.

    Example:
        registry = BackendRegistry([GTTSBackend(client)])
        backend = registry.get(TTSMode.GTTS)
    """

    def __init__(self, backends: Optional[List[BaseBackend]] = None):
        self._backends: Dict[TTSMode, BaseBackend] = {}
        for backend in backends or []:
            self._backends[backend.mode] = backend

    def get(self, mode: TTSMode) -> BaseBackend:
        """
        Raises:
            BackendUnavailable: No backend configured for this mode.
        """
        backend = self._backends.get(TTSMode(mode))
        if backend is None:
            raise BackendUnavailable(str(TTSMode(mode)), "mode not configured")
        return backend

    def modes(self) -> List[TTSMode]:
        """Configured modes, in TTSMode declaration order."""
        return [m for m in TTSMode if m in self._backends]

    def __contains__(self, mode: object) -> bool:
        try:
            return TTSMode(mode) in self._backends
        except ValueError:
            return False

    def __iter__(self) -> Iterator[BaseBackend]:
        return iter(self._backends.values())

    def __len__(self) -> int:
        return len(self._backends)

    async def aclose(self) -> None:
        for backend in self._backends.values():
            await backend.aclose()


def build_registry(config: GatewayConfig, http_client: httpx.AsyncClient) -> BackendRegistry:
    """
    Create the backends the configuration makes available.

    Uses lazy imports so that, for example, aioboto3 is only imported when
    Polly is enabled.

    Args:
        config: Validated gateway configuration.
        http_client: Shared client for the HTTP-based providers.
    """
    b = config.backends
    backends: List[BaseBackend] = []

    if b.gtts_enabled:
        from tts_gateway.tts.backends.gtts_backend import GTTSBackend
        backends.append(GTTSBackend(http_client, max_chunk_chars=b.gtts_max_chunk_chars))

    if b.espeak_enabled:
        binary = shutil.which(b.espeak_binary)
        if binary:
            from tts_gateway.tts.backends.espeak_backend import ESpeakBackend
            backends.append(ESpeakBackend(binary=binary))
        else:
            warn(_LOG, "backend_omitted", mode="eSpeak", reason=f"{b.espeak_binary} not on PATH")

    if b.polly_enabled:
        from tts_gateway.tts.backends.polly_backend import PollyBackend
        backends.append(PollyBackend(region=b.polly_region, engine=b.polly_engine))

    if b.gcloud_credentials:
        from tts_gateway.tts.backends.gcloud_backend import GCloudBackend
        from tts_gateway.tts.credentials import CredentialManager, ServiceAccountKey
        try:
            key = ServiceAccountKey.from_file(b.gcloud_credentials)
        except CredentialError as e:
            error(_LOG, "backend_omitted", mode="gCloud", reason=e.message)
        else:
            creds = CredentialManager(key, lease_seconds=config.credentials.lease_seconds)
            backends.append(GCloudBackend(http_client, creds))

    registry = BackendRegistry(backends)
    info(_LOG, "backends_ready", modes=",".join(m.value for m in registry.modes()))
    return registry

"""
Gateway: Request Dispatch Across TTS Backends.

This module provides the Gateway class, the single entry point the HTTP
layer and the CLI use for synthesis and voice listing. It encapsulates:
    - Backend registry: TTSMode -> provider adapter
    - Validation: speaking rate and voice, before any audio work
    - Cache: encrypted lookup, and best-effort store after a miss
    - Length check: applied to cached and fresh audio alike

Pipeline (fixed order, first failure ends the request):
    1. Validate speaking rate       -> InvalidSpeakingRate
    2. Validate voice               -> UnknownVoice / BackendUnavailable
    3. Cache lookup                 -> hit: go to 5
    4. Synthesize, then store       -> BackendError (store never fails)
    5. Validate length              -> AudioTooLong
    6. Return audio + content type

Concurrent identical misses:
    By default two identical requests that both miss will both synthesize
    and both store. With ``cache.coalesce`` they share one provider call
    through a per-fingerprint SingleFlight.

Usage:
    gateway = Gateway.from_settings(load_settings())
    result = await gateway.dispatch(
        SynthesisRequest(text="Hello", mode=TTSMode.GTTS, voice="en")
    )
    await gateway.aclose()
"""
from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional, Set

import httpx

from tts_gateway.core.config import Defaults, GatewayConfig, Settings
from tts_gateway.core.logging import error, get_logger, info, success, verbose
from tts_gateway.core.metrics import metrics
from tts_gateway.services.errors import BackendError, GatewayError
from tts_gateway.services.validators import check_length, check_speaking_rate, check_voice
from tts_gateway.tts.backend import BackendRegistry, BaseBackend, SynthResult, build_registry
from tts_gateway.tts.cache import AudioCache, build_cache, fingerprint
from tts_gateway.tts.concurrency import SingleFlight
from tts_gateway.tts.modes import TTSMode
from tts_gateway.utils.timeit import StageTimings, timeit

_LOG = get_logger("tts-gateway.dispatcher")


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass(frozen=True)
class SynthesisRequest:
    """
    One synthesis request, built once per HTTP request.

    Attributes:
        text: Text to synthesize.
        mode: Backend to use.
        voice: Backend-specific voice name (``lang`` in the query string).
        speaking_rate: Backend-specific rate, None for the provider default.
        max_length: Reject audio this many seconds or longer.
        preferred_format: Output format hint (ogg, mp3, ...) where supported.
    """
    text: str
    mode: TTSMode
    voice: str
    speaking_rate: Optional[float] = None
    max_length: Optional[int] = None
    preferred_format: Optional[str] = None

    def fingerprint(self) -> bytes:
        return fingerprint(
            self.text,
            self.voice,
            TTSMode(self.mode).value,
            self.speaking_rate,
            self.preferred_format,
        )


@dataclass
class DispatchResult:
    """
    Result of Gateway.dispatch().

    Attributes:
        audio: Encoded audio bytes.
        content_type: MIME type of the audio.
        cache_status: "hit", "miss", or "off" when no cache is configured.
        timings: Per-stage durations in seconds.
    """
    audio: bytes
    content_type: str
    cache_status: str
    timings: Dict[str, float] = field(default_factory=dict)


# =============================================================================
# Gateway
# =============================================================================

class Gateway:
    """
    Dispatches requests to backends with validation and caching.

    Args:
        registry: Configured backends.
        cache: Audio cache; a disabled AudioCache when omitted.
        coalesce: Share one synthesis among concurrent identical misses.
        write_behind: Store cache entries in a background task instead of
            before returning.
        text_preview_chars: Characters of request text shown in logs.
        http_client: Client owned by this gateway, closed by aclose().
    """

    def __init__(
        self,
        registry: BackendRegistry,
        cache: Optional[AudioCache] = None,
        coalesce: bool = Defaults.CACHE_COALESCE,
        write_behind: bool = Defaults.CACHE_WRITE_BEHIND,
        text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._registry = registry
        self._cache = cache if cache is not None else AudioCache()
        self._flight: Optional[SingleFlight] = SingleFlight("synthesis") if coalesce else None
        self._write_behind = write_behind
        self._text_preview_chars = text_preview_chars
        self._http_client = http_client
        self._pending: Set["asyncio.Task[bool]"] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Gateway":
        """
        Build the gateway the settings describe.

        Raises:
            ConfigValidationError: Invalid configuration.
        """
        config = GatewayConfig.from_settings(settings)
        return cls.from_config(config)

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "Gateway":
        http_client = httpx.AsyncClient(timeout=config.http.timeout_s)
        cache = build_cache(config.cache)
        registry = build_registry(config, http_client)
        return cls(
            registry,
            cache,
            coalesce=config.cache.coalesce,
            write_behind=config.cache.write_behind,
            text_preview_chars=config.logging.text_preview_chars,
            http_client=http_client,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    @property
    def cache(self) -> AudioCache:
        return self._cache

    @property
    def pending_stores(self) -> int:
        """Background cache writes not yet finished (write-behind only)."""
        return len(self._pending)

    # =========================================================================
    # Public API
    # =========================================================================

    async def dispatch(self, request: SynthesisRequest) -> DispatchResult:
        """
        Run the synthesis pipeline for one request.

        Raises:
            InvalidSpeakingRate, UnknownVoice, AudioTooLong: Client errors.
            BackendError, BackendUnavailable, CredentialError: Server errors.
        """
        mode = TTSMode(request.mode).value
        t0 = perf_counter()
        info(
            _LOG,
            "request_started",
            mode=mode,
            voice=request.voice,
            chars=len(request.text),
            text=request.text[: self._text_preview_chars],
        )

        try:
            result = await self._dispatch(request)
        except GatewayError as e:
            if isinstance(e, BackendError):
                metrics.record_backend_error(mode)
            metrics.record_request(mode, type(e).__name__, perf_counter() - t0)
            raise

        seconds = perf_counter() - t0
        metrics.record_request(mode, "success", seconds, audio_bytes=len(result.audio))
        success(
            _LOG,
            "request_done",
            mode=mode,
            cache=result.cache_status,
            bytes=len(result.audio),
            seconds=round(seconds, 4),
        )
        return result

    async def list_voices(self, mode: TTSMode, raw: bool = False) -> List[Any]:
        """
        Voices of one mode.

        Args:
            mode: Backend to ask.
            raw: Return the provider's own records instead of
                normalized ``{name, language}`` dicts.

        Raises:
            BackendUnavailable: Mode not configured, or catalogue unreachable.
        """
        backend = self._registry.get(mode)
        if raw:
            return await backend.list_raw_voices()
        return [v.to_dict() for v in await backend.list_voices()]

    def list_modes(self) -> List[str]:
        """Names of the configured modes."""
        return [m.value for m in self._registry.modes()]

    def health(self) -> Dict[str, Any]:
        cache_info: Dict[str, Any] = {
            "enabled": self._cache.enabled,
            "backend": self._cache.backend,
        }
        if self._cache.enabled:
            cache_info["stats"] = self._cache.stats()
        return {"ok": True, "modes": self.list_modes(), "cache": cache_info}

    async def drain(self) -> None:
        """Wait for background cache writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._registry.aclose()
        await self._cache.aclose()
        if self._http_client is not None:
            await self._http_client.aclose()

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _dispatch(self, request: SynthesisRequest) -> DispatchResult:
        backend = self._registry.get(request.mode)
        timings = StageTimings()

        # ─────────────────────────────────────────────────────────────────────
        # Validation (rate, then voice)
        # ─────────────────────────────────────────────────────────────────────
        check_speaking_rate(backend, request.speaking_rate)
        with timeit("voice_check") as t:
            await check_voice(backend, request.voice)
        timings.add(t.timing)

        # ─────────────────────────────────────────────────────────────────────
        # Cache lookup
        # ─────────────────────────────────────────────────────────────────────
        fp = request.fingerprint()
        with timeit("cache_get") as t:
            cached = await self._cache.lookup(fp)
        timings.add(t.timing)

        if cached is not None:
            check_length(backend, cached, request.max_length)
            verbose(_LOG, "cache_hit", mode=backend.name, bytes=len(cached))
            return DispatchResult(
                audio=cached,
                content_type=backend.content_type(request.preferred_format),
                cache_status="hit",
                timings=timings.stages,
            )

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis and store
        # ─────────────────────────────────────────────────────────────────────
        with timeit("synthesize") as t:
            if self._flight is not None:
                result = await self._flight.do(
                    fp, lambda: self._synthesize_and_store(backend, request, fp)
                )
            else:
                result = await self._synthesize_and_store(backend, request, fp)
        timings.add(t.timing)

        check_length(backend, result.audio, request.max_length)
        return DispatchResult(
            audio=result.audio,
            content_type=result.content_type,
            cache_status="miss" if self._cache.enabled else "off",
            timings=timings.stages,
        )

    async def _synthesize_and_store(
        self,
        backend: BaseBackend,
        request: SynthesisRequest,
        fp: bytes,
    ) -> SynthResult:
        try:
            result = await backend.synthesize(
                request.text,
                request.voice,
                request.speaking_rate,
                request.preferred_format,
            )
        except GatewayError:
            raise
        except Exception as e:
            error(_LOG, "synthesis_failed", mode=backend.name, error=repr(e), error_type=type(e).__name__)
            raise BackendError(backend.name, e) from e

        if self._cache.enabled:
            if self._write_behind:
                self._schedule_store(fp, result.audio)
            else:
                await self._cache.store(fp, result.audio)
        return result

    def _schedule_store(self, fp: bytes, audio: bytes) -> None:
        task = asyncio.ensure_future(self._cache.store(fp, audio))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        verbose(_LOG, "cache_store_scheduled", pending=len(self._pending))


# =============================================================================
# Global Gateway Singleton
# =============================================================================

_gateway: Optional[Gateway] = None
_gateway_lock = threading.Lock()


def get_gateway(settings: Settings) -> Gateway:
    """
    Get or create the global Gateway instance.

    Thread-safe lazy singleton. The gateway is created on first call and
    reused for subsequent calls.
    """
    global _gateway
    if _gateway is None:
        with _gateway_lock:
            if _gateway is None:
                _gateway = Gateway.from_settings(settings)
    return _gateway


def reset_gateway() -> Optional[Gateway]:
    """
    Forget the global gateway and return it so the caller can close it.

    Used on shutdown and in tests.
    """
    global _gateway
    with _gateway_lock:
        gateway, _gateway = _gateway, None
    return gateway

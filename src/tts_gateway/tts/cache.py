"""
Encrypted Audio Cache.

Synthesized audio is cached under a deterministic request fingerprint and
encrypted at rest with Fernet (AES-128-CBC + HMAC-SHA256). The cache is
best-effort: any store failure, and any entry that no longer decrypts
(corrupt, or written under a rotated key), is treated as a miss.

Components:
    fingerprint()  - 32-byte SHA-256 digest of the request's relevant fields
    FernetCipher   - encrypt/decrypt with the process key
    MemoryStore    - in-process LRU with optional TTL
    RedisStore     - redis.asyncio backed store
    AudioCache     - lookup/store over a store and a cipher

Store contract:
    async get(key: bytes) -> Optional[bytes]
    async set(key: bytes, value: bytes) -> None
    Both raise CacheUnavailable on failure.

Example:
    >>> cache = build_cache(CacheConfig(backend="memory", key=Fernet.generate_key().decode()))
    >>> fp = fingerprint("hello", "en", "gTTS")
    >>> await cache.store(fp, mp3_bytes)
    >>> await cache.lookup(fp) == mp3_bytes
    True
"""
from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Union

import redis.asyncio as aioredis
from cryptography.fernet import Fernet, InvalidToken
from redis.exceptions import RedisError

from tts_gateway.core.config import CacheConfig, ConfigValidationError, Defaults
from tts_gateway.core.logging import debug, get_logger, info, verbose, warn
from tts_gateway.core.metrics import metrics
from tts_gateway.services.errors import CacheUnavailable

_LOG = get_logger("tts-gateway.cache")


def fingerprint(
    text: str,
    voice: str,
    mode: Any,
    speaking_rate: Optional[float] = None,
    preferred_format: Optional[str] = None,
) -> bytes:
    """
    Compute the cache key for a synthesis request.

    The fields are serialized as a JSON array ``[text, voice, mode, rate]``,
    with the format appended when one is requested. A missing rate is
    written as 0.0.

    Returns:
        32 raw SHA-256 bytes.
    """
    rate = float(speaking_rate) if speaking_rate is not None else 0.0
    fields: list = [text, voice, str(getattr(mode, "value", mode)), rate]
    if preferred_format:
        fields.append(preferred_format)
    payload = json.dumps(fields, ensure_ascii=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).digest()


class FernetCipher:
    """Symmetric encryption with a urlsafe-base64 32-byte Fernet key."""

    def __init__(self, key: Union[str, bytes]):
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise ConfigValidationError(f"cache.key is not a valid Fernet key: {e}") from e

    def encrypt(self, data: bytes) -> str:
        return self._fernet.encrypt(data).decode("ascii")

    def decrypt(self, token: Union[str, bytes]) -> bytes:
        """
        Decrypt a token produced by encrypt().

        Raises:
            InvalidToken: Malformed token, or one made with another key.
        """
        return self._fernet.decrypt(token)


class KeyValueStore(Protocol):
    name: str

    async def get(self, key: bytes) -> Optional[bytes]: ...

    async def set(self, key: bytes, value: bytes) -> None: ...

    async def aclose(self) -> None: ...

    def stats(self) -> Dict[str, Any]: ...


@dataclass
class _MemoryItem:
    value: bytes
    created_at: float = field(default_factory=time.time)


class MemoryStore:
    """
    In-process LRU store with optional TTL.

    When capacity is exceeded the least recently used entry is evicted;
    entries older than ttl_seconds are dropped on access (0 = no TTL).
    """

    name = "memory"

    def __init__(
        self,
        max_items: int = Defaults.CACHE_MAX_ITEMS,
        ttl_seconds: int = Defaults.CACHE_TTL_SECONDS,
    ):
        self.max_items = int(max_items)
        self.ttl_seconds = int(ttl_seconds)

        self._d: "OrderedDict[bytes, _MemoryItem]" = OrderedDict()
        self._lock = threading.Lock()

        self._evictions = 0
        self._expirations = 0

    async def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            item = self._d.get(key)
            if item is None:
                return None

            if self.ttl_seconds > 0:
                age = time.time() - item.created_at
                if age > self.ttl_seconds:
                    del self._d[key]
                    self._expirations += 1
                    verbose(_LOG, "expired", key=key.hex()[:8], age=round(age, 1))
                    return None

            self._d.move_to_end(key)
            return item.value

    async def set(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._d[key] = _MemoryItem(value=value)
            self._d.move_to_end(key)

            while len(self._d) > self.max_items:
                self._d.popitem(last=False)
                self._evictions += 1

    async def aclose(self) -> None:
        with self._lock:
            self._d.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._d),
                "max_items": self.max_items,
                "ttl_seconds": self.ttl_seconds,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)


class RedisStore:
    """
    Redis-backed store.

    Keys are the raw fingerprint bytes, values the Fernet token. Expiry and
    eviction are left to the Redis server's own policy.
    """

    name = "redis"

    def __init__(self, uri: str, client: Optional[aioredis.Redis] = None):
        self.uri = uri
        self._client = client if client is not None else aioredis.Redis.from_url(uri)

    async def get(self, key: bytes) -> Optional[bytes]:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(e) from e

    async def set(self, key: bytes, value: bytes) -> None:
        try:
            await self._client.set(key, value)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(e) from e

    async def aclose(self) -> None:
        await self._client.aclose()

    def stats(self) -> Dict[str, Any]:
        return {}


class AudioCache:
    """
    Encrypted lookup/store over a key-value store.

    Without a store every lookup misses and every store is a no-op. Neither
    method ever raises: failures are logged, counted and degrade to a miss.

    Attributes:
        backend: Name of the backing store ("none", "memory", "redis").
    """

    def __init__(self, store: Optional[KeyValueStore] = None, cipher: Optional[FernetCipher] = None):
        if store is not None and cipher is None:
            raise ValueError("a cipher is required when a store is configured")
        self._store = store
        self._cipher = cipher
        self._hits = 0
        self._misses = 0
        self._errors = 0
        self._stores = 0

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def backend(self) -> str:
        return self._store.name if self._store is not None else "none"

    async def lookup(self, fp: bytes) -> Optional[bytes]:
        """
        Fetch and decrypt the entry for a fingerprint.

        Returns:
            Audio bytes on a hit, None on a miss or any failure.
        """
        if self._store is None:
            return None

        try:
            token = await self._store.get(fp)
        except Exception as e:
            self._errors += 1
            metrics.record_cache("error")
            warn(_LOG, "cache_lookup_failed", error=str(getattr(e, "cause", None) or e))
            return None

        if token is None:
            self._misses += 1
            metrics.record_cache("miss")
            debug(_LOG, "cache_miss", key=fp.hex()[:8])
            return None

        try:
            audio = self._cipher.decrypt(token)
        except InvalidToken:
            self._errors += 1
            metrics.record_cache("undecryptable")
            warn(_LOG, "cache_entry_undecryptable", key=fp.hex()[:8])
            return None

        self._hits += 1
        metrics.record_cache("hit")
        return audio

    async def store(self, fp: bytes, audio: bytes) -> bool:
        """
        Encrypt and write an entry.

        Returns:
            True if written, False if caching is off or the write failed.
        """
        if self._store is None:
            return False

        try:
            await self._store.set(fp, self._cipher.encrypt(audio).encode("ascii"))
        except Exception as e:
            metrics.record_cache("store_failed")
            warn(_LOG, "cache_store_failed", error=str(getattr(e, "cause", None) or e))
            return False

        self._stores += 1
        metrics.record_cache("stored")
        verbose(_LOG, "cache_stored", key=fp.hex()[:8], bytes=len(audio))
        return True

    def stats(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "stores": self._stores,
        }
        if self._store is not None:
            out.update(self._store.stats())
        return out

    async def aclose(self) -> None:
        if self._store is not None:
            await self._store.aclose()


def build_cache(config: CacheConfig) -> AudioCache:
    """
    Create the AudioCache described by a CacheConfig.

    Raises:
        ConfigValidationError: Invalid Fernet key.
    """
    if not config.enabled:
        info(_LOG, "cache_disabled")
        return AudioCache()

    cipher = FernetCipher(config.key)
    if config.backend == "redis":
        store: KeyValueStore = RedisStore(config.redis_uri)
    else:
        store = MemoryStore(max_items=config.max_items, ttl_seconds=config.ttl_seconds)

    info(_LOG, "cache_enabled", backend=store.name)
    return AudioCache(store, cipher)

"""
Tests for the encrypted audio cache.

Tests cover:
- fingerprint() determinism and field sensitivity
- FernetCipher round trip and key validation
- MemoryStore LRU eviction and TTL
- AudioCache degrading every failure to a miss
- build_cache() from CacheConfig
"""
import asyncio
import time

import pytest
from cryptography.fernet import Fernet, InvalidToken

from tts_gateway.tts.cache import (
    AudioCache,
    FernetCipher,
    MemoryStore,
    build_cache,
    fingerprint,
)


class TestFingerprint:
    """Tests for the cache key."""

    def test_is_32_bytes(self):
        assert len(fingerprint("hello", "en", "gTTS")) == 32

    def test_deterministic(self):
        a = fingerprint("hello", "en", "gTTS", 1.5, "mp3")
        b = fingerprint("hello", "en", "gTTS", 1.5, "mp3")
        assert a == b

    @pytest.mark.parametrize(
        "other",
        [
            ("hello!", "en", "gTTS", None, None),
            ("hello", "de", "gTTS", None, None),
            ("hello", "en", "eSpeak", None, None),
            ("hello", "en", "gTTS", 1.5, None),
            ("hello", "en", "gTTS", None, "mp3"),
        ],
    )
    def test_every_field_changes_key(self, other):
        assert fingerprint(*other) != fingerprint("hello", "en", "gTTS")

    def test_missing_rate_equals_zero(self):
        """A missing rate is written as 0.0, like an explicit zero."""
        assert fingerprint("hi", "en", "gTTS") == fingerprint("hi", "en", "gTTS", 0)

    def test_int_and_float_rate_match(self):
        assert fingerprint("hi", "en", "Polly", 150) == fingerprint("hi", "en", "Polly", 150.0)

    def test_canonical_form(self):
        import hashlib

        expected = hashlib.sha256('["hi","en","gTTS",0.0,"ogg"]'.encode("utf-8")).digest()
        assert fingerprint("hi", "en", "gTTS", None, "ogg") == expected

    def test_mode_enum_and_value_match(self):
        from tts_gateway.tts.modes import TTSMode

        assert fingerprint("hi", "en", TTSMode.GTTS) == fingerprint("hi", "en", "gTTS")

    def test_separator_text_cannot_collide(self):
        """Text containing the field separator must not mimic other fields."""
        a = fingerprint("hi | en-US A | gCloud | 0.0 | x", "en-US A", "gCloud", None, "y")
        b = fingerprint("hi", "en-US A", "gCloud", None, "x | en-US A | gCloud | 0.0 | y")
        assert a != b

    def test_text_cannot_absorb_format(self):
        assert fingerprint("hi | mp3", "en", "gTTS") != fingerprint("hi", "en", "gTTS", None, "mp3")


class TestFernetCipher:
    """Tests for encryption at rest."""

    @pytest.mark.parametrize("data", [b"", b"\x00\xff" * 100, "ünïcode".encode("utf-8")])
    def test_round_trip(self, fernet_key, data):
        cipher = FernetCipher(fernet_key)
        token = cipher.encrypt(data)
        assert isinstance(token, str)
        assert cipher.decrypt(token) == data

    def test_ciphertext_is_not_plaintext(self, fernet_key):
        token = FernetCipher(fernet_key).encrypt(b"secret audio")
        assert b"secret audio" not in token.encode("ascii")

    def test_foreign_key_rejected(self, fernet_key):
        token = FernetCipher(fernet_key).encrypt(b"x")
        other = FernetCipher(Fernet.generate_key())
        with pytest.raises(InvalidToken):
            other.decrypt(token)

    def test_invalid_key_is_config_error(self):
        from tts_gateway.core.config import ConfigValidationError

        with pytest.raises(ConfigValidationError, match="Fernet"):
            FernetCipher("too-short")


class TestMemoryStore:
    """Tests for the in-process store."""

    def test_get_set(self):
        store = MemoryStore(max_items=4)
        asyncio.run(store.set(b"k", b"v"))
        assert asyncio.run(store.get(b"k")) == b"v"
        assert asyncio.run(store.get(b"missing")) is None

    def test_lru_eviction(self):
        """Least recently used entry goes first."""
        store = MemoryStore(max_items=2)

        async def run():
            await store.set(b"a", b"1")
            await store.set(b"b", b"2")
            await store.get(b"a")
            await store.set(b"c", b"3")
            return await store.get(b"a"), await store.get(b"b"), await store.get(b"c")

        assert asyncio.run(run()) == (b"1", None, b"3")
        assert store.stats()["evictions"] == 1
        assert len(store) == 2

    def test_ttl_expiry(self, monkeypatch):
        store = MemoryStore(max_items=4, ttl_seconds=10)
        now = time.time()
        monkeypatch.setattr("tts_gateway.tts.cache.time.time", lambda: now)
        asyncio.run(store.set(b"k", b"v"))

        monkeypatch.setattr("tts_gateway.tts.cache.time.time", lambda: now + 11)
        assert asyncio.run(store.get(b"k")) is None
        assert store.stats()["expirations"] == 1

    def test_zero_ttl_never_expires(self, monkeypatch):
        store = MemoryStore(max_items=4, ttl_seconds=0)
        now = time.time()
        monkeypatch.setattr("tts_gateway.tts.cache.time.time", lambda: now)
        asyncio.run(store.set(b"k", b"v"))

        monkeypatch.setattr("tts_gateway.tts.cache.time.time", lambda: now + 10**6)
        assert asyncio.run(store.get(b"k")) == b"v"


class TestAudioCache:
    """Tests for lookup/store over a store and cipher."""

    def test_store_then_lookup(self, audio_cache, fake_store):
        fp = fingerprint("hello", "en", "gTTS")
        assert asyncio.run(audio_cache.store(fp, b"mp3-bytes")) is True
        assert asyncio.run(audio_cache.lookup(fp)) == b"mp3-bytes"

    def test_entries_are_encrypted(self, audio_cache, fake_store):
        fp = fingerprint("hello", "en", "gTTS")
        asyncio.run(audio_cache.store(fp, b"mp3-bytes"))
        assert b"mp3-bytes" not in fake_store.data[fp]

    def test_miss(self, audio_cache):
        assert asyncio.run(audio_cache.lookup(b"\x00" * 32)) is None
        assert audio_cache.stats()["misses"] == 1

    def test_store_failure_is_swallowed(self, audio_cache, fake_store):
        fake_store.fail_set = True
        assert asyncio.run(audio_cache.store(b"\x01" * 32, b"x")) is False

    def test_lookup_failure_is_miss(self, audio_cache, fake_store):
        fake_store.fail_get = True
        assert asyncio.run(audio_cache.lookup(b"\x01" * 32)) is None
        assert audio_cache.stats()["errors"] == 1

    def test_unexpected_lookup_error_is_miss(self, fernet_key):
        """Errors outside CacheUnavailable (e.g. a bad reply) still read as a miss."""
        from unittest.mock import AsyncMock, MagicMock

        store = MagicMock()
        store.name = "broken"
        store.get = AsyncMock(side_effect=ValueError("bad reply"))
        store.stats = MagicMock(return_value={})
        cache = AudioCache(store, FernetCipher(fernet_key))

        assert asyncio.run(cache.lookup(b"\x04" * 32)) is None
        assert cache.stats()["errors"] == 1

    def test_undecryptable_entry_is_miss(self, audio_cache, fake_store):
        """An entry written under a rotated key reads as a miss."""
        fp = b"\x02" * 32
        fake_store.data[fp] = Fernet(Fernet.generate_key()).encrypt(b"old")
        assert asyncio.run(audio_cache.lookup(fp)) is None

    def test_corrupt_entry_is_miss(self, audio_cache, fake_store):
        fp = b"\x03" * 32
        fake_store.data[fp] = b"not a fernet token"
        assert asyncio.run(audio_cache.lookup(fp)) is None

    def test_disabled_cache(self):
        cache = AudioCache()
        assert cache.enabled is False
        assert cache.backend == "none"
        assert asyncio.run(cache.lookup(b"\x00" * 32)) is None
        assert asyncio.run(cache.store(b"\x00" * 32, b"x")) is False

    def test_store_without_cipher_rejected(self, fake_store):
        with pytest.raises(ValueError):
            AudioCache(fake_store)

    def test_stats_include_store_stats(self, audio_cache):
        asyncio.run(audio_cache.store(b"\x04" * 32, b"x"))
        stats = audio_cache.stats()
        assert stats["stores"] == 1
        assert stats["size"] == 1

    def test_events_recorded_in_metrics(self, audio_cache):
        from tts_gateway.core.metrics import metrics

        before = metrics.value("gateway_cache_events_total", {"event": "hit"})
        fp = b"\x05" * 32
        asyncio.run(audio_cache.store(fp, b"x"))
        asyncio.run(audio_cache.lookup(fp))
        assert metrics.value("gateway_cache_events_total", {"event": "hit"}) == before + 1


class TestRedisStore:
    """RedisStore against a mocked redis.asyncio client."""

    def test_errors_become_cache_unavailable(self):
        from unittest.mock import AsyncMock, MagicMock

        from redis.exceptions import ConnectionError as RedisConnectionError

        from tts_gateway.services.errors import CacheUnavailable
        from tts_gateway.tts.cache import RedisStore

        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        store = RedisStore("redis://localhost:6379/0", client=client)

        with pytest.raises(CacheUnavailable):
            asyncio.run(store.get(b"k"))

    def test_get_set_pass_through(self):
        from unittest.mock import AsyncMock, MagicMock

        from tts_gateway.tts.cache import RedisStore

        client = MagicMock()
        client.get = AsyncMock(return_value=b"token")
        client.set = AsyncMock(return_value=True)
        store = RedisStore("redis://localhost:6379/0", client=client)

        asyncio.run(store.set(b"k", b"token"))
        client.set.assert_awaited_once_with(b"k", b"token")
        assert asyncio.run(store.get(b"k")) == b"token"


class TestBuildCache:
    """Tests for build_cache()."""

    def test_disabled(self):
        from tts_gateway.core.config import CacheConfig

        assert build_cache(CacheConfig()).enabled is False

    def test_memory(self, fernet_key):
        from tts_gateway.core.config import CacheConfig

        cache = build_cache(CacheConfig(backend="memory", key=fernet_key, max_items=8))
        assert cache.backend == "memory"
        assert cache.stats()["max_items"] == 8

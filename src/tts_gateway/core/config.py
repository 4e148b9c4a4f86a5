"""
Configuration Management for tts-gateway.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (AUTH_KEY, REDIS_URI, CACHE_KEY, ...)
    2. YAML config file (config/settings.yaml or $TTS_GATEWAY_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    server:
      bind_addr: 0.0.0.0:3000

    cache:
      backend: redis
      redis_uri: redis://localhost:6379/0

    backends:
      espeak:
        binary: espeak-ng

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tts_gateway.core.logging.levels import coerce_level


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a value is outside acceptable bounds, of the wrong type,
    or when a required companion value (such as the cache key) is missing.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Server: Listener address and gateway authentication
        - Cache: Backing store selection and tuning
        - HTTP: Outbound client settings for web/cloud backends
        - Credentials: Signed token lease
        - Backends: Per-provider switches
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_BIND_ADDR = "0.0.0.0:3000"   # host:port for the HTTP listener

    # ─────────────────────────────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────────────────────────────
    CACHE_BACKEND = "none"              # none | memory | redis
    CACHE_MAX_ITEMS = 1024              # Memory store capacity
    CACHE_TTL_SECONDS = 0               # Memory store TTL (0 = no expiry)
    CACHE_COALESCE = False              # Collapse concurrent identical misses
    CACHE_WRITE_BEHIND = False          # Store entries in a background task

    # ─────────────────────────────────────────────────────────────────────────
    # Outbound HTTP
    # ─────────────────────────────────────────────────────────────────────────
    HTTP_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Credentials
    # ─────────────────────────────────────────────────────────────────────────
    CREDENTIALS_LEASE_SECONDS = 3600    # Signed token lifetime (1 hour)

    # ─────────────────────────────────────────────────────────────────────────
    # Backends
    # ─────────────────────────────────────────────────────────────────────────
    GTTS_ENABLED = True
    GTTS_MAX_CHUNK_CHARS = 100          # translate_tts rejects longer queries
    ESPEAK_ENABLED = True
    ESPEAK_BINARY = "espeak"
    POLLY_ENGINE = "standard"

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 60
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


CACHE_BACKENDS = ("none", "memory", "redis")


@dataclass
class ServerConfig:
    """
    HTTP listener configuration.

    When auth_key is set, every /tts request must carry it verbatim in the
    Authorization header.
    """
    bind_addr: str = Defaults.SERVER_BIND_ADDR
    auth_key: Optional[str] = None


@dataclass
class CacheConfig:
    """
    Audio cache configuration.

    The cache stores Fernet-encrypted audio keyed by request fingerprint.
    A key is mandatory whenever a backing store is selected.
    """
    backend: str = Defaults.CACHE_BACKEND
    redis_uri: Optional[str] = None
    key: Optional[str] = None
    max_items: int = Defaults.CACHE_MAX_ITEMS
    ttl_seconds: int = Defaults.CACHE_TTL_SECONDS
    coalesce: bool = Defaults.CACHE_COALESCE
    write_behind: bool = Defaults.CACHE_WRITE_BEHIND

    @property
    def enabled(self) -> bool:
        return self.backend != "none"


@dataclass
class HttpConfig:
    """Outbound HTTP client configuration shared by gTTS and gCloud."""
    timeout_s: float = Defaults.HTTP_TIMEOUT_S


@dataclass
class CredentialsConfig:
    """Lease for tokens signed from a service account key."""
    lease_seconds: int = Defaults.CREDENTIALS_LEASE_SECONDS


@dataclass
class BackendsConfig:
    """
    Per-provider switches.

    A provider whose requirements are not met (no credentials, no binary)
    is left out of the registry rather than failing startup.
    """
    gtts_enabled: bool = Defaults.GTTS_ENABLED
    gtts_max_chunk_chars: int = Defaults.GTTS_MAX_CHUNK_CHARS
    espeak_enabled: bool = Defaults.ESPEAK_ENABLED
    espeak_binary: str = Defaults.ESPEAK_BINARY
    polly_enabled: bool = False
    polly_region: Optional[str] = None
    polly_engine: str = Defaults.POLLY_ENGINE
    gcloud_credentials: Optional[str] = None


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, errors only
        2 = NORMAL: Request lifecycle, cache status (default)
        3 = VERBOSE: Per-stage timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class GatewayConfig:
    """
    Validated configuration for the gateway.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = GatewayConfig.from_settings(settings)
        print(config.cache.backend)
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    backends: BackendsConfig = field(default_factory=BackendsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GatewayConfig":
        """
        Create GatewayConfig from Settings with validation.

        Args:
            settings: Raw Settings object (YAML plus environment overrides).

        Returns:
            Validated GatewayConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            bind_addr=str(server_raw.get("bind_addr", Defaults.SERVER_BIND_ADDR)),
            auth_key=server_raw.get("auth_key") or None,
        )
        cls._validate_bind_addr("server.bind_addr", server.bind_addr)

        # ─────────────────────────────────────────────────────────────────────
        # Cache
        # ─────────────────────────────────────────────────────────────────────
        cache_raw = raw.get("cache", {}) or {}
        redis_uri = cache_raw.get("redis_uri") or None
        backend_default = "redis" if redis_uri else Defaults.CACHE_BACKEND
        cache = CacheConfig(
            backend=str(cache_raw.get("backend") or backend_default).strip().lower(),
            redis_uri=redis_uri,
            key=cache_raw.get("key") or None,
            max_items=int(cache_raw.get("max_items", Defaults.CACHE_MAX_ITEMS)),
            ttl_seconds=int(cache_raw.get("ttl_seconds", Defaults.CACHE_TTL_SECONDS)),
            coalesce=bool(cache_raw.get("coalesce", Defaults.CACHE_COALESCE)),
            write_behind=bool(cache_raw.get("write_behind", Defaults.CACHE_WRITE_BEHIND)),
        )
        if cache.backend not in CACHE_BACKENDS:
            raise ConfigValidationError(
                f"cache.backend must be one of {', '.join(CACHE_BACKENDS)}, got {cache.backend}"
            )
        if cache.enabled and not cache.key:
            raise ConfigValidationError("cache.key (CACHE_KEY) is required when caching is enabled")
        if cache.backend == "redis" and not cache.redis_uri:
            raise ConfigValidationError("cache.redis_uri (REDIS_URI) is required for the redis backend")
        cls._validate_positive("cache.max_items", cache.max_items)
        cls._validate_non_negative("cache.ttl_seconds", cache.ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Outbound HTTP and credentials
        # ─────────────────────────────────────────────────────────────────────
        http_raw = raw.get("http", {}) or {}
        http = HttpConfig(timeout_s=float(http_raw.get("timeout_s", Defaults.HTTP_TIMEOUT_S)))
        cls._validate_positive("http.timeout_s", http.timeout_s)

        creds_raw = raw.get("credentials", {}) or {}
        credentials = CredentialsConfig(
            lease_seconds=int(creds_raw.get("lease_seconds", Defaults.CREDENTIALS_LEASE_SECONDS)),
        )
        cls._validate_range("credentials.lease_seconds", credentials.lease_seconds, 60, 3600)

        # ─────────────────────────────────────────────────────────────────────
        # Backends
        # ─────────────────────────────────────────────────────────────────────
        backends_raw = raw.get("backends", {}) or {}
        gtts_raw = backends_raw.get("gtts", {}) or {}
        espeak_raw = backends_raw.get("espeak", {}) or {}
        polly_raw = backends_raw.get("polly", {}) or {}
        gcloud_raw = backends_raw.get("gcloud", {}) or {}

        # Polly has no single credentials file; fall back to the usual AWS env
        polly_enabled = polly_raw.get("enabled")
        if polly_enabled is None:
            polly_enabled = bool(os.getenv("AWS_ACCESS_KEY_ID") or os.getenv("AWS_PROFILE"))

        backends = BackendsConfig(
            gtts_enabled=bool(gtts_raw.get("enabled", Defaults.GTTS_ENABLED)),
            gtts_max_chunk_chars=int(gtts_raw.get("max_chunk_chars", Defaults.GTTS_MAX_CHUNK_CHARS)),
            espeak_enabled=bool(espeak_raw.get("enabled", Defaults.ESPEAK_ENABLED)),
            espeak_binary=str(espeak_raw.get("binary", Defaults.ESPEAK_BINARY)),
            polly_enabled=bool(polly_enabled),
            polly_region=polly_raw.get("region") or os.getenv("AWS_REGION") or None,
            polly_engine=str(polly_raw.get("engine", Defaults.POLLY_ENGINE)),
            gcloud_credentials=gcloud_raw.get("credentials") or None,
        )
        cls._validate_range("backends.gtts.max_chunk_chars", backends.gtts_max_chunk_chars, 1, 200)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        log_level = int(coerce_level(log_level_raw)) if isinstance(log_level_raw, str) else int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            server=server,
            cache=cache,
            http=http,
            credentials=credentials,
            backends=backends,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_bind_addr(name: str, value: str) -> None:
        """Validate a host:port pair."""
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit() or not (0 < int(port) < 65536):
            raise ConfigValidationError(f"{name} must look like host:port, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container.

    This is the raw settings object before validation. Use
    get_gateway_config() to get a validated GatewayConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def bind_addr(self) -> str:
        """Get the host:port the server listens on."""
        return str((self.raw.get("server") or {}).get("bind_addr", Defaults.SERVER_BIND_ADDR))

    @property
    def auth_key(self) -> Optional[str]:
        """Get the shared secret clients must send, if any."""
        return (self.raw.get("server") or {}).get("auth_key") or None

    @property
    def cache_enabled(self) -> bool:
        """Check whether any cache backing store is configured."""
        return self.get_gateway_config().cache.enabled

    def get_gateway_config(self) -> GatewayConfig:
        """
        Get validated GatewayConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return GatewayConfig.from_settings(self)


# Environment variable -> (section, key). Names match the deployment
# variables the gateway has always read.
_ENV_OVERRIDES = {
    "AUTH_KEY": ("server", "auth_key"),
    "BIND_ADDR": ("server", "bind_addr"),
    "REDIS_URI": ("cache", "redis_uri"),
    "CACHE_KEY": ("cache", "key"),
    "LOG_LEVEL": ("logging", "level"),
}


def _section(parent: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return parent[name] as a dict, replacing a missing or empty (None) section."""
    if not isinstance(parent.get(name), dict):
        parent[name] = {}
    return parent[name]


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to a raw settings dict in place.

    Environment variable overrides:
        - AUTH_KEY, BIND_ADDR: server section
        - REDIS_URI, CACHE_KEY: cache section
        - LOG_LEVEL: logging.level
        - GOOGLE_APPLICATION_CREDENTIALS: backends.gcloud.credentials
    """
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            _section(raw, section)[key] = value

    gcloud_creds = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if gcloud_creds:
        _section(_section(raw, "backends"), "gcloud")["credentials"] = gcloud_creds

    return raw


def load_settings(path: Optional[str] = None, required: bool = True) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file. Defaults to
            $TTS_GATEWAY_SETTINGS or config/settings.yaml.
        required: When False, a missing file yields environment-only settings.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist and is required.
    """
    p = Path(path or os.getenv("TTS_GATEWAY_SETTINGS", "config/settings.yaml"))
    raw: Dict[str, Any] = {}

    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif required:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=apply_env_overrides(raw))

"""
FastAPI Dependency Injection Providers.

Architecture:
    1. get_settings() - Loads and caches configuration (YAML + environment)
    2. get_gateway_dep() - Creates/returns the singleton Gateway
    3. close_gateway() - Drains and closes the Gateway on shutdown

Both providers are singletons so that every request shares one HTTP
client pool, one cache connection and one credential manager.

Usage in Route Handlers:
    from fastapi import Depends
    from tts_gateway.api.dependencies import get_gateway_dep

    @router.get("/modes")
    def modes(gateway: Gateway = Depends(get_gateway_dep)):
        return gateway.list_modes()

Testing:
    app.dependency_overrides[get_gateway_dep] = lambda: fake_gateway
    app.dependency_overrides[get_settings] = lambda: Settings(raw={...})
"""
from __future__ import annotations

from functools import lru_cache

from tts_gateway.core.config import Settings, load_settings
from tts_gateway.core.logging import get_logger, info
from tts_gateway.services.dispatcher import Gateway, get_gateway, reset_gateway

_LOG = get_logger("tts-gateway.api")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Reads $TTS_GATEWAY_SETTINGS or config/settings.yaml when present;
    without a file the gateway runs on environment variables alone.
    """
    return load_settings(required=False)


def get_gateway_dep() -> Gateway:
    """Get the singleton Gateway, building it on first use."""
    return get_gateway(get_settings())


def init_gateway() -> None:
    """Build the gateway at startup so configuration errors fail fast."""
    gateway = get_gateway_dep()
    info(_LOG, "gateway_ready", modes=",".join(gateway.list_modes()))


async def close_gateway() -> None:
    """Drain pending cache writes and close clients. Called on shutdown."""
    gateway = reset_gateway()
    if gateway is not None:
        await gateway.aclose()
        info(_LOG, "gateway_closed")

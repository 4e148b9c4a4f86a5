"""
FastAPI Application Entry Point.

Creates the FastAPI application for the gateway: routing, logging and the
lifespan that builds the Gateway on startup and closes it on shutdown.

Usage:
    # Console script (reads BIND_ADDR, default 0.0.0.0:3000)
    tts-gateway serve

    # Or uvicorn directly
    uvicorn tts_gateway.main:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from tts_gateway import __version__
from tts_gateway.api.dependencies import close_gateway, init_gateway
from tts_gateway.api.routes import router, validation_error_handler
from tts_gateway.core.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the gateway before serving; drain and close it afterwards."""
    init_gateway()
    try:
        yield
    finally:
        await close_gateway()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging (LOG_LEVEL)
        2. Creates a FastAPI instance with the service title
        3. Registers the gateway router and the 422 error body
        4. Builds the Gateway on startup and closes it on shutdown

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    configure_logging()

    app = FastAPI(title="tts-gateway", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()

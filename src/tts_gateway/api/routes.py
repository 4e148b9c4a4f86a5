"""
Gateway API Routes.

Endpoints:
    GET /tts      - Synthesize text, returns raw audio
    GET /voices   - Voices of one mode (normalized, or provider-native)
    GET /modes    - Configured modes
    GET /health   - Liveness plus mode and cache status
    GET /metrics  - Prometheus metrics

Request Flow (/tts):
    1. Generate a request id for log correlation
    2. Check the Authorization header when an auth key is configured
    3. Build a SynthesisRequest and dispatch it through the Gateway
    4. Return the audio with its content type, X-Request-Id and X-Cache

Error Handling:
    Errors are returned as JSON:
    {
        "display": "<message>",
        "code": <int>,
        "request_id": "<rid>"
    }

    Malformed query parameters are 422 with code 5. Client errors
    (unknown voice, speaking rate, max length) are 400,
    a wrong or missing key is 403. Provider, credential and unexpected
    failures are logged in full and answered with an opaque message
    (502, 503 or 500).

Example:
    curl -H "Authorization: $AUTH_KEY" \\
        "http://localhost:3000/tts?text=Hello&mode=gTTS&lang=en" --output hello.mp3
"""
from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tts_gateway.api.dependencies import get_gateway_dep, get_settings
from tts_gateway.api.schemas import ErrorResponse, HealthResponse
from tts_gateway.core.config import Settings
from tts_gateway.core.logging import error, get_logger, set_request_id, warn
from tts_gateway.core.metrics import metrics
from tts_gateway.services.dispatcher import Gateway, SynthesisRequest
from tts_gateway.services.errors import (
    OPAQUE_MESSAGE,
    ErrorCode,
    GatewayError,
    InvalidRequest,
    Unauthorized,
)
from tts_gateway.tts.modes import TTSMode

router = APIRouter()

_LOG = get_logger("tts-gateway.api")

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid voice, speaking rate or length"},
    422: {"model": ErrorResponse, "description": "Missing or malformed query parameter"},
    403: {"model": ErrorResponse, "description": "Missing or wrong Authorization header"},
    500: {"model": ErrorResponse, "description": "Internal error"},
    502: {"model": ErrorResponse, "description": "Provider failure"},
    503: {"model": ErrorResponse, "description": "Mode not configured or provider unreachable"},
}


def _new_request_id() -> str:
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)
    return rid


def _error_response(exc: GatewayError, rid: str) -> JSONResponse:
    """Log a GatewayError at the right level and turn it into a JSON response."""
    if exc.status_code >= 500:
        error(_LOG, "request_failed", status=exc.status_code, error=exc.message, **exc.details)
    else:
        warn(_LOG, "request_rejected", status=exc.status_code, error=exc.message)
    content = exc.to_dict()
    content["request_id"] = rid
    return JSONResponse(status_code=exc.status_code, content=content, headers={"X-Request-Id": rid})


def _internal_error_response(exc: Exception, rid: str) -> JSONResponse:
    error(_LOG, "unhandled_error", exc_info=exc, error=repr(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"display": OPAQUE_MESSAGE, "code": ErrorCode.UNKNOWN, "request_id": rid},
        headers={"X-Request-Id": rid},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed query parameters with the usual error body."""
    rid = _new_request_id()
    problems = exc.errors()
    first = problems[0] if problems else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("query", "header")) or "request"
    return _error_response(InvalidRequest(field, first.get("msg", "invalid value")), rid)


def _check_auth(settings: Settings, authorization: Optional[str]) -> None:
    auth_key = settings.auth_key
    if auth_key is not None and authorization != auth_key:
        raise Unauthorized()


async def _guarded(rid: str, call: Callable[[], Awaitable[Any]]) -> Any:
    """Run a handler body, mapping errors onto JSON error responses."""
    try:
        return await call()
    except GatewayError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error_response(e, rid)


@router.get("/tts", response_class=Response, responses=_ERROR_RESPONSES)
async def tts(
    text: str = Query(..., description="Text to synthesize"),
    mode: TTSMode = Query(..., description="Backend: gTTS, eSpeak, Polly or gCloud"),
    voice: str = Query(..., alias="lang", description="Voice name, see /voices"),
    speaking_rate: Optional[float] = Query(default=None, description="Backend-specific rate"),
    max_length: Optional[int] = Query(default=None, ge=0, description="Max audio length in seconds"),
    preferred_format: Optional[str] = Query(default=None, description="Output format hint"),
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    gateway: Gateway = Depends(get_gateway_dep),
):
    """
    Synthesize text with the selected mode.

    Returns:
        Response: Audio bytes with headers:
            - Content-Type: Backend's audio type (audio/mpeg, audio/wav, ...)
            - X-Request-Id: Request identifier for tracing
            - X-Cache: hit, miss, or off
    """
    rid = _new_request_id()

    async def run():
        _check_auth(settings, authorization)
        result = await gateway.dispatch(
            SynthesisRequest(
                text=text,
                mode=mode,
                voice=voice,
                speaking_rate=speaking_rate,
                max_length=max_length,
                preferred_format=preferred_format,
            )
        )
        headers = {"X-Request-Id": rid, "X-Cache": result.cache_status}
        return Response(content=result.audio, media_type=result.content_type, headers=headers)

    return await _guarded(rid, run)


@router.get("/voices", responses=_ERROR_RESPONSES)
async def voices(
    mode: TTSMode = Query(..., description="Backend to list voices for"),
    raw: bool = Query(default=False, description="Return the provider's own voice records"),
    gateway: Gateway = Depends(get_gateway_dep),
):
    """
    List voices of one mode.

    With raw=false each entry is {"name", "language"}; ``name`` is what
    /tts accepts as ``lang``. With raw=true the provider's records are
    returned unchanged.
    """
    rid = _new_request_id()

    async def run():
        return await gateway.list_voices(mode, raw=raw)

    return await _guarded(rid, run)


@router.get("/modes")
def modes(gateway: Gateway = Depends(get_gateway_dep)):
    """Configured mode names, e.g. ["gTTS", "eSpeak"]."""
    return gateway.list_modes()


@router.get("/health", response_model=HealthResponse)
def health(gateway: Gateway = Depends(get_gateway_dep)):
    """
    Health check for load balancers and probes.

    Returns:
        ok, configured modes, and cache backend with hit/miss statistics.
    """
    return gateway.health()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)

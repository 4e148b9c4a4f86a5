"""
API Response Schemas.

Pydantic models for the JSON bodies the gateway returns. /tts itself
answers with raw audio; its query parameters are declared on the route.

Models:
    ErrorResponse: Body of every error response
    VoiceOut: One normalized entry of GET /voices
    CacheHealth / HealthResponse: Body of GET /health

Example Error:
    {"display": "Unknown voice: xx", "code": 1, "request_id": "3f9a0c1d2b4e"}
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Error body.

    Attributes:
        display: Message safe to show to an end user.
        code: 0 unknown, 1 unknown voice, 2 audio too long,
            3 invalid speaking rate, 4 unauthorized.
        request_id: Correlates with server logs.
    """
    display: str = Field(..., description="Human readable error message")
    code: int = Field(..., description="Numeric error code")
    request_id: Optional[str] = Field(default=None, description="Request identifier for tracing")


class VoiceOut(BaseModel):
    name: str = Field(..., description="Value to pass as 'lang' to /tts")
    language: Optional[str] = Field(default=None, description="Language of the voice")


class CacheHealth(BaseModel):
    enabled: bool
    backend: str
    stats: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    ok: bool = True
    modes: List[str] = Field(default_factory=list, description="Configured modes")
    cache: CacheHealth

"""
Gateway Error Taxonomy.

Every failure a client can see carries a stable numeric code and maps to
one HTTP status. Client-caused errors (bad voice, rate, length, auth) show
their message to the caller; provider and credential failures are logged
in full and answered with an opaque message.

    code  error                 HTTP  client message
    ----  --------------------  ----  -----------------------------
    1     UnknownVoice          400   Unknown voice: {name}
    2     AudioTooLong          400   Max length exceeded!
    3     InvalidSpeakingRate   400   Invalid speaking rate: {rate}
    4     Unauthorized          403   Unauthorized request
    5     InvalidRequest        422   Invalid parameter {field}: {reason}
    0     BackendError          502   Internal server error
    0     BackendUnavailable    503   Internal server error
    0     CredentialError       500   Internal server error
    0     (anything else)       500   Internal server error

CacheUnavailable is raised by key-value stores and always absorbed by the
cache layer; it never reaches a client.

Response body:
    {"display": "<message>", "code": <int>, "request_id": "<rid>"}
"""
from __future__ import annotations

from typing import Any, Dict, Optional

OPAQUE_MESSAGE = "Internal server error"


class ErrorCode:
    """Numeric error codes returned in the ``code`` field."""
    UNKNOWN = 0
    UNKNOWN_VOICE = 1
    AUDIO_TOO_LONG = 2
    INVALID_SPEAKING_RATE = 3
    UNAUTHORIZED = 4
    INVALID_REQUEST = 5


class GatewayError(Exception):
    """
    Base exception for errors that map onto an HTTP response.

    Attributes:
        message: Internal message, logged server-side.
        code: Numeric code from ErrorCode.
        status_code: HTTP status for the response.
        public_message: Message shown to the client. Defaults to message.
        details: Optional structured context for logs.
    """
    status_code = 500

    def __init__(
        self,
        message: str,
        code: int = ErrorCode.UNKNOWN,
        status_code: Optional[int] = None,
        public_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.public_message = public_message if public_message is not None else message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the client-facing error body."""
        return {"display": self.public_message, "code": self.code}


class UnknownVoice(GatewayError):
    """The requested voice does not exist for the selected mode."""
    status_code = 400

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown voice: {name}", ErrorCode.UNKNOWN_VOICE)


class AudioTooLong(GatewayError):
    """Produced (or cached) audio exceeds the caller's max_length."""
    status_code = 400

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(
            "Max length exceeded!",
            ErrorCode.AUDIO_TOO_LONG,
            details={"max_length": limit},
        )


class InvalidSpeakingRate(GatewayError):
    """Speaking rate above the selected backend's maximum."""
    status_code = 400

    def __init__(self, rate: float):
        self.rate = rate
        super().__init__(f"Invalid speaking rate: {rate}", ErrorCode.INVALID_SPEAKING_RATE)


class Unauthorized(GatewayError):
    """Missing or wrong Authorization header."""
    status_code = 403

    def __init__(self):
        super().__init__("Unauthorized request", ErrorCode.UNAUTHORIZED)


class InvalidRequest(GatewayError):
    """A query parameter is missing or malformed."""
    status_code = 422

    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(f"Invalid parameter {field}: {reason}", ErrorCode.INVALID_REQUEST)


class BackendError(GatewayError):
    """
    A provider call failed (transport error, non-2xx, malformed payload).

    Attributes:
        provider: Mode name of the failing backend.
        cause: The underlying exception, if any.
    """
    status_code = 502

    def __init__(self, provider: str, cause: Any = None):
        self.provider = provider
        self.cause = cause
        super().__init__(
            f"{provider} backend failed: {cause!r}",
            public_message=OPAQUE_MESSAGE,
            details={"provider": provider},
        )


class BackendUnavailable(BackendError):
    """A backend could not be reached or is not configured."""
    status_code = 503


class CredentialError(GatewayError):
    """Signing material could not be loaded or a token could not be signed."""
    status_code = 500

    def __init__(self, cause: Any = None):
        self.cause = cause
        super().__init__(
            f"credential refresh failed: {cause!r}",
            public_message=OPAQUE_MESSAGE,
        )


class CacheUnavailable(Exception):
    """A key-value store operation failed. Absorbed by the cache layer."""

    def __init__(self, cause: Any = None):
        self.cause = cause
        super().__init__(f"cache store unavailable: {cause!r}")

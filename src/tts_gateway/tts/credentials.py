"""
Service Account Credentials and Token Lifecycle.

Backends that authenticate with a service account (Google Cloud TTS) send a
self-signed RS256 JWT as a bearer token. The token is valid for a lease of
at most one hour and is refreshed lazily: the first request that finds it
expired signs a new one.

States:
    Valid    expires_at > now   token reused unchanged
    Expired  expires_at <= now  next caller refreshes before use

Refresh rules:
    - The current token is read without holding a lock across I/O.
    - Concurrent callers that see an expired token share one signing
      (SingleFlight), so there is one refresh per expiry window.
    - The new token is installed under an asyncio.Lock and only replaces
      the current one if it expires later, so a slow refresh can never
      overwrite a newer token.
    - Signing is CPU work and runs in a worker thread.

Example:
    key = ServiceAccountKey.from_file("/secrets/gcloud.json")
    creds = CredentialManager(key)
    token = await creds.get_token()
    headers = {"Authorization": f"Bearer {token}"}
"""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import jwt

from tts_gateway.core.config import Defaults
from tts_gateway.core.logging import debug, error, get_logger, info
from tts_gateway.core.metrics import metrics
from tts_gateway.services.errors import CredentialError
from tts_gateway.tts.concurrency import SingleFlight

_LOG = get_logger("tts-gateway.credentials")

TOKEN_AUDIENCE = "https://texttospeech.googleapis.com/"


@dataclass(frozen=True)
class ServiceAccountKey:
    """
    Signing material from a service account JSON file.

    Attributes:
        client_email: Service account identity, used as iss and sub.
        private_key: PEM-encoded RSA private key.
        private_key_id: Key id, sent as the JWT ``kid`` header when present.
    """
    client_email: str
    private_key: str
    private_key_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"ServiceAccountKey(client_email={self.client_email!r}, private_key_id={self.private_key_id!r})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceAccountKey":
        """
        Build from a parsed service account JSON document.

        Raises:
            CredentialError: A required field is missing.
        """
        missing = [k for k in ("client_email", "private_key") if not data.get(k)]
        if missing:
            raise CredentialError(f"service account key missing {', '.join(missing)}")
        return cls(
            client_email=str(data["client_email"]),
            private_key=str(data["private_key"]),
            private_key_id=data.get("private_key_id") or None,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "ServiceAccountKey":
        """
        Load from a service account JSON file.

        Raises:
            CredentialError: File missing, unreadable or not valid JSON.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CredentialError(e) from e
        if not isinstance(data, dict):
            raise CredentialError(f"{path}: expected a JSON object")
        return cls.from_dict(data)


@dataclass(frozen=True)
class CredentialToken:
    """A bearer token and the unix time it stops being valid."""
    token: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class JwtSigner:
    """Signs self-issued RS256 access tokens with PyJWT."""

    def __init__(self, audience: str = TOKEN_AUDIENCE):
        self.audience = audience

    def sign(self, key: ServiceAccountKey, now: float, lease_seconds: int) -> CredentialToken:
        iat = int(now)
        exp = iat + int(lease_seconds)
        claims = {
            "iss": key.client_email,
            "sub": key.client_email,
            "aud": self.audience,
            "iat": iat,
            "exp": exp,
        }
        headers = {"kid": key.private_key_id} if key.private_key_id else None
        token = jwt.encode(claims, key.private_key, algorithm="RS256", headers=headers)
        return CredentialToken(token=token, expires_at=float(exp))


Signer = Callable[[ServiceAccountKey, float, int], CredentialToken]


class CredentialManager:
    """
    Owns the current token for one service account.

    Args:
        key: Signing material.
        signer: Callable (key, now, lease_seconds) -> CredentialToken.
            Defaults to JwtSigner().sign.
        clock: Returns the current unix time. Defaults to time.time.
        lease_seconds: Token lifetime, at most 3600.
        provider: Label for logs and metrics.

    Attributes:
        refresh_count: Number of completed signings.
    """

    def __init__(
        self,
        key: ServiceAccountKey,
        signer: Optional[Signer] = None,
        clock: Callable[[], float] = time.time,
        lease_seconds: int = Defaults.CREDENTIALS_LEASE_SECONDS,
        provider: str = "gCloud",
    ):
        self._key = key
        self._signer = signer if signer is not None else JwtSigner().sign
        self._clock = clock
        self._lease = int(lease_seconds)
        self._provider = provider

        self._token: Optional[CredentialToken] = None
        self._lock = asyncio.Lock()
        self._flight = SingleFlight("credentials")
        self.refresh_count = 0

    @property
    def current(self) -> Optional[CredentialToken]:
        return self._token

    async def get_token(self) -> str:
        """
        Return a valid bearer token, refreshing it first if expired.

        Raises:
            CredentialError: Signing failed.
        """
        current = self._token
        if current is not None and not current.is_expired(self._clock()):
            return current.token

        fresh = await self._flight.do("refresh", self._refresh)
        return fresh.token

    async def _refresh(self) -> CredentialToken:
        now = self._clock()
        try:
            signed = await asyncio.to_thread(self._signer, self._key, now, self._lease)
        except CredentialError:
            raise
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            error(_LOG, "token_sign_failed", provider=self._provider, error=repr(e))
            raise CredentialError(e) from e

        async with self._lock:
            current = self._token
            if current is None or signed.expires_at > current.expires_at:
                self._token = signed
            else:
                debug(_LOG, "token_kept_newer", provider=self._provider)
            installed = self._token

        self.refresh_count += 1
        metrics.record_token_refresh(self._provider)
        info(
            _LOG,
            "token_refreshed",
            provider=self._provider,
            expires_in=int(installed.expires_at - now),
        )
        return installed

"""
Google Cloud Text-to-Speech Backend.

REST client over httpx. Every call carries a bearer token from the
CredentialManager, which signs a fresh JWT when the current one expires.

Voices:
    Only the Standard voices are offered. A voice is written
    ``"{languageCode} {variant}"``, e.g. ``"en-US A"`` for the provider's
    ``en-US-Standard-A``. The voice catalogue is fetched once and cached.

Formats:
    preferred_format ogg (default) -> OGG_OPUS, mp3 -> MP3, wav -> LINEAR16
"""
from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, List, Optional

import httpx

from tts_gateway.core.logging import debug, error, info
from tts_gateway.services.errors import BackendError, BackendUnavailable
from tts_gateway.tts.backend import BaseBackend, SynthResult, VoiceDescriptor
from tts_gateway.tts.concurrency import SingleFlight
from tts_gateway.tts.credentials import CredentialManager
from tts_gateway.tts.modes import TTSMode

API_BASE = "https://texttospeech.googleapis.com/v1"

# preferred_format -> (audioEncoding, content type)
AUDIO_ENCODINGS: Dict[str, tuple[str, str]] = {
    "ogg": ("OGG_OPUS", "audio/ogg"),
    "ogg_opus": ("OGG_OPUS", "audio/ogg"),
    "opus": ("OGG_OPUS", "audio/ogg"),
    "mp3": ("MP3", "audio/mpeg"),
    "wav": ("LINEAR16", "audio/wav"),
    "linear16": ("LINEAR16", "audio/wav"),
}
DEFAULT_FORMAT = "ogg"


def resolve_encoding(preferred_format: Optional[str]) -> tuple[str, str]:
    """Map a requested format onto an audioEncoding; unknown formats use the default."""
    key = (preferred_format or DEFAULT_FORMAT).strip().lower()
    return AUDIO_ENCODINGS.get(key, AUDIO_ENCODINGS[DEFAULT_FORMAT])


def standard_voice_name(record: Dict[str, Any]) -> Optional[str]:
    """
    Gateway voice name for a provider voice record, None if not Standard.

    Example:
        >>> standard_voice_name({"name": "en-US-Standard-A", "languageCodes": ["en-US"]})
        'en-US A'
    """
    parts = str(record.get("name", "")).split("-", 2)
    if len(parts) != 3:
        return None
    kind, _, variant = parts[2].partition("-")
    codes = record.get("languageCodes") or []
    if kind != "Standard" or not variant or not codes:
        return None
    return f"{codes[0]} {variant}"


def build_request(
    text: str,
    voice: str,
    speaking_rate: Optional[float],
    audio_encoding: str,
) -> Dict[str, Any]:
    """Body for text:synthesize from a ``"{languageCode} {variant}"`` voice."""
    language, _, variant = voice.partition(" ")
    audio_config: Dict[str, Any] = {"audioEncoding": audio_encoding}
    if speaking_rate is not None:
        audio_config["speakingRate"] = speaking_rate
    return {
        "input": {"text": text},
        "voice": {
            "languageCode": language,
            "name": f"{language}-Standard-{variant}",
        },
        "audioConfig": audio_config,
    }


class GCloudBackend(BaseBackend):
    """Google Cloud TTS with service-account JWT auth."""

    mode = TTSMode.GCLOUD
    max_rate = 4.0
    default_content_type = "audio/ogg"

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialManager,
        api_base: str = API_BASE,
    ):
        super().__init__()
        self._client = client
        self._credentials = credentials
        self.api_base = api_base.rstrip("/")
        self._voices: Optional[List[Dict[str, Any]]] = None
        self._flight = SingleFlight("gcloud-voices")

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self._credentials.get_token()
        return {"Authorization": f"Bearer {token}"}

    async def _fetch_voices(self) -> List[Dict[str, Any]]:
        headers = await self._auth_headers()
        try:
            resp = await self._client.get(f"{self.api_base}/voices", headers=headers)
            resp.raise_for_status()
            voices = resp.json().get("voices", [])
        except (httpx.HTTPError, ValueError) as e:
            error(self.logger, "gcloud_voices_failed", error=repr(e))
            raise BackendUnavailable(self.name, e) from e

        self._voices = voices
        info(self.logger, "gcloud_voices_loaded", count=len(voices))
        return voices

    async def raw_voices(self) -> List[Dict[str, Any]]:
        if self._voices is not None:
            return self._voices
        return await self._flight.do("voices", self._fetch_voices)

    async def voice_names(self) -> List[str]:
        names = (standard_voice_name(v) for v in await self.raw_voices())
        return [n for n in names if n]

    async def list_voices(self) -> List[VoiceDescriptor]:
        return [
            VoiceDescriptor(name=name, language=name.partition(" ")[0])
            for name in await self.voice_names()
        ]

    async def list_raw_voices(self) -> List[Dict[str, Any]]:
        return await self.raw_voices()

    async def is_valid_voice(self, voice: str) -> bool:
        return voice in await self.voice_names()

    async def synthesize(
        self,
        text: str,
        voice: str,
        speaking_rate: Optional[float] = None,
        preferred_format: Optional[str] = None,
    ) -> SynthResult:
        audio_encoding, content_type = resolve_encoding(preferred_format)
        body = build_request(text, voice, speaking_rate, audio_encoding)
        headers = await self._auth_headers()

        try:
            resp = await self._client.post(f"{self.api_base}/text:synthesize", json=body, headers=headers)
            resp.raise_for_status()
            audio = base64.b64decode(resp.json()["audioContent"])
        except (httpx.HTTPError, KeyError, ValueError, binascii.Error) as e:
            error(self.logger, "gcloud_synthesis_failed", voice=voice, error=repr(e))
            raise BackendError(self.name, e) from e

        debug(self.logger, "gcloud_synthesized", encoding=audio_encoding, bytes=len(audio))
        return SynthResult(audio=audio, content_type=content_type)

    def content_type(self, preferred_format: Optional[str] = None) -> str:
        return resolve_encoding(preferred_format)[1]

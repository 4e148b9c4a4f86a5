"""
Amazon Polly Backend.

Uses aioboto3 with the standard AWS credential chain (environment,
profile, instance role). Voices come from ``describe_voices``, paginated,
and are cached for the life of the process after the first fetch.

Speaking rate is a percentage (100 = normal, at most 500) applied through
an SSML ``<prosody rate="N%">`` wrapper. The output format follows
``preferred_format``: ogg (default), mp3 or pcm.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from tts_gateway.core.config import Defaults
from tts_gateway.core.logging import debug, error, info
from tts_gateway.services.errors import BackendError, BackendUnavailable
from tts_gateway.tts.backend import BaseBackend, SynthResult, VoiceDescriptor
from tts_gateway.tts.concurrency import SingleFlight
from tts_gateway.tts.modes import TTSMode

# preferred_format -> (Polly OutputFormat, content type)
OUTPUT_FORMATS: Dict[str, tuple[str, str]] = {
    "ogg": ("ogg_vorbis", "audio/ogg"),
    "ogg_vorbis": ("ogg_vorbis", "audio/ogg"),
    "mp3": ("mp3", "audio/mpeg"),
    "pcm": ("pcm", "audio/pcm"),
}
DEFAULT_FORMAT = "ogg"


def resolve_format(preferred_format: Optional[str]) -> tuple[str, str]:
    """Map a requested format onto Polly's; unknown formats use the default."""
    key = (preferred_format or DEFAULT_FORMAT).strip().lower()
    return OUTPUT_FORMATS.get(key, OUTPUT_FORMATS[DEFAULT_FORMAT])


def build_ssml(text: str, speaking_rate: float) -> str:
    """
    Wrap text in SSML with a prosody rate.

    Example:
        >>> build_ssml("a < b", 150)
        '<speak><prosody rate="150%">a &lt; b</prosody></speak>'
    """
    return f'<speak><prosody rate="{int(speaking_rate)}%">{escape(text)}</prosody></speak>'


class PollyBackend(BaseBackend):
    """Amazon Polly via aioboto3."""

    mode = TTSMode.POLLY
    max_rate = 500.0
    default_content_type = "audio/ogg"

    def __init__(
        self,
        region: Optional[str] = None,
        engine: str = Defaults.POLLY_ENGINE,
        session: Optional[aioboto3.Session] = None,
    ):
        super().__init__()
        self.engine = engine
        self._session = session if session is not None else aioboto3.Session(region_name=region)
        self._voices: Optional[List[Dict[str, Any]]] = None
        self._flight = SingleFlight("polly-voices")

    async def _fetch_voices(self) -> List[Dict[str, Any]]:
        voices: List[Dict[str, Any]] = []
        try:
            async with self._session.client("polly") as polly:
                kwargs: Dict[str, Any] = {}
                while True:
                    page = await polly.describe_voices(**kwargs)
                    voices.extend(page.get("Voices", []))
                    token = page.get("NextToken")
                    if not token:
                        break
                    kwargs["NextToken"] = token
        except (BotoCoreError, ClientError) as e:
            error(self.logger, "polly_voices_failed", error=repr(e))
            raise BackendUnavailable(self.name, e) from e

        self._voices = voices
        info(self.logger, "polly_voices_loaded", count=len(voices))
        return voices

    async def raw_voices(self) -> List[Dict[str, Any]]:
        if self._voices is not None:
            return self._voices
        return await self._flight.do("voices", self._fetch_voices)

    async def list_voices(self) -> List[VoiceDescriptor]:
        return [
            VoiceDescriptor(name=v["Id"], language=v.get("LanguageCode"))
            for v in await self.raw_voices()
        ]

    async def list_raw_voices(self) -> List[Dict[str, Any]]:
        return await self.raw_voices()

    async def is_valid_voice(self, voice: str) -> bool:
        return any(v.get("Id") == voice for v in await self.raw_voices())

    async def synthesize(
        self,
        text: str,
        voice: str,
        speaking_rate: Optional[float] = None,
        preferred_format: Optional[str] = None,
    ) -> SynthResult:
        output_format, content_type = resolve_format(preferred_format)
        request: Dict[str, Any] = {
            "Engine": self.engine,
            "OutputFormat": output_format,
            "VoiceId": voice,
        }
        if speaking_rate is not None:
            request.update(Text=build_ssml(text, speaking_rate), TextType="ssml")
        else:
            request.update(Text=text, TextType="text")

        try:
            async with self._session.client("polly") as polly:
                resp = await polly.synthesize_speech(**request)
                audio = await resp["AudioStream"].read()
        except (BotoCoreError, ClientError) as e:
            error(self.logger, "polly_synthesis_failed", voice=voice, error=repr(e))
            raise BackendError(self.name, e) from e

        debug(self.logger, "polly_synthesized", format=output_format, bytes=len(audio))
        return SynthResult(audio=audio, content_type=content_type)

    def content_type(self, preferred_format: Optional[str] = None) -> str:
        return resolve_format(preferred_format)[1]

"""
gTTS Backend (Google Translate web TTS).

Free, unauthenticated MP3 synthesis through the Translate ``translate_tts``
endpoint. The endpoint rejects long queries, so text is split into chunks
of at most ``max_chunk_chars`` characters on word boundaries and the MP3
parts are concatenated in order.

Voices are language codes from a static list. Speaking rate is not
supported by the endpoint and is ignored.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import httpx

from tts_gateway.core.config import Defaults
from tts_gateway.core.logging import debug, error
from tts_gateway.services.errors import BackendError
from tts_gateway.tts.backend import BaseBackend, SynthResult, VoiceDescriptor
from tts_gateway.tts.modes import TTSMode
from tts_gateway.utils.audio import within_length

TRANSLATE_TTS_URL = "https://translate.google.com/translate_tts"

LANGUAGES: Dict[str, str] = {
    "af": "Afrikaans",
    "ar": "Arabic",
    "bg": "Bulgarian",
    "bn": "Bengali",
    "bs": "Bosnian",
    "ca": "Catalan",
    "cs": "Czech",
    "cy": "Welsh",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "eo": "Esperanto",
    "es": "Spanish",
    "et": "Estonian",
    "fi": "Finnish",
    "fr": "French",
    "gu": "Gujarati",
    "hi": "Hindi",
    "hr": "Croatian",
    "hu": "Hungarian",
    "hy": "Armenian",
    "id": "Indonesian",
    "is": "Icelandic",
    "it": "Italian",
    "iw": "Hebrew",
    "ja": "Japanese",
    "jw": "Javanese",
    "km": "Khmer",
    "kn": "Kannada",
    "ko": "Korean",
    "la": "Latin",
    "lv": "Latvian",
    "mk": "Macedonian",
    "ml": "Malayalam",
    "mr": "Marathi",
    "ms": "Malay",
    "my": "Myanmar (Burmese)",
    "ne": "Nepali",
    "nl": "Dutch",
    "no": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "si": "Sinhala",
    "sk": "Slovak",
    "sq": "Albanian",
    "sr": "Serbian",
    "su": "Sundanese",
    "sv": "Swedish",
    "sw": "Swahili",
    "ta": "Tamil",
    "te": "Telugu",
    "th": "Thai",
    "tl": "Filipino",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "ur": "Urdu",
    "vi": "Vietnamese",
    "zh-CN": "Chinese (Simplified)",
    "zh-TW": "Chinese (Traditional)",
}


def split_text(text: str, max_chars: int = Defaults.GTTS_MAX_CHUNK_CHARS) -> List[str]:
    """
    Split text into chunks of at most max_chars characters.

    Breaks on whitespace where possible; a single word longer than
    max_chars is cut into max_chars pieces. Empty chunks are dropped.

    Example:
        >>> split_text("one two three", 8)
        ['one two', 'three']
    """
    chunks: List[str] = []
    current = ""
    for word in text.split():
        while len(word) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(word[:max_chars])
            word = word[max_chars:]
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        else:
            chunks.append(current)
            current = word
    if current:
        chunks.append(current)
    return chunks


class GTTSBackend(BaseBackend):
    """Google Translate TTS over a shared httpx.AsyncClient."""

    mode = TTSMode.GTTS
    max_rate = None
    default_content_type = "audio/mpeg"

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_chunk_chars: int = Defaults.GTTS_MAX_CHUNK_CHARS,
        url: str = TRANSLATE_TTS_URL,
    ):
        super().__init__()
        self._client = client
        self.max_chunk_chars = max_chunk_chars
        self.url = url

    async def list_voices(self) -> List[VoiceDescriptor]:
        return [VoiceDescriptor(name=code, language=name) for code, name in LANGUAGES.items()]

    async def list_raw_voices(self) -> Dict[str, str]:
        return dict(LANGUAGES)

    async def is_valid_voice(self, voice: str) -> bool:
        return voice in LANGUAGES

    async def synthesize(
        self,
        text: str,
        voice: str,
        speaking_rate: Optional[float] = None,
        preferred_format: Optional[str] = None,
    ) -> SynthResult:
        chunks = split_text(text, self.max_chunk_chars)
        parts: List[bytes] = []
        for idx, chunk in enumerate(chunks):
            params = {
                "ie": "UTF-8",
                "client": "tw-ob",
                "tl": voice,
                "q": chunk,
                "total": len(chunks),
                "idx": idx,
                "textlen": len(chunk),
            }
            try:
                resp = await self._client.get(self.url, params=params)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                error(self.logger, "gtts_request_failed", chunk=idx, error=repr(e))
                raise BackendError(self.name, e) from e
            parts.append(resp.content)

        debug(self.logger, "gtts_synthesized", chunks=len(chunks), bytes=sum(len(p) for p in parts))
        return SynthResult(audio=b"".join(parts), content_type=self.default_content_type)

    def check_length(self, audio: bytes, limit_seconds: int) -> bool:
        return within_length(audio, limit_seconds)

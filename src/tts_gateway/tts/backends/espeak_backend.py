"""
eSpeak Backend (local synthesizer).

Runs ``espeak --stdout`` as an asyncio subprocess with the text on stdin
and returns the WAV it writes. Voices are the espeak language voices,
optionally with a ``+variant`` suffix (``en+f3``, ``de+whisper``).
The speaking rate is passed through as words per minute (``-s``).
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from tts_gateway.core.config import Defaults
from tts_gateway.core.logging import debug, error
from tts_gateway.services.errors import BackendError, BackendUnavailable
from tts_gateway.tts.backend import BaseBackend, SynthResult, VoiceDescriptor
from tts_gateway.tts.modes import TTSMode
from tts_gateway.utils.audio import within_length

VOICES: List[str] = [
    "af", "an", "bg", "bs", "ca", "cs", "cy", "da", "de", "el",
    "en", "en-gb", "en-sc", "en-uk-north", "en-uk-rp", "en-uk-wmids",
    "en-us", "en-wi", "eo", "es", "es-la", "et", "fa", "fi", "fr",
    "fr-be", "ga", "grc", "hi", "hr", "hu", "hy", "hy-west", "id",
    "is", "it", "jbo", "ka", "kn", "ku", "la", "lfn", "lt", "lv",
    "mk", "ml", "ms", "ne", "nl", "no", "pa", "pl", "pt", "pt-pt",
    "ro", "ru", "sk", "sq", "sr", "sv", "sw", "ta", "tr", "vi",
    "vi-hue", "vi-sgn", "zh", "zh-yue",
]

VARIANTS: List[str] = [
    "m1", "m2", "m3", "m4", "m5", "m6", "m7",
    "f1", "f2", "f3", "f4", "f5",
    "croak", "whisper", "klatt", "klatt2", "klatt3",
]


class ESpeakBackend(BaseBackend):
    """espeak (or espeak-ng) invoked per request."""

    mode = TTSMode.ESPEAK
    max_rate = 400.0
    default_content_type = "audio/wav"

    def __init__(self, binary: str = Defaults.ESPEAK_BINARY):
        super().__init__()
        self.binary = binary

    async def list_voices(self) -> List[VoiceDescriptor]:
        return [VoiceDescriptor(name=v, language=v) for v in VOICES]

    async def list_raw_voices(self) -> List[str]:
        return list(VOICES)

    async def is_valid_voice(self, voice: str) -> bool:
        base, sep, variant = voice.partition("+")
        if base not in VOICES:
            return False
        return not sep or variant in VARIANTS

    def build_command(self, voice: str, speaking_rate: Optional[float] = None) -> List[str]:
        cmd = [self.binary, "--stdout", "-v", voice]
        if speaking_rate:
            cmd += ["-s", str(int(speaking_rate))]
        return cmd

    async def synthesize(
        self,
        text: str,
        voice: str,
        speaking_rate: Optional[float] = None,
        preferred_format: Optional[str] = None,
    ) -> SynthResult:
        cmd = self.build_command(voice, speaking_rate)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            error(self.logger, "espeak_spawn_failed", binary=self.binary, error=repr(e))
            raise BackendUnavailable(self.name, e) from e

        stdout, stderr = await proc.communicate(text.encode("utf-8"))
        if proc.returncode != 0 or not stdout:
            detail = stderr.decode("utf-8", errors="replace").strip()
            error(self.logger, "espeak_failed", returncode=proc.returncode, error=detail)
            raise BackendError(self.name, f"exit {proc.returncode}: {detail}")

        debug(self.logger, "espeak_synthesized", bytes=len(stdout))
        return SynthResult(audio=stdout, content_type=self.default_content_type)

    def check_length(self, audio: bytes, limit_seconds: int) -> bool:
        return within_length(audio, limit_seconds)

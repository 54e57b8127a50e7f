"""
Optima AI - Audio Factory
=========================
VoiceRSS voice-over synthesis with MP3 validation.
"""

import base64
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from config import Settings, get_settings
from exceptions import ExternalServiceError
from logging_config import get_logger
import metrics as app_metrics

logger = get_logger(__name__)


# =============================================================================
# Voice Configuration
# =============================================================================

# "<language>-<gender>-<emotion>" -> VoiceRSS voice name
VOICE_MAP = {
    "en-us-male-professional": "John",
    "en-us-female-professional": "Mary",
    "en-us-male-friendly": "Mike",
    "en-us-female-friendly": "Linda",
    "en-us-neutral-professional": "John",
    "en-gb-male-professional": "Harry",
    "en-gb-female-professional": "Kate",
}

DEFAULT_VOICE = "John"
DEFAULT_LANGUAGE = "en-us"
AUDIO_CODEC = "MP3"
AUDIO_FORMAT = "44khz_16bit_stereo"
MIN_AUDIO_BYTES = 1000


def get_voicerss_voice(voice_settings: Optional[Dict[str, Any]]) -> str:
    """Map language/gender/emotion settings to a VoiceRSS voice name."""
    voice_settings = voice_settings or {}
    language = voice_settings.get("language") or DEFAULT_LANGUAGE
    gender = voice_settings.get("gender") or "neutral"
    emotion = voice_settings.get("emotion") or "professional"
    return VOICE_MAP.get(f"{language}-{gender}-{emotion}", DEFAULT_VOICE)


def has_mp3_header(audio: bytes) -> bool:
    """MPEG frame sync (0xFFE) or an ID3 tag at the start."""
    if len(audio) < 3:
        return False
    frame_sync = audio[0] == 0xFF and (audio[1] & 0xE0) == 0xE0
    return frame_sync or audio[:3] == b"ID3"


# =============================================================================
# Audio Factory Service
# =============================================================================

class AudioFactory:
    """
    Async VoiceRSS client.

    Example:
        ```python
        async with AudioFactory() as audio:
            result = await audio.synthesize_voice_over(script, {"language": "en-gb", "gender": "female"})
        ```
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Audio Factory.

        Args:
            settings: Application settings
            transport: Optional httpx transport (tests)
        """
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Initialize async HTTP client."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(60.0, connect=10.0),
                transport=self._transport,
            )
        return self._client

    def _fail(self, message: str, status: Optional[int] = None, original_error: Optional[Exception] = None) -> ExternalServiceError:
        app_metrics.external_service_failures_total.labels(service="voicerss").inc()
        logger.error("Voice generation failed", error=message, status=status)
        return ExternalServiceError(message, service="voicerss", status=status, original_error=original_error)

    async def synthesize(self, text: str, voice: str, language: str) -> bytes:
        """
        Synthesize ``text`` to MP3 bytes.

        Raises:
            ExternalServiceError: HTTP failure, empty audio or invalid MP3 data
        """
        start_time = time.perf_counter()
        form = {
            "key": self.settings.voicerss_api_key or "",
            "src": text,
            "hl": language,
            "v": voice,
            "c": AUDIO_CODEC,
            "f": AUDIO_FORMAT,
            "ssml": "false",
            "b64": "false",
        }

        try:
            response = await self._get_client().post(self.settings.voicerss_url, data=form)
        except httpx.RequestError as e:
            raise self._fail(f"VoiceRSS connection error: {e}", original_error=e) from e

        if response.status_code >= 400:
            raise self._fail(f"VoiceRSS API error: {response.status_code}", status=response.status_code)

        audio = response.content
        if len(audio) < MIN_AUDIO_BYTES:
            raise self._fail("VoiceRSS returned invalid or empty audio data")
        if not has_mp3_header(audio):
            logger.error("Invalid MP3 headers detected", first_bytes=audio[:4].hex(), size=len(audio))
            raise self._fail("VoiceRSS returned corrupted audio data (invalid MP3 headers)")

        logger.info(
            "VoiceRSS audio generated",
            size=len(audio),
            voice=voice,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return audio

    async def synthesize_voice_over(
        self,
        script: str,
        voice_settings: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Synthesize a script and package it as a data URL with metadata.

        Returns:
            ``{"voiceUrl": "data:audio/mp3;base64,...", "metadata": {...}}``
        """
        language = (voice_settings or {}).get("language") or DEFAULT_LANGUAGE
        voice = get_voicerss_voice(voice_settings)

        audio = await self.synthesize(script, voice=voice, language=language)

        return {
            "voiceUrl": f"data:audio/mp3;base64,{base64.b64encode(audio).decode('ascii')}",
            "metadata": {
                "provider": "VoiceRSS",
                "voice": voice,
                "language": language,
                "format": AUDIO_CODEC,
                "quality": AUDIO_FORMAT,
                "generatedAt": datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z"),
                "scriptLength": len(script),
                "estimatedDuration": round(len(script.split(" ")) / 2.5),
            },
        }

"""
Optima AI - Transcription
=========================
Deepgram word-level transcription of voice-over audio.
"""

from typing import List, Optional

import httpx
from pydantic import BaseModel

from config import Settings, get_settings
from exceptions import ExternalServiceError
from logging_config import get_logger
import metrics as app_metrics

logger = get_logger(__name__)

DEEPGRAM_PARAMS = {"punctuate": "true", "timestamps": "true"}


class TranscribedWord(BaseModel):
    word: str
    start: float
    end: float


def parse_deepgram_words(payload: dict) -> List[TranscribedWord]:
    """Words of the first alternative of the first channel (empty when absent)."""
    try:
        words = payload["results"]["channels"][0]["alternatives"][0].get("words") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        return []
    return [TranscribedWord.model_validate(word) for word in words]


class DeepgramTranscriber:
    """Client for Deepgram's pre-recorded ``/v1/listen`` endpoint."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def transcribe(self, audio: bytes, content_type: str = "audio/mp3") -> List[TranscribedWord]:
        """
        Transcribe ``audio`` with word timings.

        Raises:
            ExternalServiceError: Deepgram failure (message carries the response body)
        """
        headers = {
            "Authorization": f"Token {self.settings.deepgram_api_key or ''}",
            "Content-Type": content_type,
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0), transport=self._transport) as client:
            try:
                response = await client.post(
                    self.settings.deepgram_url,
                    params=DEEPGRAM_PARAMS,
                    headers=headers,
                    content=audio,
                )
            except httpx.RequestError as e:
                app_metrics.external_service_failures_total.labels(service="deepgram").inc()
                raise ExternalServiceError(f"Deepgram connection error: {e}", service="deepgram", original_error=e) from e

        if response.status_code >= 400:
            app_metrics.external_service_failures_total.labels(service="deepgram").inc()
            logger.error("Deepgram request failed", status=response.status_code)
            raise ExternalServiceError(
                f"Deepgram error: {response.text}",
                service="deepgram",
                status=response.status_code,
            )

        try:
            words = parse_deepgram_words(response.json())
        except ValueError as e:
            app_metrics.external_service_failures_total.labels(service="deepgram").inc()
            raise ExternalServiceError(f"Deepgram returned an invalid body: {e}", service="deepgram", original_error=e) from e

        logger.info("Audio transcribed", audio_bytes=len(audio), word_count=len(words))
        return words

"""
Optima AI - Image Models
========================
Chutes (InfiniteYou) and Grok image generation with a single fallback.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from config import Settings, get_settings
from exceptions import ImageGenerationError
from logging_config import get_logger
import metrics as app_metrics

logger = get_logger(__name__)

GROK_IMAGE_URL = "https://api.x.ai/v1/images/generations"
GROK_IMAGE_MODEL = "grok-2-image-1212"


@dataclass
class GeneratedImage:
    base64: str
    provider: str

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{self.base64}"


class ChutesImageModel:
    """Client for the Chutes InfiniteYou generation endpoint."""

    provider = "chutes"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def generate(self, prompt: str) -> GeneratedImage:
        token = self.settings.chutes_image_api_token
        if not token:
            raise ImageGenerationError("CHUTES_IMAGE_API_TOKEN is not set", provider=self.provider)

        body = {
            "seed": None,
            "steps": 30,
            "prompt": prompt,
            "id_image_b64": "example-string",
            "guidance_scale": 3.5,
            "control_image_b64": None,
            "infusenet_guidance_end": 1,
            "infusenet_guidance_start": 0,
            "infusenet_conditioning_scale": 1,
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0), transport=self._transport) as client:
            try:
                response = await client.post(
                    self.settings.chutes_image_url,
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.RequestError as e:
                raise ImageGenerationError(f"Chutes AI connection error: {e}", provider=self.provider, original_error=e) from e

        if response.status_code >= 400:
            raise ImageGenerationError(
                f"Chutes AI API error: {response.status_code} {response.reason_phrase}",
                provider=self.provider,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ImageGenerationError("Chutes AI returned a non-JSON body", provider=self.provider, original_error=e) from e

        if not isinstance(data, dict):
            raise ImageGenerationError("Chutes AI returned an unexpected body", provider=self.provider)
        if data.get("error"):
            raise ImageGenerationError(f"Chutes AI generation error: {data['error']}", provider=self.provider)
        if not data.get("image"):
            raise ImageGenerationError("No image returned from Chutes AI API", provider=self.provider)

        return GeneratedImage(base64=data["image"], provider=self.provider)


class GrokImageModel:
    """Client for the x.ai image generation API (base64 response)."""

    provider = "grok"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def generate(self, prompt: str) -> GeneratedImage:
        api_key = self.settings.xai_api_key
        if not api_key:
            raise ImageGenerationError("XAI_API_KEY is not set", provider=self.provider)

        body = {
            "model": GROK_IMAGE_MODEL,
            "prompt": prompt,
            "n": 1,
            "response_format": "b64_json",
            "size": "1024x1024",
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0), transport=self._transport) as client:
            try:
                response = await client.post(
                    GROK_IMAGE_URL,
                    json=body,
                    headers={"Authorization": f"Bearer {api_key}"},
                )
            except httpx.RequestError as e:
                raise ImageGenerationError(f"Grok connection error: {e}", provider=self.provider, original_error=e) from e

        if response.status_code >= 400:
            raise ImageGenerationError(
                f"Grok API error: {response.status_code} {response.reason_phrase}",
                provider=self.provider,
            )

        try:
            image = response.json()["data"][0]["b64_json"]
        except (ValueError, KeyError, IndexError, TypeError):
            image = None
        if not image:
            raise ImageGenerationError("No image returned from Grok API", provider=self.provider)

        return GeneratedImage(base64=image, provider=self.provider)


class FallbackImageGenerator:
    """
    Tries the primary model and falls back exactly once to the secondary.

    Example:
        ```python
        images = FallbackImageGenerator()
        image = await images.generate("a lighthouse at dusk")
        ```
    """

    def __init__(
        self,
        primary: Optional[ChutesImageModel] = None,
        fallback: Optional[GrokImageModel] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.primary = primary or ChutesImageModel(settings, transport)
        self.fallback = fallback or GrokImageModel(settings, transport)

    async def generate(self, prompt: str) -> GeneratedImage:
        """
        Raises:
            ImageGenerationError: Both providers failed
        """
        try:
            image = await self.primary.generate(prompt)
            logger.info("Image generated", provider=image.provider)
            return image
        except Exception as primary_error:
            primary_message = _error_message(primary_error)
            logger.warning("Primary image generation failed, falling back", error=primary_message)
            app_metrics.image_fallbacks_total.inc()

            try:
                image = await self.fallback.generate(prompt)
            except Exception as fallback_error:
                fallback_message = _error_message(fallback_error)
                logger.error(
                    "Image generation failed on all providers",
                    primary_error=primary_message,
                    fallback_error=fallback_message,
                )
                raise ImageGenerationError(
                    f"Image generation failed. Chutes: {primary_message}, Grok: {fallback_message}",
                    original_error=fallback_error,
                ) from fallback_error

            logger.info("Image generated", provider=image.provider)
            return image


def _error_message(error: Exception) -> str:
    if isinstance(error, ImageGenerationError):
        return error.message
    return f"{error.__class__.__name__}: {error}"

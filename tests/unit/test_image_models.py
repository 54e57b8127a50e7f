"""
Unit Tests - Image Generation
=============================
Chutes primary, Grok fallback.
"""

import json

import httpx
import pytest
from prometheus_client import REGISTRY

from exceptions import ImageGenerationError
from services.image_models import ChutesImageModel, FallbackImageGenerator, GrokImageModel

CHUTES_HOST = "chutes-infiniteyou.chutes.ai"
GROK_HOST = "api.x.ai"


def fallback_count() -> float:
    return REGISTRY.get_sample_value("image_fallbacks_total") or 0.0


class TestChutes:

    @pytest.mark.unit
    async def test_success(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(200, json={"image": "Y2h1dGVz"})

        image = await ChutesImageModel(settings, upstream.transport).generate("a fox")

        assert image.base64 == "Y2h1dGVz"
        assert image.data_url == "data:image/png;base64,Y2h1dGVz"
        request = upstream.requests_to(CHUTES_HOST)[0]
        assert request.headers["authorization"] == "Bearer test-chutes-token"
        assert json.loads(request.content)["prompt"] == "a fox"

    @pytest.mark.unit
    async def test_error_field_in_body(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(200, json={"error": "nsfw"})

        with pytest.raises(ImageGenerationError, match="Chutes AI generation error: nsfw"):
            await ChutesImageModel(settings, upstream.transport).generate("a fox")

    @pytest.mark.unit
    async def test_non_object_body(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(200, json=["unexpected"])

        with pytest.raises(ImageGenerationError, match="unexpected body"):
            await ChutesImageModel(settings, upstream.transport).generate("a fox")


class TestFallback:

    @pytest.mark.unit
    async def test_primary_success_skips_fallback(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(200, json={"image": "cHJpbWFyeQ=="})

        image = await FallbackImageGenerator(settings=settings, transport=upstream.transport).generate("x")

        assert image.provider == "chutes"
        assert upstream.requests_to(GROK_HOST) == []

    @pytest.mark.unit
    async def test_falls_back_to_grok_once(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(500)
        upstream.routes[GROK_HOST] = lambda request: httpx.Response(200, json={"data": [{"b64_json": "Z3Jvaw=="}]})
        before = fallback_count()

        image = await FallbackImageGenerator(settings=settings, transport=upstream.transport).generate("x")

        assert image.provider == "grok"
        assert image.base64 == "Z3Jvaw=="
        assert len(upstream.requests_to(CHUTES_HOST)) == 1
        grok_body = json.loads(upstream.requests_to(GROK_HOST)[0].content)
        assert grok_body["model"] == "grok-2-image-1212"
        assert grok_body["response_format"] == "b64_json"
        assert fallback_count() == before + 1

    @pytest.mark.unit
    async def test_non_object_primary_body_falls_back(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(200, json=["unexpected"])
        upstream.routes[GROK_HOST] = lambda request: httpx.Response(200, json={"data": [{"b64_json": "Z3Jvaw=="}]})

        image = await FallbackImageGenerator(settings=settings, transport=upstream.transport).generate("x")

        assert image.provider == "grok"
        assert len(upstream.requests_to(GROK_HOST)) == 1

    @pytest.mark.unit
    async def test_unexpected_primary_error_falls_back(self, settings, upstream):
        class BrokenModel:
            async def generate(self, prompt):
                raise RuntimeError("socket closed")

        upstream.routes[GROK_HOST] = lambda request: httpx.Response(200, json={"data": [{"b64_json": "Z3Jvaw=="}]})
        images = FallbackImageGenerator(primary=BrokenModel(), settings=settings, transport=upstream.transport)

        image = await images.generate("x")

        assert image.provider == "grok"

    @pytest.mark.unit
    async def test_both_fail(self, settings, upstream):
        upstream.routes[CHUTES_HOST] = lambda request: httpx.Response(500)
        upstream.routes[GROK_HOST] = lambda request: httpx.Response(200, json={"data": []})

        with pytest.raises(ImageGenerationError) as exc_info:
            await FallbackImageGenerator(settings=settings, transport=upstream.transport).generate("x")

        assert exc_info.value.message == (
            "Image generation failed. Chutes: Chutes AI API error: 500 Internal Server Error, "
            "Grok: No image returned from Grok API"
        )
        assert len(upstream.requests_to(GROK_HOST)) == 1

    @pytest.mark.unit
    async def test_missing_credentials(self, settings, upstream, monkeypatch):
        monkeypatch.setattr(settings, "chutes_image_api_token", None)
        monkeypatch.setattr(settings, "xai_api_key", None)

        with pytest.raises(ImageGenerationError, match="CHUTES_IMAGE_API_TOKEN is not set"):
            await FallbackImageGenerator(settings=settings, transport=upstream.transport).generate("x")

        assert upstream.requests == []
        with pytest.raises(ImageGenerationError, match="XAI_API_KEY is not set"):
            await GrokImageModel(settings, upstream.transport).generate("x")

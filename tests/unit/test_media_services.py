"""
Unit Tests - Media and Tool Services
====================================
VoiceRSS synthesis, Deepgram transcription, the web scraper tool and the
video scriptwriter.
"""

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from exceptions import ExternalServiceError
from services.audio_factory import AudioFactory, get_voicerss_voice, has_mp3_header
from services.scriptwriter import SCRIPT_MODEL, ScriptwriterAgent, count_words
from services.transcription import DeepgramTranscriber, parse_deepgram_words
from services.web_scraper import WebScraper
from fakes import FAKE_MP3, completion_response

VOICERSS_HOST = "api.voicerss.org"
DEEPGRAM_HOST = "api.deepgram.com"
ANYAPI_HOST = "anyapi.io"


class TestVoiceSelection:

    @pytest.mark.unit
    @pytest.mark.parametrize("voice_settings, expected", [
        (None, "John"),
        ({"language": "en-gb", "gender": "female"}, "Kate"),
        ({"gender": "female", "emotion": "friendly"}, "Linda"),
        ({"language": "fr-fr", "gender": "male"}, "John"),
    ])
    def test_voice_map(self, voice_settings, expected):
        assert get_voicerss_voice(voice_settings) == expected

    @pytest.mark.unit
    def test_mp3_header(self):
        assert has_mp3_header(FAKE_MP3) is True
        assert has_mp3_header(b"ID3\x04rest") is True
        assert has_mp3_header(b"<html>") is False


class TestAudioFactory:

    @pytest.mark.unit
    async def test_voice_over(self, settings, upstream):
        upstream.routes[VOICERSS_HOST] = lambda request: httpx.Response(200, content=FAKE_MP3)

        async with AudioFactory(settings, upstream.transport) as audio:
            result = await audio.synthesize_voice_over("Hello there world", {"language": "en-gb", "gender": "male"})

        assert result["voiceUrl"] == "data:audio/mp3;base64," + base64.b64encode(FAKE_MP3).decode()
        metadata = result["metadata"]
        assert metadata["voice"] == "Harry"
        assert metadata["language"] == "en-gb"
        assert metadata["scriptLength"] == len("Hello there world")
        assert metadata["estimatedDuration"] == 1

        form = parse_qs(upstream.requests_to(VOICERSS_HOST)[0].content.decode())
        assert form["key"] == ["test-voicerss-key"]
        assert form["v"] == ["Harry"]
        assert form["c"] == ["MP3"]

    @pytest.mark.unit
    @pytest.mark.parametrize("response, message", [
        (httpx.Response(500), "VoiceRSS API error: 500"),
        (httpx.Response(200, content=b"ERROR: bad key"), "invalid or empty audio"),
        (httpx.Response(200, content=b"<html>" + b"x" * 2000), "invalid MP3 headers"),
    ])
    async def test_rejects_bad_audio(self, settings, upstream, response, message):
        upstream.routes[VOICERSS_HOST] = lambda request: response

        async with AudioFactory(settings, upstream.transport) as audio:
            with pytest.raises(ExternalServiceError, match=message):
                await audio.synthesize_voice_over("Hello")


class TestDeepgram:

    @pytest.mark.unit
    def test_parse_words(self):
        payload = {"results": {"channels": [{"alternatives": [{"words": [
            {"word": "hello", "start": 0.1, "end": 0.4, "confidence": 0.99},
            {"word": "world", "start": 0.5, "end": 0.9},
        ]}]}]}}

        words = parse_deepgram_words(payload)

        assert [(w.word, w.start, w.end) for w in words] == [("hello", 0.1, 0.4), ("world", 0.5, 0.9)]
        assert parse_deepgram_words({"results": {"channels": []}}) == []

    @pytest.mark.unit
    async def test_transcribe(self, settings, upstream):
        upstream.routes[DEEPGRAM_HOST] = lambda request: httpx.Response(200, json={
            "results": {"channels": [{"alternatives": [{"words": [{"word": "hi", "start": 0.0, "end": 0.2}]}]}]}
        })

        words = await DeepgramTranscriber(settings, upstream.transport).transcribe(FAKE_MP3, "audio/mpeg")

        assert words[0].word == "hi"
        request = upstream.requests_to(DEEPGRAM_HOST)[0]
        assert request.headers["authorization"] == "Token test-deepgram-key"
        assert request.headers["content-type"] == "audio/mpeg"
        assert request.url.params["punctuate"] == "true"
        assert request.content == FAKE_MP3

    @pytest.mark.unit
    async def test_failure_carries_body(self, settings, upstream):
        upstream.routes[DEEPGRAM_HOST] = lambda request: httpx.Response(401, text="Invalid credentials")

        with pytest.raises(ExternalServiceError, match="Deepgram error: Invalid credentials"):
            await DeepgramTranscriber(settings, upstream.transport).transcribe(FAKE_MP3)


class TestWebScraper:

    @pytest.mark.unit
    async def test_scrape_with_selector(self, settings, upstream):
        upstream.routes[ANYAPI_HOST] = lambda request: httpx.Response(200, json={"results": ["a", "b"]})

        result = await WebScraper(settings, upstream.transport).scrape("https://example.com", "a", "href")

        assert result["result"]["count"] == 2
        assert result["result"]["attribute"] == "href"
        params = upstream.requests_to(ANYAPI_HOST)[0].url.params
        assert params["url"] == "https://example.com"
        assert params["selector"] == "a"
        assert params["attribute"] == "href"
        assert params["apiKey"] == "test-anyapi-key"

    @pytest.mark.unit
    async def test_attribute_needs_selector(self, settings, upstream):
        upstream.routes[ANYAPI_HOST] = lambda request: httpx.Response(200, json={"results": []})

        result = await WebScraper(settings, upstream.transport).scrape("https://example.com", attribute="href")

        assert "attribute" not in upstream.requests_to(ANYAPI_HOST)[0].url.params
        assert result["result"]["attribute"] == "href"

    @pytest.mark.unit
    async def test_errors_are_returned(self, settings, upstream):
        upstream.routes[ANYAPI_HOST] = lambda request: httpx.Response(502)

        failed = await WebScraper(settings, upstream.transport).scrape("https://example.com")
        invalid = await WebScraper(settings, upstream.transport).scrape("example.com")

        assert failed["error"] == "Failed to scrape website content"
        assert failed["message"] == "Scraping failed with status: 502"
        assert invalid["message"] == "URL must start with http:// or https://"
        assert len(upstream.requests_to(ANYAPI_HOST)) == 1


class TestScriptwriter:

    @pytest.mark.unit
    def test_word_count_splits_on_single_spaces(self):
        assert count_words("one two  three") == 4

    @pytest.mark.unit
    async def test_generate_script(self, settings, registry, upstream):
        upstream.chat_responses.append(completion_response("  Five small wins today. Subscribe!  "))

        script = await ScriptwriterAgent(settings).generate_video_script(
            prompt="small wins", models=registry, video_type="youtube-shorts", duration=30,
        )

        assert script.script == "Five small wins today. Subscribe!"
        assert script.metadata.wordCount == 5
        assert script.metadata.estimatedSpeakingTime == 2
        assert script.metadata.videoType == "youtube-shorts"

        body = upstream.chat_requests()[0]
        assert body["model"] == registry.resolve(SCRIPT_MODEL).upstream
        assert body["max_tokens"] == 1000
        prompt = body["messages"][-1]["content"]
        assert 'User Prompt: "small wins"' in prompt
        assert "Start with a hook" in prompt

"""
Integration Tests - Video Assistant API
=======================================
Script, scene, voice-over and transcription endpoints with the upstream services
scripted.
"""

import json

import httpx
import pytest

from fakes import FAKE_MP3, completion_response

VOICERSS_HOST = "api.voicerss.org"
DEEPGRAM_HOST = "api.deepgram.com"


class TestScript:

    @pytest.mark.integration
    def test_generates_script(self, client, upstream):
        upstream.chat_responses.append(completion_response("Hook. Value. Subscribe!"))

        response = client.post(
            "/api/video-generator/script",
            json={"prompt": "three tips", "videoType": "youtube-shorts", "duration": 30},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["script"] == "Hook. Value. Subscribe!"
        assert body["metadata"]["wordCount"] == 3
        assert body["metadata"]["videoType"] == "youtube-shorts"
        assert body["metadata"]["duration"] == 30

    @pytest.mark.integration
    def test_prompt_required(self, client):
        response = client.post("/api/video-generator/script", json={"videoType": "youtube-shorts"})

        assert response.status_code == 400
        assert response.json() == {"error": "Prompt is required"}

    @pytest.mark.integration
    def test_model_failure(self, client, upstream):
        upstream.chat_responses.append(httpx.Response(401, json={"error": "bad key"}))

        response = client.post("/api/video-generator/script", json={"prompt": "three tips"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate script"}


class TestVoice:

    @pytest.mark.integration
    def test_generates_voice_over(self, client, upstream):
        upstream.routes[VOICERSS_HOST] = lambda request: httpx.Response(200, content=FAKE_MP3)

        response = client.post(
            "/api/video-generator/voice",
            json={"script": "Hello world", "voiceSettings": {"language": "en-us", "gender": "female"}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["voiceUrl"].startswith("data:audio/mp3;base64,")
        assert body["metadata"]["voice"] == "Mary"
        assert body["metadata"]["provider"] == "VoiceRSS"

    @pytest.mark.integration
    def test_script_required(self, client):
        response = client.post("/api/video-generator/voice", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Script is required"}

    @pytest.mark.integration
    def test_corrupted_audio(self, client, upstream):
        upstream.routes[VOICERSS_HOST] = lambda request: httpx.Response(200, content=b"ERROR: The subscription is expired")

        response = client.post("/api/video-generator/voice", json={"script": "Hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate voice-over"}


class TestScenes:

    @pytest.mark.integration
    def test_plans_scenes(self, client, upstream):
        upstream.chat_responses.append(completion_response(json.dumps([
            {"voiceText": "Hook.", "onScreenText": "Look", "visualDescription": "city lights at night"},
            {"voiceText": "Payoff.", "onScreenText": "Wow", "visualDescription": "fireworks"},
        ])))

        response = client.post(
            "/api/video-generator/scenes",
            json={"script": "Hook. Payoff.", "videoType": "youtube-shorts", "duration": "30"},
        )

        assert response.status_code == 200
        body = response.json()
        assert [scene["voiceText"] for scene in body["scenes"]] == ["Hook.", "Payoff."]
        assert body["scenes"][0]["transition"] == "fade"
        assert body["scenes"][0]["backgroundVideo"] == "/api/placeholder/video/1920/1080"
        assert body["metadata"]["totalDuration"] == 30
        assert body["metadata"]["sceneCount"] == 2

    @pytest.mark.integration
    @pytest.mark.parametrize("payload", [
        {"videoType": "youtube-shorts", "duration": 30},
        {"script": "Hi.", "duration": 30},
        {"script": "Hi.", "videoType": "youtube-shorts"},
    ])
    def test_required_fields(self, client, payload):
        response = client.post("/api/video-generator/scenes", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Script, videoType, and duration are required"}

    @pytest.mark.integration
    def test_duration_must_be_numeric(self, client, upstream):
        response = client.post(
            "/api/video-generator/scenes",
            json={"script": "Hi.", "videoType": "youtube-shorts", "duration": "long"},
        )

        assert response.status_code == 400
        assert upstream.requests == []

    @pytest.mark.integration
    def test_model_failure(self, client, upstream):
        upstream.chat_responses.append(httpx.Response(401, json={"error": "bad key"}))

        response = client.post(
            "/api/video-generator/scenes",
            json={"script": "Hi.", "videoType": "youtube-shorts", "duration": 30},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate scenes"}


class TestTranscribe:

    @pytest.mark.integration
    def test_transcribes_raw_body(self, client, upstream):
        upstream.routes[DEEPGRAM_HOST] = lambda request: httpx.Response(200, json={
            "results": {"channels": [{"alternatives": [{"words": [
                {"word": "hello", "start": 0.0, "end": 0.3},
                {"word": "world", "start": 0.4, "end": 0.8},
            ]}]}]}
        })

        response = client.post(
            "/api/video-generator/transcribe",
            content=FAKE_MP3,
            headers={"content-type": "audio/mpeg"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "words": [
                {"word": "hello", "start": 0.0, "end": 0.3},
                {"word": "world", "start": 0.4, "end": 0.8},
            ],
            "wordCount": 2,
        }
        assert upstream.requests_to(DEEPGRAM_HOST)[0].headers["content-type"] == "audio/mpeg"

    @pytest.mark.integration
    def test_empty_body(self, client, upstream):
        response = client.post("/api/video-generator/transcribe", content=b"")

        assert response.status_code == 400
        assert response.json() == {"error": "Audio data is required"}
        assert upstream.requests == []

    @pytest.mark.integration
    def test_deepgram_failure(self, client, upstream):
        upstream.routes[DEEPGRAM_HOST] = lambda request: httpx.Response(400, text="Bad audio")

        response = client.post("/api/video-generator/transcribe", content=FAKE_MP3)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to transcribe audio", "details": "Deepgram error: Bad audio"}

    @pytest.mark.integration
    def test_usage_message(self, client):
        response = client.get("/api/video-generator/transcribe")

        assert response.status_code == 200
        assert response.json() == {"message": "Transcription API endpoint. Use POST with audio data."}

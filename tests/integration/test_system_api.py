"""
Integration Tests - Service Endpoints
=====================================
Health, metrics, request correlation and the model catalogue.
"""

import pytest


class TestServiceEndpoints:

    @pytest.mark.integration
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"] == "healthy"
        assert "groq" in body["services"]["providers_configured"]
        assert "openai" not in body["services"]["providers_configured"]

    @pytest.mark.integration
    def test_root(self, client):
        assert client.get("/").json()["name"] == "Optima AI"

    @pytest.mark.integration
    def test_metrics_use_route_templates(self, client):
        client.get("/api/document/some-document-id")

        text = client.get("/metrics").text

        assert "http_requests_total" in text
        assert 'endpoint="/api/document/{document_id}"' in text
        assert "some-document-id" not in text

    @pytest.mark.integration
    def test_request_id_is_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    @pytest.mark.integration
    def test_request_id_is_generated(self, client):
        assert len(client.get("/").headers["x-request-id"]) == 36

    @pytest.mark.integration
    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}


class TestModelCatalogue:

    @pytest.mark.integration
    def test_models(self, client):
        body = client.get("/api/system/models").json()

        assert body["defaultChatModel"] == "chat-model"
        assert body["chatModels"][0] == {
            "id": "chat-model",
            "name": "Chat model",
            "description": "Primary model for all-purpose chat",
        }
        assert body["entitlements"]["guest"]["maxMessagesPerDay"] == 20
        assert body["entitlements"]["regular"]["maxMessagesPerDay"] == 100
        assert "gemma-3-27b-it" not in body["entitlements"]["guest"]["availableChatModelIds"]

    @pytest.mark.integration
    def test_provider_key_status(self, client):
        body = client.get("/api/system/providers").json()

        assert body["groq"] is True
        assert body["cohere"] is False
        assert all(isinstance(value, bool) for value in body.values())

"""
Unit Tests - Log Sanitizing
===========================
"""

import pytest

from logging_config import sanitize_event


def sanitize(**event):
    return sanitize_event(None, "info", event)


class TestSanitizeEvent:

    @pytest.mark.unit
    def test_redacts_credentials_by_key(self):
        event = sanitize(event="login", password="hunter2", groq_api_key="gsk_x", email="a@b.co")

        assert event["password"] == "***REDACTED***"
        assert event["groq_api_key"] == "***REDACTED***"
        assert event["email"] == "a@b.co"

    @pytest.mark.unit
    def test_token_counters_stay_visible(self):
        assert sanitize(prompt_tokens=12)["prompt_tokens"] == 12

    @pytest.mark.unit
    def test_redacts_nested_keys(self):
        event = sanitize(payload={"newPassword": "x", "token": "abc", "kind": "text"})

        assert event["payload"] == {"newPassword": "***REDACTED***", "token": "***REDACTED***", "kind": "text"}

    @pytest.mark.unit
    def test_redacts_bearer_strings(self):
        event = sanitize(header="Bearer eyJhbGciOi.payload.sig")

        assert event["header"] == "Bearer ***REDACTED***"

    @pytest.mark.unit
    def test_shortens_data_urls(self):
        url = "data:audio/mp3;base64," + "A" * 50

        assert sanitize(audio=url)["audio"] == f"data:audio/mp3;base64,...[{len(url)} chars]"

    @pytest.mark.unit
    def test_truncates_long_strings(self):
        assert sanitize(content="x" * 2000)["content"] == "x" * 100 + "...[truncated]"

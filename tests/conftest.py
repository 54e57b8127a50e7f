"""
Optima AI - Test Configuration
==============================
Pytest fixtures and markers.

External services (language-model providers, image, voice, transcription
and scraping APIs) are replaced by an ``httpx.MockTransport`` that records
every request and answers from scripted responses. The database is a
per-test SQLite file.
"""

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest
import pytest_asyncio

# Add backend to path for imports
BACKEND_PATH = Path(__file__).parent.parent / "apps" / "backend"
sys.path.insert(0, str(BACKEND_PATH))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeUpstream  # noqa: E402

# =============================================================================
# Test Run Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Fast, no I/O, mocks only"
    )
    config.addinivalue_line(
        "markers", "integration: Mocks external APIs but uses a real database"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring live provider keys"
    )


def pytest_collection_modifyitems(config, items):
    """Skip E2E tests unless E2E_ACTIVE is set."""
    if not os.getenv("E2E_ACTIVE"):
        skip_e2e = pytest.mark.skip(
            reason="E2E_ACTIVE not set. Run with E2E_ACTIVE=1 for E2E tests."
        )
        for item in items:
            if "e2e" in item.keywords:
                item.add_marker(skip_e2e)


# =============================================================================
# Settings
# =============================================================================

TEST_ENV = {
    "JWT_SECRET": "test-jwt-secret-0123456789abcdef0123",
    "BCRYPT_ROUNDS": "4",
    "BASE_URL": "http://testserver-ui",
    "SMTP_ENABLED": "true",
    "EMAIL_USER": "reset@example.com",
    "ENVIRONMENT": "test",
    "GROQ_API_KEY": "test-groq-key",
    "GOOGLE_GENERATIVE_AI_API_KEY": "test-google-key",
    "MISTRAL_API_KEY": "test-mistral-key",
    "CEREBRAS_API_KEY": "test-cerebras-key",
    "XAI_API_KEY": "test-xai-key",
    "CHUTES_IMAGE_API_TOKEN": "test-chutes-token",
    "DEEPGRAM_API_KEY": "test-deepgram-key",
    "VOICERSS_API_KEY": "test-voicerss-key",
    "ANYAPI_KEY": "test-anyapi-key",
}


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path) -> Iterator[str]:
    """
    Point settings at fake keys and a per-test SQLite database.

    Yields:
        The database URL for this test
    """
    from config import get_settings

    database_url = f"sqlite+aiosqlite:///{tmp_path / 'optima_test.db'}"
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("DATABASE_URL", database_url)
    for key in ("OPENAI_API_KEY", "COHERE_API_KEY", "TOGETHER_AI_API_KEY", "PEXELS_API_KEY"):
        monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    yield database_url
    get_settings.cache_clear()


@pytest.fixture
def settings(test_env):
    from config import get_settings

    return get_settings()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def registry(settings, upstream):
    from services.providers import ProviderRegistry

    return ProviderRegistry(settings=settings, transport=upstream.transport)


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def database(test_env) -> str:
    from database.session import dispose_engine, init_db

    await init_db(test_env)
    yield test_env
    await dispose_engine(test_env)


@pytest_asyncio.fixture
async def documents(database):
    from services.document_service import DocumentService

    async with DocumentService(database) as service:
        yield service


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
def app(settings, upstream):
    """The FastAPI app with outbound HTTP and the message quota isolated."""
    from dependencies import get_audio_factory, get_quota, get_registry, get_transcriber
    from main import app as fastapi_app
    from rate_limiter import MessageQuota
    from services.audio_factory import AudioFactory
    from services.providers import ProviderRegistry
    from services.transcription import DeepgramTranscriber

    quota = MessageQuota()
    fastapi_app.dependency_overrides[get_registry] = lambda: ProviderRegistry(settings=settings, transport=upstream.transport)
    fastapi_app.dependency_overrides[get_quota] = lambda: quota
    fastapi_app.dependency_overrides[get_audio_factory] = lambda: AudioFactory(settings=settings, transport=upstream.transport)
    fastapi_app.dependency_overrides[get_transcriber] = lambda: DeepgramTranscriber(settings=settings, transport=upstream.transport)
    fastapi_app.state.test_quota = quota
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

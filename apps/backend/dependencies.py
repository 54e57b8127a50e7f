"""
Optima AI - Request Dependencies
================================
FastAPI dependencies shared by the routers. Tests swap them through
``app.dependency_overrides``.
"""

import hashlib
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from fastapi import Depends, Request

from config import get_settings
from exceptions import InvalidTokenError
from rate_limiter import MessageQuota
from services.audio_factory import AudioFactory
from services.auth_tokens import TokenService
from services.document_service import DocumentService
from services.email_service import EmailService
from services.providers import ProviderRegistry
from services.scene_planner import ScenePlanner
from services.scriptwriter import ScriptwriterAgent
from services.transcription import DeepgramTranscriber

# Shared by every request in the process
message_quota = MessageQuota()


@dataclass(frozen=True)
class CurrentUser:
    id: str
    type: str
    email: Optional[str] = None


def get_registry() -> ProviderRegistry:
    return ProviderRegistry(settings=get_settings())


def get_quota() -> MessageQuota:
    return message_quota


def get_token_service() -> TokenService:
    return TokenService(settings=get_settings())


def get_email_service() -> EmailService:
    return EmailService(settings=get_settings())


def get_scriptwriter() -> ScriptwriterAgent:
    return ScriptwriterAgent(settings=get_settings())


def get_audio_factory() -> AudioFactory:
    return AudioFactory(settings=get_settings())


def get_scene_planner(registry: ProviderRegistry = Depends(get_registry)) -> ScenePlanner:
    return ScenePlanner(settings=registry.settings, transport=registry.transport)


def get_transcriber() -> DeepgramTranscriber:
    return DeepgramTranscriber(settings=get_settings())


async def get_documents() -> AsyncIterator[DocumentService]:
    """Document service on a session committed when the request succeeds."""
    async with DocumentService(get_settings().database_url) as documents:
        yield documents


def guest_id_for(request: Request) -> str:
    """Stable guest id for the calling client address."""
    host = request.client.host if request.client else "unknown"
    return "guest-" + hashlib.sha256(host.encode("utf-8")).hexdigest()[:16]


def resolve_user(request: Request, tokens: TokenService) -> CurrentUser:
    """
    Caller from the ``Authorization: Bearer`` access token, else a guest.

    Raises:
        InvalidTokenError: A bearer token was sent but does not verify
    """
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return CurrentUser(id=guest_id_for(request), type="guest")

    payload = tokens.verify_access_token(token.strip())
    user_type = payload.get("type") or "regular"
    if not isinstance(user_type, str):
        raise InvalidTokenError("Invalid access token")
    return CurrentUser(id=payload["id"], type=user_type, email=payload.get("email"))

"""
Chat Router
===========
Streaming chat with artifact and web tools.

Endpoints:
- POST /api/chat - Stream an assistant reply as a data stream
"""

from typing import Any, Dict
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from dependencies import CurrentUser, get_quota, get_registry, get_token_service, resolve_user
from exceptions import InvalidTokenError
from logging_config import get_logger
from rate_limiter import MessageQuota
from schemas import ChatRequest
from services.auth_tokens import TokenService
from services.chat_service import ChatService
from services.data_stream import DATA_STREAM_HEADERS, DATA_STREAM_MEDIA_TYPE, DataStreamWriter, create_data_stream
from services.document_service import DocumentService
from services.providers import ProviderRegistry, get_entitlements

logger = get_logger(__name__)

router = APIRouter()

STREAM_ERROR_MESSAGE = "Oops, an error occurred!"

ERROR_MESSAGES = {
    "bad_request:api": "The request couldn't be processed. Please check your input and try again.",
    "unauthorized:chat": "You need to sign in to view this chat. Please sign in and try again.",
    "forbidden:chat": "You don't have access to this model.",
    "rate_limit:chat": "You have exceeded your maximum number of messages for the day. Please try again later.",
}

ERROR_STATUS = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "rate_limit": 429,
}


def chat_error(code: str) -> JSONResponse:
    """``{"code": "<type>:<surface>", "message": ...}`` with the type's status."""
    status_code = ERROR_STATUS.get(code.split(":", 1)[0], 500)
    return JSONResponse(status_code=status_code, content={"code": code, "message": ERROR_MESSAGES[code]})


@router.post("")
async def chat(
    request: Request,
    registry: ProviderRegistry = Depends(get_registry),
    quota: MessageQuota = Depends(get_quota),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Stream a reply to ``message`` (after any ``history``).

    Guests and account holders are checked against their entitlements:
    the model must be allowed for the user type and the daily message
    quota must not be used up.
    """
    try:
        body = ChatRequest.model_validate(await request.json())
    except (ValueError, PydanticValidationError):
        return chat_error("bad_request:api")

    selected_chat_model = unquote(body.selectedChatModel)

    try:
        user: CurrentUser = resolve_user(request, tokens)
    except InvalidTokenError:
        return chat_error("unauthorized:chat")

    entitlements = get_entitlements(user.type)
    if selected_chat_model not in entitlements.available_chat_model_ids:
        logger.warning("Model not entitled", model=selected_chat_model, user_type=user.type)
        return chat_error("forbidden:chat")

    if not quota.try_consume(user.id, user.type):
        return chat_error("rate_limit:chat")

    messages: list[Dict[str, Any]] = [m.model_dump() for m in body.history]
    messages.append(body.message.model_dump())

    logger.info(
        "Chat request accepted",
        chat_id=body.id,
        model=selected_chat_model,
        user_type=user.type,
        message_count=len(messages),
    )

    async def execute(data_stream: DataStreamWriter) -> None:
        async with DocumentService(registry.settings.database_url) as documents:
            service = ChatService(
                models=registry,
                documents=documents,
                user_id=user.id,
                selected_chat_model=selected_chat_model,
            )
            await service.stream_reply(messages, data_stream)

    return StreamingResponse(
        create_data_stream(execute, on_error=lambda e: STREAM_ERROR_MESSAGE),
        media_type=DATA_STREAM_MEDIA_TYPE,
        headers=DATA_STREAM_HEADERS,
    )

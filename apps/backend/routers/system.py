"""
System Router
=============
Model catalogue, entitlements and provider configuration status.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from dependencies import get_registry
from logging_config import get_logger
from services.providers import (
    CHAT_MODELS,
    DEFAULT_CHAT_MODEL,
    ENTITLEMENTS_BY_USER_TYPE,
    ProviderRegistry,
)

logger = get_logger(__name__)

router = APIRouter()


class ChatModelResponse(BaseModel):
    id: str
    name: str
    description: str


class EntitlementsResponse(BaseModel):
    maxMessagesPerDay: int
    availableChatModelIds: List[str]


class ModelCatalogueResponse(BaseModel):
    """Response schema for the chat model catalogue."""
    defaultChatModel: str
    chatModels: List[ChatModelResponse]
    entitlements: Dict[str, EntitlementsResponse] = Field(..., description="Keyed by user type")


@router.get("/models", response_model=ModelCatalogueResponse)
async def list_models():
    """Selectable chat models and which user types may use them."""
    return ModelCatalogueResponse(
        defaultChatModel=DEFAULT_CHAT_MODEL,
        chatModels=[ChatModelResponse(id=m.id, name=m.name, description=m.description) for m in CHAT_MODELS],
        entitlements={
            user_type: EntitlementsResponse(
                maxMessagesPerDay=entitlements.max_messages_per_day,
                availableChatModelIds=list(entitlements.available_chat_model_ids),
            )
            for user_type, entitlements in ENTITLEMENTS_BY_USER_TYPE.items()
        },
    )


@router.get("/providers", response_model=Dict[str, bool])
async def provider_status(registry: ProviderRegistry = Depends(get_registry)):
    """
    Whether each provider has an API key configured.

    Key values are never returned.
    """
    status = registry.key_status()
    logger.debug("Provider key status requested", configured=sum(status.values()))
    return status

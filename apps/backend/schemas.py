"""
Optima AI - Data Schemas
========================
Pydantic request/response models for the HTTP API.

Request fields the routes report on individually ("Email is required", ...)
are Optional here and checked in the route.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Password Reset
# =============================================================================

class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    newPassword: Optional[str] = None


class VerifyEmailRequest(BaseModel):
    email: Optional[str] = None


class ResetWithCodeRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None
    newPassword: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class SuccessResponse(BaseModel):
    success: bool = True


# =============================================================================
# Chat
# =============================================================================

class ChatMessagePart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class ChatMessage(BaseModel):
    """Client message: plain ``content`` and/or text ``parts``."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    role: str = Field(..., pattern="^(user|assistant|system)$")
    content: Optional[str] = None
    parts: List[ChatMessagePart] = Field(default_factory=list)


class ChatRequest(BaseModel):
    id: str = Field(..., min_length=1)
    message: ChatMessage
    selectedChatModel: str = Field(..., min_length=1)
    selectedVisibilityType: Optional[str] = Field(default="private", pattern="^(public|private)$")
    history: List[ChatMessage] = Field(default_factory=list, description="Earlier turns, oldest first")


# =============================================================================
# Documents
# =============================================================================

class CreateDocumentRequest(BaseModel):
    title: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    selectedChatModel: Optional[str] = None


class UpdateDocumentRequest(BaseModel):
    description: str = Field(..., min_length=1)
    selectedChatModel: Optional[str] = None


class DocumentResponse(BaseModel):
    id: str
    title: str
    content: Optional[str] = None
    kind: str
    userId: str
    createdAt: Optional[str] = None


class SuggestionResponse(BaseModel):
    id: str
    documentId: str
    documentCreatedAt: Optional[str] = None
    originalText: str
    suggestedText: str
    description: Optional[str] = None
    isResolved: bool = False
    userId: str
    createdAt: Optional[str] = None


# =============================================================================
# Video Assistant
# =============================================================================

class ScriptRequest(BaseModel):
    prompt: Optional[str] = None
    videoType: Optional[Any] = None
    duration: Optional[Any] = None


class VoiceSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    language: Optional[str] = None
    gender: Optional[str] = None
    emotion: Optional[str] = None


class VoiceRequest(BaseModel):
    script: Optional[str] = None
    voiceSettings: Optional[VoiceSettings] = None


class TranscriptionResponse(BaseModel):
    success: bool = True
    words: List[Dict[str, Any]]
    wordCount: int


class ScenesRequest(BaseModel):
    script: Optional[str] = None
    videoType: Optional[Any] = None
    duration: Optional[Any] = None

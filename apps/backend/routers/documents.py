"""
Documents Router
================
Artifact create/update streams and stored document reads.

Endpoints:
- POST  /api/document                - Stream creation of a new artifact
- PATCH /api/document/{id}           - Stream an update of an existing artifact
- GET   /api/document/{id}           - Latest version of an artifact
- GET   /api/document/{id}/versions  - Every stored version, oldest first
- GET   /api/document/{id}/suggestions - Writing suggestions stored for the document
"""

from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from database.models import ARTIFACT_KINDS
from dependencies import get_documents, get_registry, get_token_service, resolve_user
from exceptions import DocumentNotFoundError, ValidationError
from logging_config import get_logger
from schemas import CreateDocumentRequest, DocumentResponse, SuggestionResponse, UpdateDocumentRequest
from services.auth_tokens import TokenService
from services.data_stream import DATA_STREAM_HEADERS, DATA_STREAM_MEDIA_TYPE, DataStreamWriter, create_data_stream
from services.document_service import DocumentService
from services.document_tools import DocumentTools
from services.providers import ProviderRegistry

logger = get_logger(__name__)

router = APIRouter()


def _stream_response(execute) -> StreamingResponse:
    return StreamingResponse(
        create_data_stream(execute),
        media_type=DATA_STREAM_MEDIA_TYPE,
        headers=DATA_STREAM_HEADERS,
    )


@router.post("")
async def create_document(
    body: CreateDocumentRequest,
    request: Request,
    registry: ProviderRegistry = Depends(get_registry),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Generate a new artifact and stream its content.

    The stream carries ``kind``, ``id``, ``title`` and ``clear`` parts, the
    kind's content deltas, then ``finish``.
    """
    if body.kind not in ARTIFACT_KINDS:
        raise ValidationError(f"Unsupported document kind: {body.kind}", field="kind", value=body.kind)

    user = resolve_user(request, tokens)

    async def execute(data_stream: DataStreamWriter) -> None:
        async with DocumentService(registry.settings.database_url) as documents:
            tools = DocumentTools(
                data_stream=data_stream,
                models=registry,
                documents=documents,
                user_id=user.id,
                selected_chat_model=body.selectedChatModel,
            )
            result = await tools.create_document(body.title, body.kind)
        data_stream.finish("error" if result.get("error") else "stop")

    return _stream_response(execute)


@router.patch("/{document_id}")
async def update_document(
    document_id: str,
    body: UpdateDocumentRequest,
    request: Request,
    registry: ProviderRegistry = Depends(get_registry),
    tokens: TokenService = Depends(get_token_service),
    documents: DocumentService = Depends(get_documents),
):
    """Regenerate an existing artifact from a change description and stream it."""
    if await documents.get_document_by_id(document_id) is None:
        raise DocumentNotFoundError(document_id)

    user = resolve_user(request, tokens)

    async def execute(data_stream: DataStreamWriter) -> None:
        async with DocumentService(registry.settings.database_url) as stream_documents:
            tools = DocumentTools(
                data_stream=data_stream,
                models=registry,
                documents=stream_documents,
                user_id=user.id,
                selected_chat_model=body.selectedChatModel,
            )
            result = await tools.update_document(document_id, body.description)
        data_stream.finish("error" if result.get("error") else "stop")

    return _stream_response(execute)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    documents: DocumentService = Depends(get_documents),
):
    """Latest stored version of a document."""
    document = await documents.get_document_by_id(document_id)
    if document is None:
        raise DocumentNotFoundError(document_id)
    return DocumentResponse(**document.to_dict())


@router.get("/{document_id}/versions", response_model=List[DocumentResponse])
async def get_document_versions(
    document_id: str,
    documents: DocumentService = Depends(get_documents),
):
    versions = await documents.get_documents_by_id(document_id)
    if not versions:
        raise DocumentNotFoundError(document_id)
    logger.debug("Listed document versions", document_id=document_id, count=len(versions))
    return [DocumentResponse(**version.to_dict()) for version in versions]


@router.get("/{document_id}/suggestions", response_model=List[SuggestionResponse])
async def get_document_suggestions(
    document_id: str,
    documents: DocumentService = Depends(get_documents),
):
    suggestions = await documents.get_suggestions_by_document_id(document_id)
    return [SuggestionResponse(**suggestion.to_dict()) for suggestion in suggestions]

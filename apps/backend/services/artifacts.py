"""
Optima AI - Artifacts
=====================
Document handlers: one create/update pair per artifact kind, each streaming
incremental content to the data stream and returning the final content.

Object-streaming kinds (svg, diagram, code, sheet) ask the model for
``{"<field>": "..."}`` and write the growing field value. Text-streaming kinds
(text, html) stream raw text. ``image`` generates a single base64 image.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from database.models import DocumentModel
from exceptions import DocumentHandlerNotFoundError
from logging_config import get_logger
import metrics as app_metrics
from services.data_stream import DataStreamWriter
from services.document_service import DocumentService
from services.llm_factory import strip_code_fences
from services.prompts import (
    CODE_PROMPT,
    DIAGRAM_PROMPT,
    DIAGRAM_UPDATE_PROMPT,
    HTML_CREATE_REQUIREMENTS,
    HTML_PROMPT,
    HTML_UPDATE_REQUIREMENTS,
    SHEET_PROMPT,
    SVG_CREATE_PROMPT,
    SVG_UPDATE_PROMPT,
    TEXT_PROMPT,
    update_document_prompt,
)
from services.providers import ProviderRegistry

logger = get_logger(__name__)

ARTIFACT_MODEL = "artifact-model"


# =============================================================================
# Handler Contract
# =============================================================================

@dataclass
class CreateDocumentArgs:
    id: str
    title: str
    data_stream: DataStreamWriter
    models: ProviderRegistry
    user_id: Optional[str] = None
    selected_chat_model: Optional[str] = None
    documents: Optional[DocumentService] = None


@dataclass
class UpdateDocumentArgs:
    document: DocumentModel
    description: str
    data_stream: DataStreamWriter
    models: ProviderRegistry
    user_id: Optional[str] = None
    selected_chat_model: Optional[str] = None
    documents: Optional[DocumentService] = None


CreateCallback = Callable[[CreateDocumentArgs], Awaitable[str]]
UpdateCallback = Callable[[UpdateDocumentArgs], Awaitable[str]]


class DocumentHandler:
    """
    Wraps a kind's create/update callbacks with persistence and error reporting.

    After a callback returns, the content is saved as a new document version
    when the caller has a user id. On failure an ``error`` data part is written
    and the exception propagates.
    """

    def __init__(self, kind: str, on_create: CreateCallback, on_update: UpdateCallback):
        self.kind = kind
        self._on_create = on_create
        self._on_update = on_update

    async def _save(
        self,
        documents: Optional[DocumentService],
        id: str,
        title: str,
        content: str,
        user_id: str,
    ) -> None:
        if documents is not None:
            await documents.save_document(id=id, title=title, kind=self.kind, content=content, user_id=user_id)
            return
        async with DocumentService() as service:
            await service.save_document(id=id, title=title, kind=self.kind, content=content, user_id=user_id)

    async def on_create_document(self, args: CreateDocumentArgs) -> str:
        app_metrics.artifact_generations_total.labels(kind=self.kind, operation="create").inc()
        try:
            content = await self._on_create(args)
            if args.user_id:
                await self._save(args.documents, args.id, args.title, content, args.user_id)
        except Exception as e:
            app_metrics.artifact_failures_total.labels(kind=self.kind, operation="create").inc()
            logger.error("Document handler failed", kind=self.kind, operation="create", error=str(e))
            args.data_stream.write_data({
                "type": "error",
                "content": f"Failed to create {self.kind} document: {_error_message(e)}",
            })
            raise

        logger.info("Document created", kind=self.kind, document_id=args.id, content_length=len(content))
        return content

    async def on_update_document(self, args: UpdateDocumentArgs) -> str:
        app_metrics.artifact_generations_total.labels(kind=self.kind, operation="update").inc()
        try:
            content = await self._on_update(args)
            if args.user_id:
                await self._save(args.documents, args.document.id, args.document.title, content, args.user_id)
        except Exception as e:
            app_metrics.artifact_failures_total.labels(kind=self.kind, operation="update").inc()
            logger.error("Document handler failed", kind=self.kind, operation="update", error=str(e))
            args.data_stream.write_data({
                "type": "error",
                "content": f"Failed to update {self.kind} document: {_error_message(e)}",
            })
            raise

        logger.info("Document updated", kind=self.kind, document_id=args.document.id, content_length=len(content))
        return content


def _error_message(error: Exception) -> str:
    return getattr(error, "message", None) or str(error) or "Unknown error"


def create_document_handler(kind: str, on_create: CreateCallback, on_update: UpdateCallback) -> DocumentHandler:
    return DocumentHandler(kind, on_create, on_update)


# =============================================================================
# Streaming Helpers
# =============================================================================

async def _stream_object_field(
    models: ProviderRegistry,
    data_stream: DataStreamWriter,
    delta_type: str,
    field_name: str,
    system: str,
    prompt: str,
) -> str:
    draft = ""
    async with models.language_model(ARTIFACT_MODEL) as llm:
        async for value in llm.stream_object(prompt, field_name, system_prompt=system):
            if value:
                data_stream.write_data({"type": delta_type, "content": value})
                draft = value
    return draft


def _object_stream_handler(
    kind: str,
    field_name: str,
    create_system: Callable[[CreateDocumentArgs], str],
    update_system: Callable[[UpdateDocumentArgs], str],
) -> DocumentHandler:
    delta_type = f"{kind}-delta"

    async def on_create(args: CreateDocumentArgs) -> str:
        return await _stream_object_field(
            args.models, args.data_stream, delta_type, field_name, create_system(args), args.title,
        )

    async def on_update(args: UpdateDocumentArgs) -> str:
        return await _stream_object_field(
            args.models, args.data_stream, delta_type, field_name, update_system(args), args.description,
        )

    return create_document_handler(kind, on_create, on_update)


# =============================================================================
# Handlers
# =============================================================================

svg_document_handler = _object_stream_handler(
    "svg",
    "svg",
    lambda args: SVG_CREATE_PROMPT,
    lambda args: SVG_UPDATE_PROMPT.format(content=args.document.content),
)

diagram_document_handler = _object_stream_handler(
    "diagram",
    "diagram",
    lambda args: DIAGRAM_PROMPT,
    lambda args: DIAGRAM_UPDATE_PROMPT.format(diagram_prompt=DIAGRAM_PROMPT, content=args.document.content),
)

code_document_handler = _object_stream_handler(
    "code",
    "code",
    lambda args: CODE_PROMPT,
    lambda args: update_document_prompt(args.document.content, "code"),
)

sheet_document_handler = _object_stream_handler(
    "sheet",
    "csv",
    lambda args: SHEET_PROMPT,
    lambda args: update_document_prompt(args.document.content, "sheet"),
)


async def _text_create(args: CreateDocumentArgs) -> str:
    draft = ""
    async with args.models.language_model(ARTIFACT_MODEL) as llm:
        async for delta in llm.stream_text(prompt=args.title, system_prompt=TEXT_PROMPT):
            if delta.type == "text":
                draft += delta.text
                args.data_stream.write_data({"type": "text-delta", "content": delta.text})
    return draft


async def _text_update(args: UpdateDocumentArgs) -> str:
    draft = ""
    system = update_document_prompt(args.document.content, "text")
    async with args.models.language_model(ARTIFACT_MODEL) as llm:
        async for delta in llm.stream_text(prompt=args.description, system_prompt=system):
            if delta.type == "text":
                draft += delta.text
                args.data_stream.write_data({"type": "text-delta", "content": delta.text})
    return draft


text_document_handler = create_document_handler("text", _text_create, _text_update)


async def _stream_html(
    models: ProviderRegistry,
    model_id: str,
    data_stream: DataStreamWriter,
    system: str,
    prompt: str,
) -> str:
    draft = ""
    async with models.language_model(model_id) as llm:
        async for delta in llm.stream_text(prompt=prompt, system_prompt=system):
            if delta.type == "text" and delta.text:
                draft += delta.text
                data_stream.write_data({"type": "html-delta", "content": draft})
    return strip_code_fences(draft)


async def _html_create(args: CreateDocumentArgs) -> str:
    return await _stream_html(
        args.models,
        args.selected_chat_model or ARTIFACT_MODEL,
        args.data_stream,
        HTML_PROMPT,
        HTML_CREATE_REQUIREMENTS.format(title=args.title),
    )


async def _html_update(args: UpdateDocumentArgs) -> str:
    return await _stream_html(
        args.models,
        args.selected_chat_model or ARTIFACT_MODEL,
        args.data_stream,
        update_document_prompt(args.document.content, "html"),
        HTML_UPDATE_REQUIREMENTS.format(description=args.description),
    )


html_document_handler = create_document_handler("html", _html_create, _html_update)


async def _generate_image(models: ProviderRegistry, data_stream: DataStreamWriter, prompt: str) -> str:
    image = await models.image_generator().generate(prompt)
    data_stream.write_data({"type": "image-delta", "content": image.base64})
    return image.base64


async def _image_create(args: CreateDocumentArgs) -> str:
    return await _generate_image(args.models, args.data_stream, args.title)


async def _image_update(args: UpdateDocumentArgs) -> str:
    return await _generate_image(args.models, args.data_stream, args.description)


image_document_handler = create_document_handler("image", _image_create, _image_update)


# =============================================================================
# Registry
# =============================================================================

DOCUMENT_HANDLERS_BY_KIND: Dict[str, DocumentHandler] = {
    handler.kind: handler
    for handler in (
        text_document_handler,
        code_document_handler,
        image_document_handler,
        sheet_document_handler,
        html_document_handler,
        svg_document_handler,
        diagram_document_handler,
    )
}


def get_document_handler(kind: str) -> DocumentHandler:
    """
    Raises:
        DocumentHandlerNotFoundError: No handler for ``kind``
    """
    handler = DOCUMENT_HANDLERS_BY_KIND.get(kind)
    if handler is None:
        raise DocumentHandlerNotFoundError(kind)
    return handler

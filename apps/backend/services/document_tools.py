"""
Optima AI - Document Tools
==========================
createDocument / updateDocument operations shared by the chat tool loop and
the document routes, plus the chat-only readDoc and requestSuggestions tools.
"""

import json
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from database.models import ARTIFACT_KINDS, SuggestionModel
from logging_config import get_logger
from services.artifacts import (
    ARTIFACT_MODEL,
    CreateDocumentArgs,
    UpdateDocumentArgs,
    get_document_handler,
)
from services.data_stream import DataStreamWriter
from services.document_service import DocumentService
from services.prompts import READ_DOC_PROMPT, SUGGESTIONS_PROMPT
from services.providers import ProviderRegistry

logger = get_logger(__name__)


CREATE_DOCUMENT_TOOL = {
    "type": "function",
    "function": {
        "name": "createDocument",
        "description": (
            "Create a document for a writing or content creation activities. This tool will call other "
            "functions that will generate the contents of the document based on the title and kind."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "kind": {"type": "string", "enum": list(ARTIFACT_KINDS)},
            },
            "required": ["title", "kind"],
        },
    },
}

UPDATE_DOCUMENT_TOOL = {
    "type": "function",
    "function": {
        "name": "updateDocument",
        "description": "Update a document with the given description.",
        "parameters": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The ID of the document to update"},
                "description": {
                    "type": "string",
                    "description": "The description of changes that need to be made",
                },
            },
            "required": ["id", "description"],
        },
    },
}


READ_DOC_TOOL = {
    "type": "function",
    "function": {
        "name": "readDoc",
        "description": (
            "Read a document and, when asked, modify it. Reading returns the content with a structural "
            "analysis. When modifying, ALWAYS preserve ALL existing content: the result must be the "
            "COMPLETE document with the changes integrated."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The ID of the document to read and potentially modify"},
                "action": {
                    "type": "string",
                    "enum": ["read", "modify"],
                    "description": "Whether to just read the document or read and modify it",
                },
                "instructions": {
                    "type": "string",
                    "description": 'Instructions for modifications (required if action is "modify")',
                },
            },
            "required": ["id", "action"],
        },
    },
}

REQUEST_SUGGESTIONS_TOOL = {
    "type": "function",
    "function": {
        "name": "requestSuggestions",
        "description": "Request suggestions for a document",
        "parameters": {
            "type": "object",
            "properties": {
                "documentId": {"type": "string", "description": "The ID of the document to request edits"},
            },
            "required": ["documentId"],
        },
    },
}

MAX_SUGGESTIONS = 5
PREVIEW_LENGTH = 200


class SuggestionDraft(BaseModel):
    originalSentence: str = Field(..., description="The original sentence")
    suggestedSentence: str = Field(..., description="The suggested sentence")
    description: str = Field(default="", description="The description of the suggestion")


class SuggestionDrafts(BaseModel):
    suggestions: List[SuggestionDraft] = Field(default_factory=list)


def count_words(content: str) -> int:
    """Whitespace-separated runs; empty content counts as one."""
    return len(re.split(r"\s+", content))


def analyze_document_structure(content: str, kind: str) -> Dict[str, Any]:
    """Line counts plus kind-specific structure (headings, definitions, tags)."""
    lines = content.split("\n")
    structure: Dict[str, Any] = {
        "totalLines": len(lines),
        "emptyLines": sum(1 for line in lines if not line.strip()),
    }

    if kind == "text":
        headings = [line for line in lines if line.strip().startswith("#")]
        structure["headings"] = len(headings)
        structure["lists"] = sum(1 for line in lines if line.strip().startswith(("-", "*")))
        structure["headingLevels"] = list(dict.fromkeys(len(h.split(" ")[0]) for h in headings))
    elif kind == "code":
        markers = ("function ", "def ", "const ", "class ")
        structure["codeBlocks"] = sum(1 for line in lines if any(m in line for m in markers))
    elif kind == "html":
        tags = re.findall(r"<[^>]+>", content)
        structure["totalTags"] = len(tags)
        structure["uniqueTags"] = list(dict.fromkeys(re.sub(r"[<>/]", "", tag).split(" ")[0] for tag in tags))
    else:
        structure["type"] = "generic"

    return structure


class DocumentTools:
    """
    Document operations bound to one request's stream, caller and database session.

    No operation raises: failures are reported in the returned result, and
    create/update also write ``error`` and ``finish`` parts to the stream.
    """

    def __init__(
        self,
        data_stream: DataStreamWriter,
        models: ProviderRegistry,
        documents: DocumentService,
        user_id: Optional[str] = None,
        selected_chat_model: Optional[str] = None,
    ):
        self.data_stream = data_stream
        self.models = models
        self.documents = documents
        self.user_id = user_id
        self.selected_chat_model = selected_chat_model

    async def create_document(self, title: str, kind: str) -> Dict[str, Any]:
        document_id = str(uuid.uuid4())
        stream = self.data_stream

        try:
            stream.write_data({"type": "kind", "content": kind})
            stream.write_data({"type": "id", "content": document_id})
            stream.write_data({"type": "title", "content": title})
            stream.write_data({"type": "clear", "content": ""})

            handler = get_document_handler(kind)
            logger.info(
                "Creating artifact",
                kind=kind,
                document_id=document_id,
                model=self.selected_chat_model or ARTIFACT_MODEL,
            )
            await handler.on_create_document(CreateDocumentArgs(
                id=document_id,
                title=title,
                data_stream=stream,
                models=self.models,
                user_id=self.user_id,
                selected_chat_model=self.selected_chat_model,
                documents=self.documents,
            ))

            stream.write_data({"type": "finish", "content": ""})
            return {
                "id": document_id,
                "title": title,
                "kind": kind,
                "content": "A document was created and is now visible to the user.",
            }
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Unknown error"
            logger.error("Failed to create artifact", kind=kind, document_id=document_id, error=message)
            stream.write_data({"type": "error", "content": f"Failed to create {kind} artifact: {message}"})
            stream.write_data({"type": "finish", "content": ""})
            return {
                "id": document_id,
                "title": title,
                "kind": kind,
                "content": (
                    f"Failed to create the {kind} artifact. Error: {message}. "
                    "Please try again or use a different model."
                ),
                "error": True,
            }

    async def update_document(self, id: str, description: str) -> Dict[str, Any]:
        stream = self.data_stream

        try:
            document = await self.documents.get_document_by_id(id)
            if document is None:
                return {"error": "Document not found"}

            stream.write_data({"type": "clear", "content": document.title})

            handler = get_document_handler(document.kind)
            logger.info(
                "Updating artifact",
                kind=document.kind,
                document_id=id,
                model=self.selected_chat_model or ARTIFACT_MODEL,
            )
            await handler.on_update_document(UpdateDocumentArgs(
                document=document,
                description=description,
                data_stream=stream,
                models=self.models,
                user_id=self.user_id,
                selected_chat_model=self.selected_chat_model,
                documents=self.documents,
            ))

            stream.write_data({"type": "finish", "content": ""})
            return {
                "id": id,
                "title": document.title,
                "kind": document.kind,
                "content": "The document has been updated successfully.",
            }
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Unknown error"
            logger.error("Failed to update artifact", document_id=id, error=message)
            stream.write_data({"type": "error", "content": f"Failed to update artifact: {message}"})
            stream.write_data({"type": "finish", "content": ""})
            return {
                "id": id,
                "title": "Update Failed",
                "kind": "text",
                "content": (
                    f"Failed to update the artifact. Error: {message}. "
                    "Please try again or use a different model."
                ),
                "error": True,
            }

    async def read_doc(self, id: str, action: str, instructions: Optional[str] = None) -> Dict[str, Any]:
        """Read a document with an analysis; ``modify`` rewrites it per ``instructions``."""
        document = await self.documents.get_document_by_id(id)
        if document is None:
            return {"error": "Document not found"}

        stream = self.data_stream
        content = document.content or ""
        lines = content.split("\n")
        word_count = count_words(content)

        stream.write_data({"type": "read-doc-start", "content": f'Reading document "{document.title}"...'})
        preview = content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else "")
        stream.write_data({
            "type": "document-analysis",
            "content": json.dumps({
                "title": document.title,
                "kind": document.kind,
                "lineCount": len(lines),
                "wordCount": word_count,
                "preview": preview,
            }),
        })

        if action == "read":
            return {
                "id": document.id,
                "title": document.title,
                "kind": document.kind,
                "content": content,
                "analysis": {
                    "lineCount": len(lines),
                    "wordCount": word_count,
                    "structure": analyze_document_structure(content, document.kind),
                },
            }

        if action != "modify":
            return {"error": "Invalid action specified"}
        if not instructions:
            return {"error": "Instructions are required for modify action"}

        stream.write_data({"type": "applying-changes", "content": f"Analyzing changes needed: {instructions}"})
        model_id = self.selected_chat_model or ARTIFACT_MODEL
        system = READ_DOC_PROMPT.format(
            content=content,
            title=document.title,
            kind=document.kind,
            line_count=len(lines),
            instructions=instructions,
        )

        modified = ""
        try:
            async with self.models.language_model(model_id) as llm:
                async for delta in llm.stream_text(
                    prompt=f"Please read the document content provided and apply the requested changes: {instructions}",
                    system_prompt=system,
                ):
                    if delta.type == "text" and delta.text:
                        modified += delta.text
                        stream.write_data({"type": "text-delta", "content": delta.text})

            if self.user_id:
                await self.documents.save_document(
                    id=document.id,
                    title=document.title,
                    kind=document.kind,
                    content=modified,
                    user_id=self.user_id,
                )
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Unknown error"
            logger.error("Failed to modify document", document_id=id, error=message)
            stream.write_data({"type": "error", "content": f"Failed to modify document: {message}"})
            return {"error": f"Failed to modify document: {message}"}

        stream.write_data({"type": "changes-applied", "content": "Document successfully updated with requested changes."})
        logger.info("Document modified", document_id=id, model=model_id, content_length=len(modified))
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind,
            "content": modified,
            "changes": "Document has been successfully modified based on your instructions.",
        }

    async def request_suggestions(self, document_id: str) -> Dict[str, Any]:
        """
        Generate up to five sentence-level suggestions for a document.

        Each suggestion is written to the stream as a ``suggestion`` part and
        stored against the current document version.
        """
        document = await self.documents.get_document_by_id(document_id)
        if document is None or not document.content:
            return {"error": "Document not found"}

        try:
            async with self.models.language_model(ARTIFACT_MODEL) as llm:
                drafts = await llm.generate_structured(
                    prompt=document.content,
                    pydantic_model=SuggestionDrafts,
                    system_prompt=SUGGESTIONS_PROMPT,
                )
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Unknown error"
            logger.error("Failed to generate suggestions", document_id=document_id, error=message)
            self.data_stream.write_data({"type": "error", "content": f"Failed to generate suggestions: {message}"})
            return {"error": f"Failed to generate suggestions: {message}"}

        suggestions = []
        for draft in drafts.suggestions[:MAX_SUGGESTIONS]:
            suggestion = {
                "originalText": draft.originalSentence,
                "suggestedText": draft.suggestedSentence,
                "description": draft.description,
                "id": str(uuid.uuid4()),
                "documentId": document_id,
                "isResolved": False,
            }
            self.data_stream.write_data({"type": "suggestion", "content": suggestion})
            suggestions.append(suggestion)

        if self.user_id and suggestions:
            created_at = datetime.utcnow()
            await self.documents.save_suggestions([
                SuggestionModel(
                    id=suggestion["id"],
                    document_id=document_id,
                    document_created_at=document.created_at,
                    original_text=suggestion["originalText"],
                    suggested_text=suggestion["suggestedText"],
                    description=suggestion["description"],
                    is_resolved=False,
                    user_id=self.user_id,
                    created_at=created_at,
                )
                for suggestion in suggestions
            ])

        logger.info("Suggestions generated", document_id=document_id, count=len(suggestions))
        return {
            "id": document_id,
            "title": document.title,
            "kind": document.kind,
            "message": "Suggestions have been added to the document",
        }

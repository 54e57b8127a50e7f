"""
Optima AI - Chat Service
========================
Streams a chat reply with tool calls through the data stream, for up to
MAX_STEPS model steps.
"""

import json
from typing import Any, Dict, List, Optional

from logging_config import get_logger
from services.data_stream import DataStreamWriter
from services.document_service import DocumentService
from services.document_tools import (
    CREATE_DOCUMENT_TOOL,
    READ_DOC_TOOL,
    REQUEST_SUGGESTIONS_TOOL,
    UPDATE_DOCUMENT_TOOL,
    DocumentTools,
)
from services.llm_factory import StepFinish, StreamDelta, ToolCall
from services.prompts import system_prompt
from services.providers import ProviderRegistry, get_max_tokens_for_model, supports_tools
from services.web_scraper import WEB_SCRAPER_TOOL, WebScraper

logger = get_logger(__name__)

MAX_STEPS = 5

_FINISH_REASONS = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "content_filter": "content-filter",
}


def to_model_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert client messages (``content`` and/or text ``parts``) to chat
    completion messages. Roles other than user and assistant are dropped.
    """
    converted = []
    for message in messages:
        role = message.get("role")
        if role not in ("user", "assistant"):
            continue
        parts = message.get("parts") or []
        text = "".join(p.get("text", "") for p in parts if p.get("type") == "text")
        converted.append({"role": role, "content": text or message.get("content") or ""})
    return converted


class ChatService:
    """
    Runs the tool loop for one chat request.

    Example:
        ```python
        chat = ChatService(registry, documents, user_id, "chat-model")
        await chat.stream_reply(messages, writer)
        ```
    """

    def __init__(
        self,
        models: ProviderRegistry,
        documents: DocumentService,
        user_id: Optional[str],
        selected_chat_model: str,
        scraper: Optional[WebScraper] = None,
    ):
        self.models = models
        self.documents = documents
        self.user_id = user_id
        self.selected_chat_model = selected_chat_model
        self.scraper = scraper or WebScraper(settings=models.settings, transport=models.transport)

    @property
    def tools_enabled(self) -> bool:
        return supports_tools(self.selected_chat_model)

    def tool_definitions(self) -> Optional[List[Dict[str, Any]]]:
        if not self.tools_enabled:
            return None
        return [
            CREATE_DOCUMENT_TOOL,
            UPDATE_DOCUMENT_TOOL,
            REQUEST_SUGGESTIONS_TOOL,
            READ_DOC_TOOL,
            WEB_SCRAPER_TOOL,
        ]

    async def execute_tool(self, call: ToolCall, data_stream: DataStreamWriter) -> Dict[str, Any]:
        """Run one tool call; malformed arguments produce an error result."""
        args = call.args
        document_tools = DocumentTools(
            data_stream=data_stream,
            models=self.models,
            documents=self.documents,
            user_id=self.user_id,
            selected_chat_model=self.selected_chat_model,
        )

        if call.name == "createDocument":
            if not isinstance(args.get("title"), str) or not isinstance(args.get("kind"), str):
                return {"error": "createDocument requires string 'title' and 'kind'"}
            return await document_tools.create_document(args["title"], args["kind"])

        if call.name == "updateDocument":
            if not isinstance(args.get("id"), str) or not isinstance(args.get("description"), str):
                return {"error": "updateDocument requires string 'id' and 'description'"}
            return await document_tools.update_document(args["id"], args["description"])

        if call.name == "requestSuggestions":
            if not isinstance(args.get("documentId"), str):
                return {"error": "requestSuggestions requires a string 'documentId'"}
            return await document_tools.request_suggestions(args["documentId"])

        if call.name == "readDoc":
            if not isinstance(args.get("id"), str) or not isinstance(args.get("action"), str):
                return {"error": "readDoc requires string 'id' and 'action'"}
            instructions = args.get("instructions")
            return await document_tools.read_doc(
                args["id"], args["action"], instructions if isinstance(instructions, str) else None,
            )

        if call.name == "webScraper":
            if not isinstance(args.get("url"), str):
                return {"error": "webScraper requires a string 'url'"}
            return await self.scraper.scrape(args["url"], args.get("selector"), args.get("attribute"))

        logger.warning("Model called an unknown tool", tool=call.name)
        return {"error": f"Unknown tool: {call.name}"}

    async def stream_reply(self, messages: List[Dict[str, Any]], data_stream: DataStreamWriter) -> None:
        """
        Stream the assistant reply to ``messages``.

        Raises:
            UnknownModelError: Selected model is not registered
            ProviderError: Upstream model failure
        """
        llm = self.models.language_model(self.selected_chat_model)
        tools = self.tool_definitions()
        max_tokens = get_max_tokens_for_model(self.selected_chat_model)
        conversation: List[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt(self.selected_chat_model)},
            *to_model_messages(messages),
        ]
        if tools is None:
            logger.info("Tools disabled for model", model=self.selected_chat_model)

        finish_reason = "stop"
        async with llm:
            for step in range(MAX_STEPS):
                text = ""
                calls: List[ToolCall] = []

                async for event in llm.chat_completion_stream(conversation, tools=tools, max_tokens=max_tokens):
                    if isinstance(event, StreamDelta):
                        if event.type == "reasoning":
                            data_stream.write_reasoning(event.text)
                        else:
                            text += event.text
                            data_stream.write_text(event.text)
                    elif isinstance(event, ToolCall):
                        calls.append(event)
                        data_stream.write_tool_call(event.id, event.name, event.args)
                    elif isinstance(event, StepFinish):
                        finish_reason = _FINISH_REASONS.get(event.finish_reason, event.finish_reason)

                if not calls:
                    data_stream.finish_step(finish_reason)
                    break

                finish_reason = "tool-calls"
                conversation.append({
                    "role": "assistant",
                    "content": text or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.args)},
                        }
                        for call in calls
                    ],
                })
                for call in calls:
                    result = await self.execute_tool(call, data_stream)
                    data_stream.write_tool_result(call.id, result)
                    conversation.append({
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(result),
                    })

                data_stream.finish_step(finish_reason)
                logger.debug("Chat step complete", step=step + 1, tool_calls=len(calls))

        data_stream.finish(finish_reason)

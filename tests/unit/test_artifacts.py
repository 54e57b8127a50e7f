"""
Unit Tests - Document Handlers
==============================
Per-kind artifact generation streamed through the data stream.
"""

import json
from types import SimpleNamespace

import httpx
import pytest

from exceptions import DocumentHandlerNotFoundError, ProviderError
from services.artifacts import (
    DOCUMENT_HANDLERS_BY_KIND,
    CreateDocumentArgs,
    UpdateDocumentArgs,
    get_document_handler,
)
from services.data_stream import DataStreamWriter
from fakes import text_stream


def create_args(registry, title="A red circle", documents=None, user_id=None, selected_chat_model=None):
    return CreateDocumentArgs(
        id="doc-1",
        title=title,
        data_stream=DataStreamWriter(),
        models=registry,
        user_id=user_id,
        selected_chat_model=selected_chat_model,
        documents=documents,
    )


def update_args(registry, kind, content, description="Make it blue"):
    document = SimpleNamespace(id="doc-1", title="Shape", kind=kind, content=content)
    return UpdateDocumentArgs(
        document=document,
        description=description,
        data_stream=DataStreamWriter(),
        models=registry,
    )


class TestRegistry:

    @pytest.mark.unit
    def test_every_artifact_kind_has_a_handler(self):
        assert set(DOCUMENT_HANDLERS_BY_KIND) == {"text", "code", "image", "sheet", "html", "svg", "diagram"}

    @pytest.mark.unit
    def test_unknown_kind(self):
        with pytest.raises(DocumentHandlerNotFoundError, match="No document handler found for kind: sandbox"):
            get_document_handler("sandbox")


class TestSvgHandler:

    @pytest.mark.unit
    async def test_streams_monotonically_growing_deltas(self, registry, upstream):
        svg = '<svg viewBox="0 0 10 10"><circle r="4" fill="red"/></svg>'
        encoded = json.dumps({"svg": svg})
        pieces = [encoded[i:i + 7] for i in range(0, len(encoded), 7)]
        upstream.chat_responses.append(text_stream(*pieces))
        args = create_args(registry)

        content = await get_document_handler("svg").on_create_document(args)

        deltas = [part["content"] for part in args.data_stream.parts_of_type("svg-delta")]
        assert content == svg
        assert deltas[-1] == svg
        assert len(deltas) > 1
        for previous, current in zip(deltas, deltas[1:]):
            assert current.startswith(previous)
            assert len(current) > len(previous)

    @pytest.mark.unit
    async def test_update_sends_current_content(self, registry, upstream):
        upstream.chat_responses.append(text_stream('{"svg": "<svg fill=\\"blue\\"/>"}'))
        args = update_args(registry, "svg", '<svg fill="red"/>')

        content = await get_document_handler("svg").on_update_document(args)

        assert content == '<svg fill="blue"/>'
        messages = upstream.chat_requests()[0]["messages"]
        assert '<svg fill="red"/>' in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "Make it blue"}


class TestOtherKinds:

    @pytest.mark.unit
    async def test_sheet_streams_csv_field(self, registry, upstream):
        upstream.chat_responses.append(text_stream('{"csv": "a,b\\n1,2"}'))
        args = create_args(registry, title="Numbers")

        content = await get_document_handler("sheet").on_create_document(args)

        assert content == "a,b\n1,2"
        assert args.data_stream.parts_of_type("sheet-delta")[-1]["content"] == "a,b\n1,2"

    @pytest.mark.unit
    async def test_text_streams_increments(self, registry, upstream):
        upstream.chat_responses.append(text_stream("# Title", "\n\nBody"))
        args = create_args(registry, title="Essay")

        content = await get_document_handler("text").on_create_document(args)

        assert content == "# Title\n\nBody"
        assert [p["content"] for p in args.data_stream.parts_of_type("text-delta")] == ["# Title", "\n\nBody"]

    @pytest.mark.unit
    async def test_html_streams_accumulated_draft_with_selected_model(self, registry, upstream):
        upstream.chat_responses.append(text_stream("```html\n<p>", "Hi</p>\n```"))
        args = create_args(registry, title="Landing page", selected_chat_model="gemini-2.0-flash")

        content = await get_document_handler("html").on_create_document(args)

        deltas = [p["content"] for p in args.data_stream.parts_of_type("html-delta")]
        assert deltas == ["```html\n<p>", "```html\n<p>Hi</p>\n```"]
        assert content == "<p>Hi</p>"
        assert upstream.chat_requests()[0]["model"] == "gemini-2.0-flash"

    @pytest.mark.unit
    async def test_image_writes_single_base64_delta(self, registry, upstream):
        upstream.routes["chutes-infiniteyou.chutes.ai"] = lambda request: httpx.Response(200, json={"image": "aW1n"})
        args = create_args(registry, title="A lighthouse")

        content = await get_document_handler("image").on_create_document(args)

        assert content == "aW1n"
        assert args.data_stream.parts_of_type("image-delta") == [{"type": "image-delta", "content": "aW1n"}]


class TestPersistenceAndErrors:

    @pytest.mark.unit
    async def test_content_is_saved_for_a_user(self, registry, upstream, documents):
        upstream.chat_responses.append(text_stream('{"code": "print(1)"}'))
        args = create_args(registry, title="Hello script", documents=documents, user_id="user-1")

        await get_document_handler("code").on_create_document(args)

        stored = await documents.get_document_by_id("doc-1")
        assert stored.kind == "code"
        assert stored.content == "print(1)"
        assert stored.user_id == "user-1"

    @pytest.mark.unit
    async def test_failure_writes_error_part_and_raises(self, registry, upstream):
        upstream.chat_responses.append(httpx.Response(401, json={"error": "bad key"}))
        args = create_args(registry)

        with pytest.raises(ProviderError):
            await get_document_handler("svg").on_create_document(args)

        errors = args.data_stream.parts_of_type("error")
        assert len(errors) == 1
        assert errors[0]["content"].startswith("Failed to create svg document: ")

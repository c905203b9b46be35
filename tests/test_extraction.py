"""Tests for extraction backends (mocked API calls) and payload parsing."""

import asyncio
import json
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from magazzino.config import load_config
from magazzino.errors import ExtractionEmpty, ExtractionTimeout
from magazzino.extraction import (
    ExtractedDocument,
    ExtractionBackend,
    create_backend,
    extract_with_retry,
)
from magazzino.extraction.claude import ClaudeExtractionBackend
from magazzino.extraction.gemini import GeminiExtractionBackend
from magazzino.extraction.payload import parse_extraction_payload, strip_fences

SAMPLE = {
    "documents": [
        {
            "supplier": "Ortofrutta Rossi",
            "documentNumber": "FT-12",
            "date": "05/03/2024",
            "isCreditNote": False,
            "totalAmount": 42.5,
            "products": [
                {"code": "M1", "name": "Mele", "quantity": 10, "unit": "KG",
                 "unitPrice": 2.5, "totalPrice": 25, "category": "Frutta"},
                {"name": "Lattuga", "quantity": "3", "unit": "UD"},
            ],
        }
    ]
}


class TestParsePayload:
    def test_object_with_documents(self):
        docs = parse_extraction_payload(json.dumps(SAMPLE))
        assert len(docs) == 1
        doc = docs[0]
        assert doc.supplier == "Ortofrutta Rossi"
        assert doc.document_number == "FT-12"
        assert doc.date == "2024-03-05"
        assert doc.due_date == "2024-03-05"
        assert doc.total_amount == 42.5
        assert [p.name for p in doc.products] == ["Mele", "Lattuga"]
        assert doc.products[1].quantity == 3.0
        assert doc.products[1].unit_price == 0.0
        assert doc.products[1].code == ""

    def test_bare_list_in_fences(self):
        text = "```json\n" + json.dumps(SAMPLE["documents"]) + "\n```"
        docs = parse_extraction_payload(text)
        assert docs[0].document_number == "FT-12"

    def test_explicit_due_date(self):
        item = dict(SAMPLE["documents"][0], dueDate="2024-04-30")
        docs = parse_extraction_payload(json.dumps([item]))
        assert docs[0].due_date == "2024-04-30"

    def test_multiple_documents(self):
        second = dict(SAMPLE["documents"][0], documentNumber="FT-13", isCreditNote=True)
        docs = parse_extraction_payload(json.dumps([SAMPLE["documents"][0], second]))
        assert [d.document_number for d in docs] == ["FT-12", "FT-13"]
        assert docs[1].is_credit_note

    def test_missing_products_gives_empty_list(self):
        docs = parse_extraction_payload(json.dumps([{"supplier": "X", "date": "2024-01-01"}]))
        assert docs[0].products == []

    @pytest.mark.parametrize("text", [None, "", "   ", "non json", "{}", "[]", '{"documents": []}'])
    def test_empty_or_invalid(self, text):
        with pytest.raises(ExtractionEmpty):
            parse_extraction_payload(text)

    def test_strip_fences_leaves_plain_json(self):
        assert strip_fences('  {"a": 1} ') == '{"a": 1}'


class TestCreateBackend:
    def test_default_is_gemini(self):
        assert isinstance(create_backend(load_config()), GeminiExtractionBackend)

    def test_claude(self):
        config = load_config()
        config.extraction.backend = "claude"
        assert isinstance(create_backend(config), ClaudeExtractionBackend)

    def test_unknown(self):
        config = load_config()
        config.extraction.backend = "ocr"
        with pytest.raises(ValueError, match="Backend di estrazione sconosciuto"):
            create_backend(config)


class TestGeminiExtractionBackend:
    @pytest.fixture
    def gemini_modules(self):
        mock_model = MagicMock()
        mock_model.generate_content_async = AsyncMock(
            return_value=MagicMock(text=json.dumps(SAMPLE))
        )
        mock_genai = MagicMock()
        mock_genai.GenerativeModel.return_value = mock_model

        api_exceptions = SimpleNamespace(
            ServiceUnavailable=type("ServiceUnavailable", (Exception,), {}),
            DeadlineExceeded=type("DeadlineExceeded", (Exception,), {}),
            InternalServerError=type("InternalServerError", (Exception,), {}),
        )
        mock_api_core = MagicMock()
        mock_api_core.exceptions = api_exceptions

        mock_google = MagicMock()
        mock_google.generativeai = mock_genai
        mock_google.api_core = mock_api_core
        return {
            "google": mock_google,
            "google.generativeai": mock_genai,
            "google.api_core": mock_api_core,
            "google.api_core.exceptions": api_exceptions,
        }

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        backend = GeminiExtractionBackend(api_key="")
        with pytest.raises(ValueError, match="Chiave API Gemini"):
            await backend.extract_documents(b"%PDF", "application/pdf")

    @pytest.mark.asyncio
    async def test_extract_mocked(self, gemini_modules):
        with patch.dict(sys.modules, gemini_modules):
            backend = GeminiExtractionBackend(api_key="test-key")
            docs = await backend.extract_documents(b"%PDF", "application/pdf")

        mock_genai = gemini_modules["google.generativeai"]
        mock_model = mock_genai.GenerativeModel.return_value
        assert docs[0].supplier == "Ortofrutta Rossi"
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert kwargs["generation_config"]["response_mime_type"] == "application/json"
        parts = mock_model.generate_content_async.call_args.args[0]
        assert parts[0] == {"mime_type": "application/pdf", "data": b"%PDF"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name", ["ServiceUnavailable", "DeadlineExceeded", "InternalServerError"]
    )
    async def test_service_error_is_translated(self, gemini_modules, name):
        error = getattr(gemini_modules["google.api_core.exceptions"], name)
        mock_model = gemini_modules["google.generativeai"].GenerativeModel.return_value
        mock_model.generate_content_async.side_effect = error("503 unavailable")

        with patch.dict(sys.modules, gemini_modules):
            with pytest.raises(ConnectionError, match="503"):
                await GeminiExtractionBackend(api_key="k").extract_documents(b"x", "image/png")

    @pytest.mark.asyncio
    async def test_service_unavailable_is_retried_once(self, gemini_modules):
        unavailable = gemini_modules["google.api_core.exceptions"].ServiceUnavailable
        mock_model = gemini_modules["google.generativeai"].GenerativeModel.return_value
        mock_model.generate_content_async.side_effect = [
            unavailable("503 unavailable"),
            MagicMock(text=json.dumps(SAMPLE)),
        ]

        with patch.dict(sys.modules, gemini_modules):
            backend = GeminiExtractionBackend(api_key="k")
            docs = await extract_with_retry(backend, b"x", "image/png", backoff_s=0)

        assert docs[0].document_number == "FT-12"
        assert mock_model.generate_content_async.await_count == 2

    @pytest.mark.asyncio
    async def test_repeated_service_errors_become_timeout(self, gemini_modules):
        unavailable = gemini_modules["google.api_core.exceptions"].ServiceUnavailable
        mock_model = gemini_modules["google.generativeai"].GenerativeModel.return_value
        mock_model.generate_content_async.side_effect = unavailable("503 unavailable")

        with patch.dict(sys.modules, gemini_modules):
            with pytest.raises(ExtractionTimeout):
                await extract_with_retry(
                    GeminiExtractionBackend(api_key="k"), b"x", "image/png", backoff_s=0
                )
        assert mock_model.generate_content_async.await_count == 2


class TestClaudeExtractionBackend:
    @pytest.fixture
    def mock_anthropic(self):
        response = MagicMock()
        response.content = [MagicMock(text=json.dumps(SAMPLE))]
        client = AsyncMock()
        client.messages.create = AsyncMock(return_value=response)

        module = MagicMock()
        module.AsyncAnthropic.return_value = client
        module.APIConnectionError = type("APIConnectionError", (Exception,), {})
        return module

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        backend = ClaudeExtractionBackend(api_key="")
        with pytest.raises(ValueError, match="Chiave API Anthropic"):
            await backend.extract_documents(b"\xff\xd8", "image/jpeg")

    @pytest.mark.asyncio
    async def test_pdf_uses_document_block(self, mock_anthropic):
        with patch.dict(sys.modules, {"anthropic": mock_anthropic}):
            backend = ClaudeExtractionBackend(api_key="test-key")
            docs = await backend.extract_documents(b"%PDF", "application/pdf")

        assert docs[0].document_number == "FT-12"
        client = mock_anthropic.AsyncAnthropic.return_value
        content = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "document"
        assert content[0]["source"]["media_type"] == "application/pdf"

    @pytest.mark.asyncio
    async def test_image_uses_image_block(self, mock_anthropic):
        with patch.dict(sys.modules, {"anthropic": mock_anthropic}):
            await ClaudeExtractionBackend(api_key="k").extract_documents(b"\xff\xd8", "image/jpeg")

        client = mock_anthropic.AsyncAnthropic.return_value
        content = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"

    @pytest.mark.asyncio
    async def test_connection_error_is_translated(self, mock_anthropic):
        client = mock_anthropic.AsyncAnthropic.return_value
        client.messages.create.side_effect = mock_anthropic.APIConnectionError("down")

        with patch.dict(sys.modules, {"anthropic": mock_anthropic}):
            with pytest.raises(ConnectionError):
                await ClaudeExtractionBackend(api_key="k").extract_documents(b"x", "image/png")


class _ScriptedBackend(ExtractionBackend):
    """Replays a list of outcomes, one per call."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def extract_documents(self, data, media_type):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if outcome == "hang":
            await asyncio.sleep(10)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestExtractWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        backend = _ScriptedBackend([[ExtractedDocument(supplier="A")]])
        docs = await extract_with_retry(backend, b"", "image/png", backoff_s=0)
        assert docs[0].supplier == "A"
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_retried_once_then_fails(self):
        backend = _ScriptedBackend(["hang", "hang"])
        with pytest.raises(ExtractionTimeout):
            await extract_with_retry(backend, b"", "image/png", timeout_s=0.01, backoff_s=0)
        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self):
        backend = _ScriptedBackend([ConnectionError("reset"), [ExtractedDocument(supplier="B")]])
        docs = await extract_with_retry(backend, b"", "image/png", backoff_s=0)
        assert docs[0].supplier == "B"
        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_empty_is_not_retried(self):
        backend = _ScriptedBackend([ExtractionEmpty("vuoto"), []])
        with pytest.raises(ExtractionEmpty):
            await extract_with_retry(backend, b"", "image/png", backoff_s=0)
        assert backend.calls == 1

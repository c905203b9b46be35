"""Gemini API extraction backend."""

from __future__ import annotations

from . import ExtractedDocument, ExtractionBackend
from .payload import SYSTEM_INSTRUCTION, USER_PROMPT, parse_extraction_payload


class GeminiExtractionBackend(ExtractionBackend):
    """Extract invoices and delivery notes using Google Gemini's JSON mode."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def extract_documents(
        self, data: bytes, media_type: str
    ) -> list[ExtractedDocument]:
        if not self._api_key:
            raise ValueError(
                "Chiave API Gemini non configurata. "
                "Controllare il file di configurazione o la variabile GEMINI_API_KEY."
            )

        try:
            import google.generativeai as genai
            from google.api_core import exceptions as google_exceptions
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install 'magazzino[gemini]'"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(
            self._model,
            system_instruction=SYSTEM_INSTRUCTION,
            generation_config={
                "response_mime_type": "application/json",
                "temperature": 0,
                "top_p": 1,
            },
        )

        try:
            response = await model.generate_content_async(
                [{"mime_type": media_type, "data": data}, USER_PROMPT]
            )
        except (
            google_exceptions.ServiceUnavailable,
            google_exceptions.DeadlineExceeded,
            google_exceptions.InternalServerError,
        ) as e:
            raise ConnectionError(str(e)) from e
        return parse_extraction_payload(response.text)

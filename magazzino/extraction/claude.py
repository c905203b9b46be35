"""Claude API extraction backend."""

from __future__ import annotations

import base64
import json

from . import ExtractedDocument, ExtractionBackend
from .payload import (
    RESPONSE_SCHEMA,
    SYSTEM_INSTRUCTION,
    USER_PROMPT,
    parse_extraction_payload,
)

_SCHEMA_HINT = (
    "Rispondi solo con un oggetto JSON conforme a questo schema:\n"
    + json.dumps(RESPONSE_SCHEMA, ensure_ascii=False)
)


class ClaudeExtractionBackend(ExtractionBackend):
    """Extract invoices and delivery notes using Claude's document and vision input."""

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def extract_documents(
        self, data: bytes, media_type: str
    ) -> list[ExtractedDocument]:
        if not self._api_key:
            raise ValueError(
                "Chiave API Anthropic non configurata. "
                "Controllare il file di configurazione o la variabile ANTHROPIC_API_KEY."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install 'magazzino[claude]'"
            ) from None

        block_type = "document" if media_type == "application/pdf" else "image"
        content: list[dict] = [
            {
                "type": block_type,
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.standard_b64encode(data).decode(),
                },
            },
            {"type": "text", "text": f"{USER_PROMPT}\n\n{_SCHEMA_HINT}"},
        ]

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        try:
            response = await client.messages.create(
                model=self._model,
                max_tokens=8192,
                temperature=0,
                system=SYSTEM_INSTRUCTION,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.APIConnectionError as e:
            raise ConnectionError(str(e)) from e

        text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        return parse_extraction_payload(text)

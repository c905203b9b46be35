"""Extraction backend base class, data types, factory and retry wrapper."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..errors import ExtractionTimeout

if TYPE_CHECKING:
    from ..config import MagazzinoConfig

logger = logging.getLogger(__name__)

# Failures worth one more attempt
_RETRYABLE = (asyncio.TimeoutError, TimeoutError, ConnectionError)


@dataclass
class ExtractedProduct:
    """A product line as returned by the extraction service, already coerced.

    Missing numbers are 0 and missing strings are "".
    """

    code: str = ""
    name: str = ""
    quantity: float = 0.0
    unit: str = ""
    unit_price: float = 0.0
    total_price: float = 0.0
    category: str = ""


@dataclass
class ExtractedDocument:
    supplier: str = ""
    document_number: str = ""
    date: str = ""  # YYYY-MM-DD
    due_date: str = ""  # YYYY-MM-DD
    is_credit_note: bool = False
    total_amount: float = 0.0
    products: list[ExtractedProduct] = field(default_factory=list)


class ExtractionBackend(ABC):
    """Abstract base for structured data extraction from document files."""

    @abstractmethod
    async def extract_documents(
        self, data: bytes, media_type: str
    ) -> list[ExtractedDocument]:
        """Extract every document contained in one file (PDF or image).

        A single file may hold several documents.

        Raises:
            ExtractionEmpty: The service answered without usable documents.
            ConnectionError: Transient network failure.
        """
        ...


def create_backend(config: MagazzinoConfig) -> ExtractionBackend:
    """Create an extraction backend based on configuration."""
    backend_name = config.extraction.backend

    match backend_name:
        case "gemini":
            from .gemini import GeminiExtractionBackend

            return GeminiExtractionBackend(
                api_key=config.extraction.gemini.api_key,
                model=config.extraction.gemini.model,
            )
        case "claude":
            from .claude import ClaudeExtractionBackend

            return ClaudeExtractionBackend(
                api_key=config.extraction.claude.api_key,
                model=config.extraction.claude.model,
            )
        case _:
            raise ValueError(
                f"Backend di estrazione sconosciuto: {backend_name!r}  "
                f"(scegliere tra gemini / claude)"
            )


async def extract_with_retry(
    backend: ExtractionBackend,
    data: bytes,
    media_type: str,
    timeout_s: float = 25.0,
    backoff_s: float = 1.0,
    retries: int = 1,
) -> list[ExtractedDocument]:
    """Run an extraction bounded by ``timeout_s``, retrying transient failures.

    Timeouts and connection errors are retried ``retries`` times after
    ``backoff_s`` seconds. Any other error (including ExtractionEmpty)
    propagates immediately.

    Raises:
        ExtractionTimeout: Every attempt timed out or failed to connect.
    """
    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(
                backend.extract_documents(data, media_type), timeout=timeout_s
            )
        except _RETRYABLE as e:
            attempt += 1
            logger.warning("Estrazione fallita (tentativo %d): %r", attempt, e)
            if attempt > retries:
                raise ExtractionTimeout(
                    "Il servizio di estrazione non risponde. Riprovare più tardi."
                ) from e
            await asyncio.sleep(backoff_s)

"""Exception hierarchy for the warehouse module."""

from __future__ import annotations


class MagazzinoError(Exception):
    """Base class for all warehouse errors."""


class DocumentNotFound(MagazzinoError, KeyError):
    """No document with the given id in the current state."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ExtractionError(MagazzinoError):
    """The document-extraction service could not produce usable data."""


class ExtractionTimeout(ExtractionError):
    """Extraction timed out or hit a network failure after the allowed retry."""


class ExtractionEmpty(ExtractionError):
    """Extraction returned no documents or no product lines."""


class PersistenceError(MagazzinoError):
    """A persistence backend rejected a read or write."""


class PersistenceSchemaMismatch(PersistenceError):
    """The remote table lacks one or more optional columns."""


class PersistenceTransient(PersistenceError):
    """Network or service failure while talking to a persistence backend."""


class BatchIngestError(MagazzinoError):
    """A multi-file upload stopped at a failing file.

    Documents from earlier files stay added; ``remaining`` lists the files
    that were never processed.
    """

    def __init__(
        self,
        message: str,
        *,
        added: list | None = None,
        failed_path: str = "",
        remaining: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.added = added or []
        self.failed_path = failed_path
        self.remaining = remaining or []

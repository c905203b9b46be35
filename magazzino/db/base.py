"""Persistence adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..errors import PersistenceError
from ..models import Document


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store call. Adapters report failures here instead of raising."""

    ok: bool
    value: Any = None
    error: PersistenceError | None = None

    @classmethod
    def success(cls, value: Any = None) -> StoreResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: PersistenceError) -> StoreResult:
        return cls(ok=False, error=error)

    def unwrap(self) -> Any:
        """Return the value, raising the stored error on failure."""
        if not self.ok:
            raise self.error
        return self.value


class DocumentStore(ABC):
    """A place documents are replicated to: upsert and delete by id, bulk fetch."""

    @abstractmethod
    def fetch_all(self) -> StoreResult:
        """Return every stored document (``value`` is a list of Document)."""
        ...

    @abstractmethod
    def upsert(self, doc: Document) -> StoreResult:
        ...

    @abstractmethod
    def delete(self, doc_id: str) -> StoreResult:
        ...

    def close(self) -> None:
        pass

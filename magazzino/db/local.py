"""Local durable document store (SQLite key-value by collection)."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from ..errors import PersistenceError
from ..models import COLLECTIONS, Document
from .base import DocumentStore, StoreResult
from .schema import ensure_schema

logger = logging.getLogger(__name__)


class LocalDocumentStore(DocumentStore):
    """Keeps each document collection as one JSON array in the ``collections`` table."""

    def __init__(self, db_path: str | Path = "~/.config/magazzino/magazzino.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def load_collection(self, name: str) -> StoreResult:
        """Read one collection; a missing or corrupt payload reads as empty."""
        try:
            row = self._get_conn().execute(
                "SELECT payload FROM collections WHERE name = ?", (name,)
            ).fetchone()
        except sqlite3.Error as e:
            return StoreResult.failure(
                PersistenceError(f"Lettura della collezione {name} fallita: {e}")
            )
        if row is None:
            return StoreResult.success([])

        try:
            items = json.loads(row["payload"])
        except json.JSONDecodeError:
            logger.warning("Collezione %s illeggibile, la considero vuota", name)
            return StoreResult.success([])
        docs = [Document.from_dict(d) for d in items if isinstance(d, dict)]
        return StoreResult.success(docs)

    def save_collection(self, name: str, docs: list[Document]) -> StoreResult:
        payload = json.dumps([d.to_dict() for d in docs], ensure_ascii=False)
        try:
            conn = self._get_conn()
            conn.execute(
                """INSERT INTO collections (name, payload, updated_at)
                   VALUES (?, ?, datetime('now', 'localtime'))
                   ON CONFLICT(name) DO UPDATE SET
                     payload = excluded.payload,
                     updated_at = excluded.updated_at""",
                (name, payload),
            )
            conn.commit()
        except sqlite3.Error as e:
            return StoreResult.failure(
                PersistenceError(f"Salvataggio della collezione {name} fallito: {e}")
            )
        logger.debug("Collezione %s salvata (%d documenti)", name, len(docs))
        return StoreResult.success(len(docs))

    def fetch_all(self) -> StoreResult:
        docs: list[Document] = []
        for name in COLLECTIONS.values():
            result = self.load_collection(name)
            if not result.ok:
                return result
            docs.extend(result.value)
        return StoreResult.success(docs)

    def upsert(self, doc: Document) -> StoreResult:
        result = self.load_collection(doc.collection)
        if not result.ok:
            return result
        docs = [d for d in result.value if d.id != doc.id]
        if len(docs) == len(result.value):
            docs.insert(0, doc)
        else:
            docs = [doc if d.id == doc.id else d for d in result.value]
        return self.save_collection(doc.collection, docs)

    def delete(self, doc_id: str) -> StoreResult:
        for name in COLLECTIONS.values():
            result = self.load_collection(name)
            if not result.ok:
                return result
            kept = [d for d in result.value if d.id != doc_id]
            if len(kept) != len(result.value):
                return self.save_collection(name, kept)
        return StoreResult.success(0)

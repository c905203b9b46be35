"""Remote document store backed by a Supabase ``documents`` table."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import PersistenceSchemaMismatch, PersistenceTransient
from ..models import Document
from .base import DocumentStore, StoreResult

logger = logging.getLogger(__name__)

# Columns added after the first table layout; older tables may lack them
OPTIONAL_COLUMNS = ("due_date", "payment_status", "paid_amount", "is_credit_note")


def is_schema_error(error: Exception) -> bool:
    """True for PostgREST "unknown column" failures."""
    if getattr(error, "code", None) == "PGRST204":
        return True
    message = getattr(error, "message", None) or str(error)
    return "column" in str(message).lower()


def to_record(doc: Document) -> dict[str, Any]:
    """Map a Document to a table row; products stay embedded as JSON."""
    return {
        "id": doc.id,
        "document_number": doc.document_number or "N/D",
        "date": doc.date,
        "due_date": doc.due_date or doc.date or None,
        "supplier": doc.supplier or "Fornitore Sconosciuto",
        "total_amount": doc.total_amount,
        "paid_amount": doc.paid_amount,
        "file_name": doc.file_name,
        "type": doc.type,
        "payment_status": doc.payment_status,
        "is_credit_note": doc.is_credit_note,
        "extracted_products": [p.to_dict() for p in doc.extracted_products],
    }


def from_record(row: dict[str, Any]) -> Document:
    data = dict(row)
    data["due_date"] = row.get("due_date") or row.get("date")
    data["status"] = "processed"
    return Document.from_dict(data)


class SupabaseDocumentStore(DocumentStore):
    """Best-effort replica of the document collections.

    When the table lacks the optional columns, the first failing upsert is
    retried without them and later upserts skip them for the rest of the
    session.
    """

    def __init__(
        self,
        url: str = "",
        api_key: str = "",
        table: str = "documents",
        client: Any = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._table = table
        self._client = client
        self._degraded = False

    @property
    def degraded(self) -> bool:
        return self._degraded

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._url or not self._api_key:
                raise ValueError(
                    "Supabase non configurato. "
                    "Controllare il file di configurazione o SUPABASE_URL / SUPABASE_ANON_KEY."
                )
            try:
                from supabase import create_client
            except ImportError:
                raise ImportError(
                    "supabase SDK is required: pip install 'magazzino[remote]'"
                ) from None
            self._client = create_client(self._url, self._api_key)
        return self._client

    def _record(self, doc: Document) -> dict[str, Any]:
        record = to_record(doc)
        if self._degraded:
            for column in OPTIONAL_COLUMNS:
                record.pop(column, None)
        return record

    def fetch_all(self) -> StoreResult:
        try:
            response = (
                self._get_client()
                .table(self._table)
                .select("*")
                .order("date", desc=True)
                .execute()
            )
        except Exception as e:
            logger.warning("Lettura dal cloud fallita: %s", e)
            return StoreResult.failure(PersistenceTransient(str(e)))
        rows = response.data or []
        return StoreResult.success([from_record(r) for r in rows if isinstance(r, dict)])

    def _send(self, record: dict[str, Any]) -> None:
        self._get_client().table(self._table).upsert(record, on_conflict="id").execute()

    def upsert(self, doc: Document) -> StoreResult:
        try:
            self._send(self._record(doc))
            return StoreResult.success(doc.id)
        except Exception as e:
            if self._degraded or not is_schema_error(e):
                logger.warning("Sincronizzazione di %s fallita: %s", doc.id, e)
                return StoreResult.failure(PersistenceTransient(str(e)))
            logger.warning(
                "Tabella %s senza colonne %s, riprovo senza", self._table,
                ", ".join(OPTIONAL_COLUMNS),
            )

        self._degraded = True
        try:
            self._send(self._record(doc))
        except Exception as e:
            logger.warning("Sincronizzazione ridotta di %s fallita: %s", doc.id, e)
            return StoreResult.failure(PersistenceSchemaMismatch(str(e)))
        return StoreResult.success(doc.id)

    def delete(self, doc_id: str) -> StoreResult:
        try:
            self._get_client().table(self._table).delete().eq("id", doc_id).execute()
        except Exception as e:
            logger.warning("Eliminazione di %s dal cloud fallita: %s", doc_id, e)
            return StoreResult.failure(PersistenceTransient(str(e)))
        return StoreResult.success(doc_id)

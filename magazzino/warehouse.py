"""Application service: state, persistence, merge and extraction wired together."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from . import state as reducers
from .db import DocumentStore, LocalDocumentStore, StoreResult, SupabaseDocumentStore
from .errors import BatchIngestError, DocumentNotFound, MagazzinoError
from .extraction import ExtractionBackend, create_backend, extract_with_retry
from .ingest import (
    documents_from_extraction,
    physical_count_from_extraction,
    physical_count_from_rows,
)
from .ledger import available_years, build_inventory
from .merge import merge_documents
from .models import COLLECTIONS, PHYSICAL_COUNT, Document, InventoryEntry
from .payments import add_installment, set_payment_status
from .reconciliation import ReconciliationSummary, reconcile_count
from .spreadsheet import read_rows
from .state import AppState

if TYPE_CHECKING:
    from .config import MagazzinoConfig

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = (".xlsx", ".xlsm", ".csv")


class Warehouse:
    """Holds the current document state and keeps the stores in step.

    Every change is applied to the in-memory state and written to the local
    store first. The remote store, when configured, is updated afterwards and
    its failures are only logged.
    """

    def __init__(
        self,
        local: LocalDocumentStore,
        remote: DocumentStore | None = None,
        backend: ExtractionBackend | None = None,
        timeout_s: float = 25.0,
        retry_backoff_s: float = 1.0,
    ) -> None:
        self._local = local
        self._remote = remote
        self._backend = backend
        self._timeout_s = timeout_s
        self._retry_backoff_s = retry_backoff_s
        self._state = AppState()

    @classmethod
    def from_config(cls, config: MagazzinoConfig) -> Warehouse:
        remote = None
        if config.remote.enabled:
            remote = SupabaseDocumentStore(
                url=config.remote.url,
                api_key=config.remote.api_key,
                table=config.remote.table,
            )
        return cls(
            local=LocalDocumentStore(config.database.path),
            remote=remote,
            backend=create_backend(config),
            timeout_s=config.extraction.timeout_s,
            retry_backoff_s=config.extraction.retry_backoff_s,
        )

    @property
    def state(self) -> AppState:
        return self._state

    def close(self) -> None:
        self._local.close()
        if self._remote is not None:
            self._remote.close()

    # -- persistence -------------------------------------------------------

    def load(self) -> AppState:
        """Read local collections, then merge in the remote copy if reachable."""
        new_state = AppState()
        for name in COLLECTIONS.values():
            docs = self._local.load_collection(name).unwrap()
            new_state = new_state.with_collection(name, docs)

        if self._remote is not None:
            result = self._remote.fetch_all()
            if result.ok and result.value:
                remote_docs: list[Document] = result.value
                for name in COLLECTIONS.values():
                    incoming = [d for d in remote_docs if d.collection == name]
                    merged = merge_documents(new_state.collection(name), incoming)
                    new_state = new_state.with_collection(name, merged)
                logger.info("Sincronizzati %d documenti dal cloud", len(remote_docs))
            elif not result.ok:
                logger.warning("Cloud non raggiungibile, uso solo i dati locali")

        self._commit(new_state, COLLECTIONS.values())
        return self._state

    def _commit(self, new_state: AppState, collections: Iterable[str]) -> None:
        self._state = new_state
        for name in collections:
            self._local.save_collection(name, list(new_state.collection(name))).unwrap()

    def _replicate_upsert(self, doc: Document) -> StoreResult | None:
        if self._remote is None:
            return None
        result = self._remote.upsert(doc)
        if not result.ok:
            logger.warning("Documento %s salvato solo in locale: %s", doc.id, result.error)
        return result

    def _replicate_delete(self, doc_id: str) -> StoreResult | None:
        if self._remote is None:
            return None
        result = self._remote.delete(doc_id)
        if not result.ok:
            logger.warning("Eliminazione di %s non propagata al cloud: %s", doc_id, result.error)
        return result

    def sync(self) -> int:
        """Push every local document to the remote store.

        Returns:
            Number of documents the remote accepted.
        """
        if self._remote is None:
            raise MagazzinoError("Nessun archivio cloud configurato.")
        pushed = 0
        for doc in self._state.all_documents():
            result = self._replicate_upsert(doc)
            if result is not None and result.ok:
                pushed += 1
        logger.info("Inviati al cloud %d documenti", pushed)
        return pushed

    # -- documents ---------------------------------------------------------

    def get_document(self, doc_id: str) -> Document:
        doc = reducers.find_document(self._state, doc_id)
        if doc is None:
            raise DocumentNotFound(f"Documento non trovato: {doc_id}")
        return doc

    def add_document(self, doc: Document) -> Document:
        self._commit(reducers.add_document(self._state, doc), [doc.collection])
        logger.info("Aggiunto documento %s (%s)", doc.id, doc.type)
        self._replicate_upsert(doc)
        return doc

    def update_document(self, doc: Document) -> Document:
        self.get_document(doc.id)
        self._commit(reducers.update_document(self._state, doc), [doc.collection])
        logger.info("Aggiornato documento %s", doc.id)
        self._replicate_upsert(doc)
        return doc

    def delete_document(self, doc_id: str) -> None:
        doc = self.get_document(doc_id)
        self._commit(reducers.delete_document(self._state, doc_id), [doc.collection])
        logger.info("Eliminato documento %s", doc_id)
        self._replicate_delete(doc_id)

    def set_payment_status(self, doc_id: str, status: str) -> Document:
        return self.update_document(set_payment_status(self.get_document(doc_id), status))

    def add_installment(self, doc_id: str, amount: float) -> Document:
        doc = self.get_document(doc_id)
        updated = add_installment(doc, amount)
        if updated is doc:
            return doc
        return self.update_document(updated)

    def reset_warehouse(self, year: int | None = None) -> list[str]:
        """Remove invoices and delivery notes (optionally only one year's)."""
        new_state, removed = reducers.reset_warehouse(self._state, year)
        self._commit(new_state, ["invoices", "deliveryNotes"])
        logger.info("Svuotamento magazzino: rimossi %d documenti", len(removed))
        for doc_id in removed:
            self._replicate_delete(doc_id)
        return removed

    # -- derived views -----------------------------------------------------

    def inventory(self) -> list[InventoryEntry]:
        return build_inventory(self._state.warehouse_documents)

    def available_years(self) -> list[int]:
        return available_years(self._state.warehouse_documents)

    def reconcile(self, doc_id: str) -> ReconciliationSummary:
        doc = self.get_document(doc_id)
        if doc.type != PHYSICAL_COUNT:
            raise MagazzinoError(f"Il documento {doc_id} non è un inventario fisico.")
        return reconcile_count(doc, self.inventory())

    # -- ingestion ---------------------------------------------------------

    async def _extract(self, path: Path):
        if self._backend is None:
            raise MagazzinoError("Nessun backend di estrazione configurato.")
        media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return await extract_with_retry(
            self._backend,
            path.read_bytes(),
            media_type,
            timeout_s=self._timeout_s,
            backoff_s=self._retry_backoff_s,
        )

    async def ingest_files(
        self, paths: Iterable[str | Path], doc_type: str
    ) -> list[Document]:
        """Extract and add documents from each file, one file at a time.

        Raises:
            BatchIngestError: A file failed. Documents from earlier files are
                kept; later files are not processed.
        """
        pending = [Path(p) for p in paths]
        added: list[Document] = []
        for i, path in enumerate(pending):
            try:
                extracted = await self._extract(path)
                docs = documents_from_extraction(extracted, doc_type, path.name)
            except Exception as e:
                logger.exception("Elaborazione di %s fallita", path.name)
                raise BatchIngestError(
                    f"Errore durante l'elaborazione di {path.name}: {e}",
                    added=added,
                    failed_path=str(path),
                    remaining=[str(p) for p in pending[i + 1:]],
                ) from e
            for doc in docs:
                added.append(self.add_document(doc))
            logger.info("File %s: %d documenti", path.name, len(docs))
        return added

    async def import_physical_count(self, path: str | Path) -> Document:
        """Add a physical count from a spreadsheet or a scanned document."""
        path = Path(path)
        entries = self.inventory()
        if path.suffix.lower() in SPREADSHEET_SUFFIXES:
            doc = physical_count_from_rows(read_rows(path), entries, path.name)
        else:
            extracted = await self._extract(path)
            doc = physical_count_from_extraction(extracted, entries, path.name)
        return self.add_document(doc)

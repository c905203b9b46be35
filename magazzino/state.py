"""Immutable application state and the reducers that produce new states.

Every change returns a new ``AppState``; documents are only ever added,
replaced whole or removed.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from .models import COLLECTIONS, WAREHOUSE_TYPES, Document
from .normalize import parse_iso_date

# Attribute name on AppState per collection name
_FIELDS = {
    "invoices": "invoices",
    "deliveryNotes": "delivery_notes",
    "physicalCounts": "physical_counts",
    "reviewInvoices": "review_invoices",
}


@dataclass(frozen=True)
class AppState:
    invoices: tuple[Document, ...] = ()
    delivery_notes: tuple[Document, ...] = ()
    physical_counts: tuple[Document, ...] = ()
    review_invoices: tuple[Document, ...] = ()

    def collection(self, name: str) -> tuple[Document, ...]:
        return getattr(self, _FIELDS[name])

    def with_collection(self, name: str, docs) -> AppState:
        return dataclasses.replace(self, **{_FIELDS[name]: tuple(docs)})

    @property
    def warehouse_documents(self) -> tuple[Document, ...]:
        return self.invoices + self.delivery_notes

    def all_documents(self) -> tuple[Document, ...]:
        return (
            self.invoices + self.delivery_notes
            + self.physical_counts + self.review_invoices
        )


def find_document(state: AppState, doc_id: str) -> Document | None:
    for doc in state.all_documents():
        if doc.id == doc_id:
            return doc
    return None


def add_document(state: AppState, doc: Document) -> AppState:
    """Prepend a document to its collection."""
    name = COLLECTIONS[doc.type]
    return state.with_collection(name, (doc,) + state.collection(name))


def update_document(state: AppState, doc: Document) -> AppState:
    """Replace the document with the same id, in place. Unknown ids are a no-op."""
    name = COLLECTIONS[doc.type]
    docs = state.collection(name)
    if not any(d.id == doc.id for d in docs):
        return state
    return state.with_collection(name, (doc if d.id == doc.id else d for d in docs))


def delete_document(state: AppState, doc_id: str) -> AppState:
    for name in COLLECTIONS.values():
        docs = state.collection(name)
        kept = tuple(d for d in docs if d.id != doc_id)
        if len(kept) != len(docs):
            return state.with_collection(name, kept)
    return state


def reset_warehouse(
    state: AppState, year: int | None = None
) -> tuple[AppState, list[str]]:
    """Remove invoices and delivery notes, all of them or those dated in ``year``.

    Returns:
        The new state and the ids that were removed.
    """
    removed: list[str] = []
    for doc_type in WAREHOUSE_TYPES:
        name = COLLECTIONS[doc_type]
        kept = []
        for doc in state.collection(name):
            parsed = parse_iso_date(doc.date)
            if year is None or (parsed is not None and parsed.year == year):
                removed.append(doc.id)
            else:
                kept.append(doc)
        state = state.with_collection(name, kept)
    return state, removed

"""Merge of local and remote copies of a document collection."""

from __future__ import annotations

from typing import Iterable

from .models import PAID, PARTIAL, Document

_PRIORITY = {PAID: 2, PARTIAL: 1}


def payment_priority(doc: Document) -> int:
    return _PRIORITY.get(doc.payment_status, 0)


def merge_documents(
    local: Iterable[Document], remote: Iterable[Document]
) -> list[Document]:
    """Merge by id, newest date first.

    Remote-only documents are added. For ids present on both sides the copy
    with the higher payment priority wins and ties go to the remote copy.
    A legitimate remote downgrade (e.g. a refund back to unpaid) is therefore
    masked while the local copy says paid.
    """
    merged: dict[str, Document] = {doc.id: doc for doc in local}
    for doc in remote:
        existing = merged.get(doc.id)
        if existing is None or payment_priority(doc) >= payment_priority(existing):
            merged[doc.id] = doc
    return sorted(merged.values(), key=lambda d: d.date, reverse=True)

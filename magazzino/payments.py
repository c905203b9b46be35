"""Payment tracking for review invoices: status transitions and aggregates."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .models import PAID, PARTIAL, PAYMENT_STATUSES, UNPAID, Document
from .normalize import parse_iso_date

DOC_TYPE_FILTERS = ("all", "invoice", "creditNote")
PAYMENT_FILTERS = ("all", PAID, UNPAID, PARTIAL)
SORT_FIELDS = ("date", "dueDate", "supplier")
DOCUMENT_GROUPINGS = ("none", "supplier", "day", "week", "month", "year")

_MONTH_NAMES = {
    "it": [
        "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
        "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
    ],
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
}


def set_payment_status(doc: Document, status: str) -> Document:
    """Select a payment status directly.

    ``paid`` sets the paid amount to the total, ``unpaid`` resets it to 0 and
    ``partial`` keeps whatever has been paid so far.

    Raises:
        ValueError: Unknown status.
    """
    if status not in PAYMENT_STATUSES:
        raise ValueError(f"Stato di pagamento sconosciuto: {status}")

    paid_amount = doc.paid_amount
    if status == PAID:
        paid_amount = doc.total_amount
    elif status == UNPAID:
        paid_amount = 0.0
    return dataclasses.replace(doc, payment_status=status, paid_amount=paid_amount)


def add_installment(doc: Document, amount: float) -> Document:
    """Apply a partial payment, clamped to the document total.

    Non-positive amounts are ignored and the document is returned unchanged.
    """
    if amount is None or amount <= 0:
        return doc
    new_paid = min(doc.total_amount, doc.paid_amount + amount)
    status = PAID if new_paid >= doc.total_amount else PARTIAL
    return dataclasses.replace(doc, payment_status=status, paid_amount=new_paid)


@dataclass
class PaymentStats:
    """Totals split by polarity: payables for invoices, credits for credit notes."""

    paid: float = 0.0
    unpaid: float = 0.0
    received_credits: float = 0.0
    pending_credits: float = 0.0
    partial_residue: float = 0.0


def payment_stats(documents: Iterable[Document]) -> PaymentStats:
    stats = PaymentStats()
    for doc in documents:
        if doc.payment_status == PAID:
            paid_value = doc.total_amount
        elif doc.payment_status == PARTIAL:
            paid_value = doc.paid_amount
        else:
            paid_value = 0.0
        remaining = doc.total_amount - paid_value

        if doc.payment_status == PARTIAL:
            stats.partial_residue += remaining

        if doc.is_credit_note:
            stats.received_credits += paid_value
            stats.pending_credits += remaining
        else:
            stats.paid += paid_value
            stats.unpaid += remaining
    return stats


def filter_documents(
    documents: Iterable[Document],
    doc_type: str = "all",
    payment: str = "all",
    supplier: str | None = None,
) -> list[Document]:
    """Filter review documents. The ``unpaid`` filter also keeps partial ones."""
    if doc_type not in DOC_TYPE_FILTERS:
        raise ValueError(f"Filtro tipo documento sconosciuto: {doc_type}")
    if payment not in PAYMENT_FILTERS:
        raise ValueError(f"Filtro pagamento sconosciuto: {payment}")

    result = []
    for doc in documents:
        if doc_type == "invoice" and doc.is_credit_note:
            continue
        if doc_type == "creditNote" and not doc.is_credit_note:
            continue
        if supplier and doc.supplier != supplier:
            continue
        if payment == UNPAID:
            if doc.payment_status not in (UNPAID, PARTIAL):
                continue
        elif payment != "all" and doc.payment_status != payment:
            continue
        result.append(doc)
    return result


def sort_documents(
    documents: Iterable[Document], field: str = "date", descending: bool = True
) -> list[Document]:
    """Sort by date, due date (falling back to date) or supplier name."""
    match field:
        case "date":
            key = lambda d: d.date  # noqa: E731
        case "dueDate":
            key = lambda d: d.due_date or d.date  # noqa: E731
        case "supplier":
            key = lambda d: d.supplier.lower()  # noqa: E731
        case _:
            raise ValueError(f"Campo di ordinamento sconosciuto: {field}")
    return sorted(documents, key=key, reverse=descending)


def _group_key(doc: Document, by: str, language: str, today: date) -> str:
    parsed = parse_iso_date(doc.date)
    if parsed is None:
        return "Altro" if language == "it" else "Other"

    match by:
        case "day":
            if parsed == today:
                return "Oggi" if language == "it" else "Today"
            return parsed.strftime("%d/%m/%Y")
        case "week":
            iso_year, week, _ = parsed.isocalendar()
            label = "Settimana" if language == "it" else "Week"
            return f"{label} {week} - {iso_year}"
        case "month":
            return f"{_MONTH_NAMES[language][parsed.month - 1]} {parsed.year}"
        case _:
            label = "Anno" if language == "it" else "Year"
            return f"{label} {parsed.year}"


def group_documents(
    documents: Iterable[Document],
    by: str = "none",
    language: str = "it",
    today: date | None = None,
) -> dict[str, list[Document]]:
    """Group documents for display, preserving input order inside each group."""
    if by not in DOCUMENT_GROUPINGS:
        raise ValueError(f"Raggruppamento sconosciuto: {by}")
    lang = language if language in _MONTH_NAMES else "it"
    docs = list(documents)

    if by == "none":
        return {"Tutti i documenti" if lang == "it" else "All documents": docs}

    groups: dict[str, list[Document]] = {}
    current = today or date.today()
    for doc in docs:
        key = doc.supplier if by == "supplier" else _group_key(doc, by, lang, current)
        groups.setdefault(key, []).append(doc)
    return groups

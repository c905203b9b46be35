"""Turn extraction results and spreadsheet rows into Documents.

This is the boundary where loosely-typed input gets defaults and canonical
units, before anything reaches ledger math.
"""

from __future__ import annotations

import time
import uuid
from datetime import date
from typing import Iterable, Mapping

from .errors import ExtractionEmpty
from .extraction import ExtractedDocument
from .identity import find_system_product
from .models import (
    DELIVERY_NOTE,
    INVOICE,
    PHYSICAL_COUNT,
    REVIEW_INVOICE,
    UNPAID,
    Document,
    InventoryEntry,
    Product,
)
from .normalize import normalize_unit, round4
from .spreadsheet import resolve_count_row

COUNT_SUPPLIER = "Inventario Fisico"
COUNT_CATEGORY = "Inventory"

_ID_PREFIXES = {INVOICE: "INV", DELIVERY_NOTE: "DDT", REVIEW_INVOICE: "REV"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id(prefix: str, ts: int) -> str:
    return f"{prefix}-{ts}-{uuid.uuid4().hex[:5]}"


def _warehouse_document(
    data: ExtractedDocument, doc_type: str, file_name: str, ts: int
) -> Document:
    doc_id = _new_id(_ID_PREFIXES[doc_type], ts)
    number = data.document_number or f"DOC-{ts}"
    supplier = data.supplier or "Sconosciuto"
    doc_date = data.date or date.today().isoformat()

    products = tuple(
        Product(
            id=f"{doc_id}-{i}",
            sku=p.code.strip(),
            name=p.name.strip() or "Prodotto",
            quantity=p.quantity,
            unit_of_measure=normalize_unit(p.unit or "UD"),
            unit_price=p.unit_price,
            total_price=p.total_price or p.quantity * p.unit_price,
            category=p.category.strip() or "Altro",
            invoice_date=doc_date,
            invoice_id=doc_id,
            invoice_number=number,
            supplier=supplier,
            doc_type=doc_type,
        )
        for i, p in enumerate(data.products)
    )
    return Document(
        id=doc_id,
        document_number=number,
        date=doc_date,
        due_date=data.due_date or None,
        supplier=supplier,
        file_name=file_name,
        total_amount=data.total_amount or round4(sum(p.total_price for p in products)),
        type=doc_type,
        is_credit_note=data.is_credit_note,
        extracted_products=products,
    )


def _review_document(data: ExtractedDocument, file_name: str, ts: int) -> Document:
    doc_id = _new_id(_ID_PREFIXES[REVIEW_INVOICE], ts)
    number = data.document_number or "N/D"
    supplier = data.supplier or "Fornitore Generico"

    products = tuple(
        Product(
            id=f"{doc_id}-P{i}",
            sku=p.code.strip(),
            name=p.name.strip() or "Prodotto/Servizio",
            quantity=p.quantity or 1,
            unit_of_measure=normalize_unit(p.unit or "UD"),
            unit_price=p.unit_price,
            total_price=p.total_price or p.quantity * p.unit_price,
            category=p.category.strip() or "Generico",
            invoice_date=data.date,
            invoice_id=doc_id,
            invoice_number=number,
            supplier=supplier,
            doc_type=REVIEW_INVOICE,
        )
        for i, p in enumerate(data.products)
    )
    return Document(
        id=doc_id,
        document_number=number,
        date=data.date,
        due_date=data.due_date or None,
        supplier=supplier,
        file_name=file_name,
        total_amount=data.total_amount or round4(sum(p.total_price for p in products)),
        paid_amount=0.0,
        payment_status=UNPAID,
        type=REVIEW_INVOICE,
        is_credit_note=data.is_credit_note,
        extracted_products=products,
    )


def documents_from_extraction(
    extracted: Iterable[ExtractedDocument],
    doc_type: str,
    file_name: str,
    ts: int | None = None,
) -> list[Document]:
    """Build one Document per extracted record of an invoice, DDT or review upload.

    Raises:
        ValueError: ``doc_type`` is not invoice, deliveryNote or reviewInvoice.
    """
    if doc_type not in _ID_PREFIXES:
        raise ValueError(f"Tipo documento non caricabile: {doc_type}")
    stamp = ts if ts is not None else _now_ms()
    if doc_type == REVIEW_INVOICE:
        return [_review_document(d, file_name, stamp) for d in extracted]
    return [_warehouse_document(d, doc_type, file_name, stamp) for d in extracted]


def _count_document(
    products: list[Product], number: str, doc_date: str, supplier: str,
    file_name: str, ts: int,
) -> Document:
    if not products:
        raise ExtractionEmpty("Nessun prodotto trovato nel file.")
    return Document(
        id=f"DOC-PC-{ts}",
        document_number=number,
        date=doc_date,
        supplier=supplier,
        file_name=file_name,
        total_amount=round4(sum(p.total_price for p in products)),
        type=PHYSICAL_COUNT,
        extracted_products=tuple(products),
    )


def physical_count_from_extraction(
    extracted: list[ExtractedDocument],
    inventory: Iterable[InventoryEntry],
    file_name: str,
    ts: int | None = None,
) -> Document:
    """Build a physical-count Document from the first extracted record.

    Unit price and category come from the matching ledger entry when there
    is one, so counted stock is valued at the system's average price.

    Raises:
        ExtractionEmpty: No records or no product lines.
    """
    if not extracted:
        raise ExtractionEmpty("Nessun prodotto trovato nel file.")
    stamp = ts if ts is not None else _now_ms()
    entries = list(inventory)
    data = extracted[0]

    internal_id = f"PC-{stamp}"
    supplier = data.supplier or COUNT_SUPPLIER
    number = data.document_number or f"INV-{str(stamp)[-6:]}"

    products = []
    for i, p in enumerate(data.products):
        unit = normalize_unit(p.unit)
        match = find_system_product(entries, p.name, p.code, unit)
        unit_price = match.unit_price if match else (p.unit_price or 0.0)
        category = p.category or (match.category if match else "") or COUNT_CATEGORY
        products.append(
            Product(
                id=f"{internal_id}-{i}",
                sku=p.code.strip(),
                name=p.name.strip() or "Prodotto",
                quantity=p.quantity,
                unit_of_measure=unit,
                unit_price=unit_price,
                total_price=round4(p.quantity * unit_price),
                category=category.strip(),
                invoice_date=data.date,
                invoice_id=internal_id,
                invoice_number=number,
                supplier=supplier,
                doc_type=PHYSICAL_COUNT,
            )
        )
    return _count_document(products, number, data.date, supplier, file_name, stamp)


def physical_count_from_rows(
    rows: Iterable[Mapping[str, object]],
    inventory: Iterable[InventoryEntry],
    file_name: str,
    ts: int | None = None,
    today: date | None = None,
) -> Document:
    """Build a physical-count Document from spreadsheet rows.

    Headers are resolved through the alias table; rows without a product
    name are dropped. Unmatched products are valued at 0.

    Raises:
        ExtractionEmpty: No usable rows.
    """
    stamp = ts if ts is not None else _now_ms()
    entries = list(inventory)
    internal_id = f"PC-{stamp}"
    doc_date = (today or date.today()).isoformat()
    number = f"INV-{str(stamp)[-6:]}"

    products = []
    for row in rows:
        resolved = resolve_count_row(row)
        if resolved is None:
            continue
        match = find_system_product(
            entries, resolved.name, resolved.sku, resolved.unit_of_measure
        )
        unit_price = match.unit_price if match else 0.0
        products.append(
            Product(
                id=f"{internal_id}-{len(products)}",
                sku=resolved.sku,
                name=resolved.name,
                quantity=resolved.quantity,
                unit_of_measure=resolved.unit_of_measure,
                unit_price=unit_price,
                total_price=round4(resolved.quantity * unit_price),
                category=match.category if match else COUNT_CATEGORY,
                invoice_date=doc_date,
                invoice_id=internal_id,
                invoice_number=number,
                supplier=COUNT_SUPPLIER,
                doc_type=PHYSICAL_COUNT,
            )
        )
    return _count_document(products, number, doc_date, COUNT_SUPPLIER, file_name, stamp)

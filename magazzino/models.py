"""Data models for documents, product lines and derived inventory entries."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

# Document types
INVOICE = "invoice"
DELIVERY_NOTE = "deliveryNote"
PHYSICAL_COUNT = "physicalCount"
REVIEW_INVOICE = "reviewInvoice"

DOCUMENT_TYPES = (INVOICE, DELIVERY_NOTE, PHYSICAL_COUNT, REVIEW_INVOICE)

# Document types that feed the inventory ledger
WAREHOUSE_TYPES = (INVOICE, DELIVERY_NOTE)

# Storage collection per document type
COLLECTIONS: dict[str, str] = {
    INVOICE: "invoices",
    DELIVERY_NOTE: "deliveryNotes",
    PHYSICAL_COUNT: "physicalCounts",
    REVIEW_INVOICE: "reviewInvoices",
}

DOCUMENT_STATUSES = ("pending", "processed", "error")

PAID = "paid"
UNPAID = "unpaid"
PARTIAL = "partial"
PAYMENT_STATUSES = (PAID, UNPAID, PARTIAL)


def to_float(value: object, default: float = 0.0) -> float:
    """Coerce loose numeric input (str, None, bool) to float."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return number


def to_str(value: object, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


@dataclass(frozen=True)
class Product:
    """A single product line on a document.

    ``quantity`` and ``total_price`` carry the document's sign as extracted;
    credit-note inversion happens in the ledger.
    """

    id: str
    name: str
    quantity: float
    sku: str = ""
    unit_of_measure: str = "UD"
    unit_price: float = 0.0
    total_price: float = 0.0
    category: str = ""
    invoice_date: str = ""
    invoice_id: str = ""
    invoice_number: str = ""
    supplier: str = ""
    doc_type: str = INVOICE

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Product:
        return cls(
            id=to_str(data.get("id")),
            sku=to_str(data.get("sku")),
            name=to_str(data.get("name"), "Prodotto"),
            quantity=to_float(data.get("quantity")),
            unit_of_measure=to_str(data.get("unit_of_measure"), "UD"),
            unit_price=to_float(data.get("unit_price")),
            total_price=to_float(data.get("total_price")),
            category=to_str(data.get("category")),
            invoice_date=to_str(data.get("invoice_date")),
            invoice_id=to_str(data.get("invoice_id")),
            invoice_number=to_str(data.get("invoice_number")),
            supplier=to_str(data.get("supplier")),
            doc_type=to_str(data.get("doc_type"), INVOICE),
        )


@dataclass(frozen=True)
class Document:
    """An ingested document (invoice, delivery note, count or review invoice)."""

    id: str
    document_number: str
    date: str
    supplier: str
    total_amount: float
    file_name: str = ""
    type: str = INVOICE
    status: str = "processed"
    due_date: str | None = None
    paid_amount: float = 0.0
    payment_status: str = UNPAID
    is_credit_note: bool = False
    extracted_products: tuple[Product, ...] = field(default_factory=tuple)

    @property
    def collection(self) -> str:
        return COLLECTIONS[self.type]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["extracted_products"] = [p.to_dict() for p in self.extracted_products]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Document:
        """Build a Document from a stored or remote payload, coercing bad fields."""
        doc_type = data.get("type")
        if doc_type not in DOCUMENT_TYPES:
            doc_type = INVOICE
        status = data.get("status")
        if status not in DOCUMENT_STATUSES:
            status = "processed"
        payment_status = data.get("payment_status")
        if payment_status not in PAYMENT_STATUSES:
            payment_status = UNPAID

        products = data.get("extracted_products") or []
        if not isinstance(products, (list, tuple)):
            products = []

        return cls(
            id=to_str(data.get("id")),
            document_number=to_str(data.get("document_number"), "N/D"),
            date=to_str(data.get("date")),
            due_date=to_str(data.get("due_date")) or None,
            supplier=to_str(data.get("supplier")),
            total_amount=to_float(data.get("total_amount")),
            paid_amount=to_float(data.get("paid_amount")),
            file_name=to_str(data.get("file_name")),
            type=doc_type,
            status=status,
            payment_status=payment_status,
            is_credit_note=bool(data.get("is_credit_note")),
            extracted_products=tuple(
                Product.from_dict(p) for p in products if isinstance(p, dict)
            ),
        )


@dataclass
class InventoryEntry:
    """One consolidated ledger line per product key (derived, never stored)."""

    key: str
    id: str
    name: str
    sku: str
    quantity: float
    unit_of_measure: str
    unit_price: float
    total_price: float
    category: str
    invoice_date: str
    invoice_number: str
    supplier: str

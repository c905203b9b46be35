"""Inventory ledger: folds invoices and delivery notes into per-product stock.

The ledger is always rebuilt from the full document set; nothing here keeps
state between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .identity import entry_id, get_product_key
from .models import WAREHOUSE_TYPES, Document, InventoryEntry
from .normalize import (
    UNIT_CASE,
    UNIT_PIECES,
    UNIT_WEIGHT,
    normalize_unit,
    parse_iso_date,
    round4,
)

# Entries at or below this absolute quantity are float noise
QUANTITY_EPSILON = 0.0001

INVENTORY_GROUPINGS = ("month", "category", "supplier", "none")


def _is_newer_or_same(doc_date: str, stored_date: str) -> bool:
    new = parse_iso_date(doc_date)
    old = parse_iso_date(stored_date)
    if new is None or old is None:
        return False
    return new >= old


def build_inventory(documents: Iterable[Document]) -> list[InventoryEntry]:
    """Fold warehouse documents into one entry per product key.

    Credit notes contribute with inverted sign. Quantity and value are
    rounded to 4 places after every addition. The unit price is recomputed
    as ``|total / quantity|`` unless the quantity lands on exactly zero, in
    which case the previous price is kept. Metadata (date, supplier,
    document number) follows the latest document, with ties going to the
    one processed last.

    Documents of other types are ignored.
    """
    items: dict[str, InventoryEntry] = {}

    for doc in documents:
        if doc.type not in WAREHOUSE_TYPES:
            continue
        multiplier = -1 if doc.is_credit_note else 1

        for p in doc.extracted_products:
            key = get_product_key(p.name, p.sku, p.unit_of_measure)
            entry = items.get(key)

            if entry is None:
                items[key] = InventoryEntry(
                    key=key,
                    id=entry_id(key),
                    name=p.name,
                    sku=p.sku,
                    quantity=round4(p.quantity * multiplier),
                    unit_of_measure=normalize_unit(p.unit_of_measure),
                    unit_price=p.unit_price,
                    total_price=round4(p.total_price * multiplier),
                    category=p.category,
                    invoice_date=doc.date,
                    invoice_number=doc.document_number,
                    supplier=doc.supplier,
                )
                continue

            entry.quantity = round4(entry.quantity + p.quantity * multiplier)
            entry.total_price = round4(entry.total_price + p.total_price * multiplier)
            if entry.quantity != 0:
                entry.unit_price = abs(entry.total_price / entry.quantity)

            if _is_newer_or_same(doc.date, entry.invoice_date):
                entry.invoice_date = doc.date
                entry.supplier = doc.supplier
                entry.invoice_number = doc.document_number

    return [e for e in items.values() if abs(e.quantity) > QUANTITY_EPSILON]


def available_years(documents: Iterable[Document]) -> list[int]:
    """Distinct years of warehouse documents, newest first."""
    years = set()
    for doc in documents:
        if doc.type not in WAREHOUSE_TYPES:
            continue
        parsed = parse_iso_date(doc.date)
        if parsed is not None:
            years.add(parsed.year)
    return sorted(years, reverse=True)


def normalize_category(category: str) -> str:
    """Map free-form categories onto the produce buckets used for grouping."""
    if not category or not category.strip():
        return "Generico"
    c = category.lower().strip()
    if any(word in c for word in ("vegetable", "verdura", "insalata", "ortaggi")):
        return "Verdura"
    if "fruit" in c or "frutta" in c:
        return "Frutta"
    return category[:1].upper() + category[1:].lower()


def _date_sort_key(entry: InventoryEntry) -> str:
    parsed = parse_iso_date(entry.invoice_date)
    return parsed.isoformat() if parsed else ""


def search_inventory(
    inventory: Iterable[InventoryEntry], term: str = ""
) -> list[InventoryEntry]:
    """Sort by last-load date (newest first) and filter on a search term.

    The term is matched case-insensitively against name, supplier, SKU,
    document number and category.
    """
    needle = (term or "").lower()
    ordered = sorted(inventory, key=_date_sort_key, reverse=True)
    if not needle:
        return ordered
    return [
        e
        for e in ordered
        if needle in e.name.lower()
        or needle in e.supplier.lower()
        or (e.sku and needle in e.sku.lower())
        or (e.invoice_number and needle in e.invoice_number.lower())
        or (e.category and needle in e.category.lower())
    ]


def group_inventory(
    inventory: Iterable[InventoryEntry], by: str = "month"
) -> dict[str, list[InventoryEntry]]:
    """Group entries by last-load month (``YYYY-MM``), category or supplier.

    Raises:
        ValueError: Unknown grouping.
    """
    if by not in INVENTORY_GROUPINGS:
        raise ValueError(f"Raggruppamento sconosciuto: {by}")

    entries = list(inventory)
    if by == "none":
        return {"Inventario": entries}

    groups: dict[str, list[InventoryEntry]] = {}
    for e in entries:
        match by:
            case "month":
                parsed = parse_iso_date(e.invoice_date)
                key = parsed.strftime("%Y-%m") if parsed else "Altro"
            case "category":
                key = normalize_category(e.category)
            case _:
                key = e.supplier or "Sconosciuto"
        groups.setdefault(key, []).append(e)
    return groups


@dataclass
class DashboardStats:
    total_value: float = 0.0
    unique_products: int = 0
    supplier_count: int = 0
    quantity_by_unit: dict[str, float] = field(
        default_factory=lambda: {UNIT_PIECES: 0.0, UNIT_WEIGHT: 0.0, UNIT_CASE: 0.0}
    )
    monthly_totals: dict[str, float] = field(default_factory=dict)


def dashboard_stats(
    inventory: Iterable[InventoryEntry], invoices: Iterable[Document]
) -> DashboardStats:
    """Headline numbers for the overview screen.

    Args:
        inventory: Current ledger (see ``build_inventory``)
        invoices: Invoice documents used for supplier count and monthly totals
    """
    stats = DashboardStats()
    names = set()
    for e in inventory:
        stats.total_value += e.total_price
        names.add(e.name.lower())
        unit = (e.unit_of_measure or UNIT_PIECES).upper()
        stats.quantity_by_unit[unit] = stats.quantity_by_unit.get(unit, 0.0) + e.quantity
    stats.total_value = round4(stats.total_value)
    stats.unique_products = len(names)

    suppliers = set()
    for doc in invoices:
        suppliers.add(doc.supplier.lower())
        parsed = parse_iso_date(doc.date)
        if parsed is None:
            continue
        month = parsed.strftime("%Y-%m")
        stats.monthly_totals[month] = round4(
            stats.monthly_totals.get(month, 0.0) + doc.total_amount
        )
    stats.supplier_count = len(suppliers)
    return stats

"""Physical count vs. ledger reconciliation.

Both the on-screen comparison and the exported report are built from the
``ReconciliationSummary`` returned by ``reconcile_count``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .identity import find_system_product
from .models import Document, InventoryEntry
from .normalize import round4

# |diff| at or below this is considered aligned
ALIGNED_TOLERANCE = 0.001

ALIGNED = "aligned"
SURPLUS = "surplus"
DEFICIT = "deficit"

STATUS_LABELS: dict[str, dict[str, str]] = {
    "it": {ALIGNED: "ALLINEATO", SURPLUS: "ECCEDENZA", DEFICIT: "AMMANCO"},
    "en": {ALIGNED: "ALIGNED", SURPLUS: "SURPLUS", DEFICIT: "DEFICIT"},
}

REPORT_HEADERS: dict[str, list[str]] = {
    "it": [
        "Codice/SKU",
        "Prodotto Reale",
        "Match Sistema",
        "U.M.",
        "Quantità Rilevata (FISICO)",
        "Quantità Calcolata (SISTEMA)",
        "Differenza Stock",
        "Valore Scostamento (€)",
        "Status",
    ],
    "en": [
        "Code/SKU",
        "Counted Product",
        "System Match",
        "Unit",
        "Counted Quantity (PHYSICAL)",
        "Computed Quantity (SYSTEM)",
        "Stock Difference",
        "Variance Value (€)",
        "Status",
    ],
}

_MATCH_LABELS = {
    "it": ("SÌ", "NO (Nuovo)"),
    "en": ("YES", "NO (New)"),
}


def classify(diff: float) -> str:
    if abs(diff) <= ALIGNED_TOLERANCE:
        return ALIGNED
    return SURPLUS if diff > 0 else DEFICIT


@dataclass(frozen=True)
class ReconciliationLine:
    """Comparison of one counted line against the ledger."""

    sku: str
    name: str
    unit_of_measure: str
    counted_quantity: float
    system_quantity: float
    difference: float
    unit_price: float
    value_difference: float
    status: str
    match: InventoryEntry | None = None

    @property
    def matched(self) -> bool:
        return self.match is not None


@dataclass
class ReconciliationSummary:
    document_id: str
    document_number: str
    lines: list[ReconciliationLine] = field(default_factory=list)
    surplus_value: float = 0.0
    deficit_value: float = 0.0
    discrepancy_count: int = 0
    matched_count: int = 0

    @property
    def net_variance(self) -> float:
        return self.surplus_value - self.deficit_value

    def discrepancies(self) -> list[ReconciliationLine]:
        return [line for line in self.lines if line.status != ALIGNED]


def reconcile_count(
    document: Document, inventory: Iterable[InventoryEntry]
) -> ReconciliationSummary:
    """Compare a physical-count document against the current inventory.

    Each counted line is matched with ``find_system_product``. Unmatched
    lines use a system quantity of 0 and their own unit price, so they show
    up as surplus.
    """
    entries = list(inventory)
    summary = ReconciliationSummary(
        document_id=document.id, document_number=document.document_number
    )

    for p in document.extracted_products:
        match = find_system_product(entries, p.name, p.sku, p.unit_of_measure)
        system_qty = match.quantity if match else 0.0
        diff = round4(p.quantity - system_qty)
        unit_price = match.unit_price if match else p.unit_price
        status = classify(diff)

        summary.lines.append(
            ReconciliationLine(
                sku=p.sku or (match.sku if match else ""),
                name=p.name,
                unit_of_measure=p.unit_of_measure,
                counted_quantity=p.quantity,
                system_quantity=system_qty,
                difference=diff,
                unit_price=unit_price,
                value_difference=diff * unit_price,
                status=status,
                match=match,
            )
        )

        if status == SURPLUS:
            summary.surplus_value += diff * unit_price
        elif status == DEFICIT:
            summary.deficit_value += abs(diff) * unit_price
        if status != ALIGNED:
            summary.discrepancy_count += 1
        if match:
            summary.matched_count += 1

    return summary


def reconciliation_rows(
    summary: ReconciliationSummary, language: str = "it"
) -> list[list]:
    """Build the report table (header row first) from a summary."""
    lang = language if language in REPORT_HEADERS else "it"
    labels = STATUS_LABELS[lang]
    yes, no = _MATCH_LABELS[lang]

    rows: list[list] = [list(REPORT_HEADERS[lang])]
    for line in summary.lines:
        rows.append([
            line.sku or "N/D",
            line.name,
            yes if line.matched else no,
            line.unit_of_measure,
            line.counted_quantity,
            line.system_quantity,
            line.difference,
            round(line.value_difference, 2),
            labels[line.status],
        ])
    return rows

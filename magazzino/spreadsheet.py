"""Spreadsheet import (header alias resolution, locale numbers) and xlsx export."""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .models import InventoryEntry, to_str
from .normalize import clean_string, normalize_unit, round4
from .reconciliation import ReconciliationSummary, reconciliation_rows

logger = logging.getLogger(__name__)

# Accepted header spellings per logical field, in priority order
FIELD_ALIASES: dict[str, list[str]] = {
    "name": ["nome", "descrizione", "prodotto", "item", "name", "articolo"],
    "sku": ["sku", "codice", "code", "art", "articolo", "cod", "barcode"],
    "quantity": [
        "quantita", "qta", "fisico", "scorta", "stock", "quantity", "qty",
        "reale", "conta",
    ],
    "unit": ["unita", "um", "u.m.", "unit", "uom", "misura", "formato"],
}

# Placeholder name for rows without a recognizable name column
DEFAULT_ROW_NAME = "Articolo"

HEADER_FILL = PatternFill(start_color="4F46E5", end_color="4F46E5", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MONEY_FORMAT = "#,##0.00"

_NUMBER_CHARS = re.compile(r"[^-0-9.]")
_FLOAT_PREFIX = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")

INVENTORY_HEADERS: dict[str, list[str]] = {
    "it": [
        "SKU", "Descrizione", "Categoria", "Fornitore", "Giacenza", "U.M.",
        "Prezzo Medio (€)", "Valore Totale (€)", "Ultimo Carico",
    ],
    "en": [
        "SKU", "Description", "Category", "Supplier", "Stock", "Unit",
        "Average Price (€)", "Total Value (€)", "Last Load",
    ],
}
_INVENTORY_MONEY_COLUMNS = (7, 8)
_RECONCILIATION_MONEY_COLUMNS = (8,)


def resolve_field(row: Mapping[str, object], aliases: Iterable[str]) -> object | None:
    """Return the value of the first header matching an alias.

    Headers and aliases are compared after ``clean_string``, so "Quantità",
    "QUANTITA" and "quantita" all match the alias "quantita". Aliases are
    tried in order; None if nothing matches.
    """
    headers = [(clean_string(h), h) for h in row.keys()]
    for alias in aliases:
        wanted = clean_string(alias)
        for cleaned, original in headers:
            if cleaned == wanted:
                return row[original]
    return None


def parse_quantity(value: object) -> float:
    """Parse a locale-variant quantity; anything unparseable is 0.

    Only the first comma is taken as the decimal separator. Characters other
    than digits, ``-`` and ``.`` are dropped and the longest leading number is
    used, so "12,5 kg" is 12.5 and "1.234,5" is 1.234.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value == value else 0.0

    cleaned = _NUMBER_CHARS.sub("", str(value).replace(",", ".", 1))
    match = _FLOAT_PREFIX.match(cleaned)
    if not match:
        return 0.0
    return round4(float(match.group(0)))


@dataclass(frozen=True)
class CountRow:
    name: str
    sku: str
    quantity: float
    unit_of_measure: str


def resolve_count_row(row: Mapping[str, object]) -> CountRow | None:
    """Resolve one spreadsheet row of a physical count.

    Returns None for rows without a usable product name.
    """
    name = to_str(resolve_field(row, FIELD_ALIASES["name"]), DEFAULT_ROW_NAME)
    if name in ("", DEFAULT_ROW_NAME):
        return None
    return CountRow(
        name=name,
        sku=to_str(resolve_field(row, FIELD_ALIASES["sku"])),
        quantity=parse_quantity(resolve_field(row, FIELD_ALIASES["quantity"])),
        unit_of_measure=normalize_unit(
            to_str(resolve_field(row, FIELD_ALIASES["unit"]), "UD")
        ),
    )


def _is_blank(values: Iterable[object]) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _read_xlsx(path: Path) -> list[dict[str, object]]:
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        columns = [(i, str(h).strip()) for i, h in enumerate(header) if h is not None]
        result = []
        for values in rows:
            if _is_blank(values):
                continue
            result.append({
                name: values[i] if i < len(values) else None
                for i, name in columns
            })
        return result
    finally:
        workbook.close()


def _read_csv(path: Path) -> list[dict[str, object]]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        sample = f.read(4096)
        f.seek(0)
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
        except csv.Error:
            dialect = csv.excel
        reader = csv.DictReader(f, dialect=dialect)
        return [
            {k.strip(): v for k, v in row.items() if k is not None}
            for row in reader
            if not _is_blank(row.values())
        ]


def read_rows(path: str | Path) -> list[dict[str, object]]:
    """Read header→value rows from the first sheet of an xlsx or from a csv.

    Raises:
        ValueError: Unsupported file extension.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        rows = _read_xlsx(path)
    elif suffix == ".csv":
        rows = _read_csv(path)
    else:
        raise ValueError(f"Formato foglio di calcolo non supportato: {suffix}")
    logger.info("Lette %d righe da %s", len(rows), path.name)
    return rows


def _write_sheet(
    rows: list[list],
    path: Path,
    sheet_name: str,
    money_columns: Iterable[int],
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name

    for row in rows:
        sheet.append(row)

    for cell in sheet[1]:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for col in money_columns:
        for row_idx in range(2, sheet.max_row + 1):
            sheet.cell(row=row_idx, column=col).number_format = MONEY_FORMAT

    for col in range(1, sheet.max_column + 1):
        max_len = max(
            len(str(sheet.cell(row=r, column=col).value or ""))
            for r in range(1, sheet.max_row + 1)
        )
        sheet.column_dimensions[get_column_letter(col)].width = min(max(max_len + 2, 12), 45)

    workbook.save(path)
    return path


def inventory_rows(
    inventory: Iterable[InventoryEntry], language: str = "it"
) -> list[list]:
    lang = language if language in INVENTORY_HEADERS else "it"
    rows: list[list] = [list(INVENTORY_HEADERS[lang])]
    for e in inventory:
        rows.append([
            e.sku or "N/D",
            e.name,
            e.category,
            e.supplier,
            e.quantity,
            e.unit_of_measure,
            round(e.unit_price, 2),
            e.total_price,
            e.invoice_date,
        ])
    return rows


def export_inventory(
    inventory: Iterable[InventoryEntry], path: str | Path, language: str = "it"
) -> Path:
    """Write the inventory to an xlsx sheet named "Giacenze"."""
    rows = inventory_rows(inventory, language)
    out = _write_sheet(rows, Path(path), "Giacenze", _INVENTORY_MONEY_COLUMNS)
    logger.info("Esportate %d giacenze in %s", len(rows) - 1, out)
    return out


def export_reconciliation(
    summary: ReconciliationSummary, path: str | Path, language: str = "it"
) -> Path:
    """Write a reconciliation report to an xlsx sheet named "Riconciliazione"."""
    rows = reconciliation_rows(summary, language)
    out = _write_sheet(rows, Path(path), "Riconciliazione", _RECONCILIATION_MONEY_COLUMNS)
    logger.info(
        "Report di riconciliazione %s salvato in %s", summary.document_number, out
    )
    return out

"""Warehouse ledger, payment tracking and physical-count reconciliation."""

from .config import MagazzinoConfig, load_config
from .errors import (
    BatchIngestError,
    DocumentNotFound,
    ExtractionEmpty,
    ExtractionError,
    ExtractionTimeout,
    MagazzinoError,
    PersistenceError,
    PersistenceSchemaMismatch,
    PersistenceTransient,
)
from .identity import find_system_product, get_product_key
from .ledger import build_inventory
from .merge import merge_documents, payment_priority
from .models import Document, InventoryEntry, Product
from .normalize import clean_string, normalize_date, normalize_unit
from .payments import add_installment, payment_stats, set_payment_status
from .reconciliation import ReconciliationSummary, reconcile_count
from .spreadsheet import parse_quantity, resolve_count_row, resolve_field
from .warehouse import Warehouse

__all__ = [
    "Document",
    "Product",
    "InventoryEntry",
    "clean_string",
    "normalize_unit",
    "normalize_date",
    "get_product_key",
    "find_system_product",
    "build_inventory",
    "reconcile_count",
    "ReconciliationSummary",
    "set_payment_status",
    "add_installment",
    "payment_stats",
    "payment_priority",
    "merge_documents",
    "resolve_field",
    "parse_quantity",
    "resolve_count_row",
    "Warehouse",
    "MagazzinoConfig",
    "load_config",
    "MagazzinoError",
    "DocumentNotFound",
    "ExtractionError",
    "ExtractionTimeout",
    "ExtractionEmpty",
    "PersistenceError",
    "PersistenceSchemaMismatch",
    "PersistenceTransient",
    "BatchIngestError",
]

"""Product identity: canonical keys and fuzzy lookup against the ledger."""

from __future__ import annotations

from typing import Iterable

from .models import InventoryEntry
from .normalize import clean_string, normalize_unit

INVENTORY_KEY_PREFIX = "INV-KEY-"


def get_product_key(name: object, sku: object, unit: object) -> str:
    """Derive the ledger key for a product line.

    A non-empty SKU is authoritative and ignores name and unit. Without a
    SKU the key is name plus unit, so one product sold in two units ends up
    as two separate entries.
    """
    clean_sku = clean_string(sku)
    if clean_sku:
        return f"SKU-{clean_sku}"
    return f"NAME-{clean_string(name)}-{normalize_unit(unit)}"


def entry_id(key: str) -> str:
    return f"{INVENTORY_KEY_PREFIX}{key}"


def _key_from_entry(entry: InventoryEntry) -> str:
    if entry.id.startswith(INVENTORY_KEY_PREFIX):
        return entry.id[len(INVENTORY_KEY_PREFIX):]
    return entry.key


def find_system_product(
    inventory: Iterable[InventoryEntry],
    name: object,
    sku: object,
    unit: object,
) -> InventoryEntry | None:
    """Three-tier lookup of a counted line in the current inventory.

    1. exact product key (the one embedded in the entry id)
    2. cleaned SKU, ignoring name and unit
    3. cleaned name, ignoring unit

    Returns None when no tier matches. A name that cleans to "" never
    matches on the name tier, even against entries whose name also cleans
    to "".
    """
    entries = list(inventory)
    key = get_product_key(name, sku, unit)
    for entry in entries:
        if _key_from_entry(entry) == key:
            return entry

    clean_sku = clean_string(sku)
    if clean_sku:
        for entry in entries:
            if clean_string(entry.sku) == clean_sku:
                return entry

    clean_name = clean_string(name)
    if not clean_name:
        return None
    for entry in entries:
        if clean_string(entry.name) == clean_name:
            return entry
    return None

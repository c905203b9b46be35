"""Canonical forms for free-text identifiers, units of measure and dates."""

from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date

logger = logging.getLogger(__name__)

# Canonical unit codes
UNIT_PIECES = "UD"
UNIT_WEIGHT = "KG"
UNIT_CASE = "CJ"

# Raw spellings (lowercase, letters only) → canonical code.
# Anything not listed falls back to UD, which loses genuine weight/case
# items written with unknown abbreviations.
_UNIT_ALIASES: dict[str, list[str]] = {
    UNIT_PIECES: [
        "pz", "un", "unit", "each", "pezzo", "pezzi", "ud", "unita", "u",
        "pieces",
    ],
    UNIT_WEIGHT: [
        "kg", "kilo", "kilogrammi", "gr", "grammi", "g", "kilogram", "kilos",
    ],
    UNIT_CASE: [
        "cj", "ct", "cs", "cassa", "casse", "box", "collo", "conf", "caisse",
        "bt", "bott", "case",
    ],
}

_UNIT_LOOKUP: dict[str, str] = {
    alias: code for code, aliases in _UNIT_ALIASES.items() for alias in aliases
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_ALPHA = re.compile(r"[^a-z]")
_DATE_CHARS = re.compile(r"[^\d/.\-]")
_DATE_SEP = re.compile(r"[./\-]")


def clean_string(value: object) -> str:
    """Reduce free text to a bare ``[a-z0-9]`` key.

    Lowercases, strips diacritics and drops every other character, so
    "Pomodori Ciliegini" and "POMODORI-ciliegini" compare equal.
    None or empty input gives "".
    """
    if value is None:
        return ""
    text = str(value).lower().strip()
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", text)


def normalize_unit(unit: object) -> str:
    """Map any unit spelling to UD, KG or CJ (default UD)."""
    raw = "" if unit is None else str(unit).lower().strip()
    raw = _NON_ALPHA.sub("", raw)
    return _UNIT_LOOKUP.get(raw, UNIT_PIECES)


def round4(value: float) -> float:
    return round(float(value), 4)


def normalize_date(value: object, today: date | None = None) -> str:
    """Normalize an extracted date to ``YYYY-MM-DD``.

    Args:
        value: e.g. "2024-03-05", "5/3/2024", "05.03.24"
        today: Fallback date (defaults to ``date.today()``)

    Returns:
        ISO date string. Triplets with a 4-digit first part are taken as
        year-month-day, anything else as day-month-year. Unparseable input
        falls back to today.
    """
    fallback = (today or date.today()).isoformat()
    if value is None:
        return fallback

    raw = str(value).strip()
    if not raw:
        return fallback

    cleaned = _DATE_CHARS.sub("", raw)
    parts = _DATE_SEP.split(cleaned)
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        logger.warning("Data non riconosciuta %r, uso %s", raw, fallback)
        return fallback

    if len(parts[0]) == 4:
        year, month, day = parts
    else:
        day, month, year = parts
        if len(year) == 2:
            year = f"20{year}"

    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        logger.warning("Data non valida %r, uso %s", raw, fallback)
        return fallback


def parse_iso_date(value: str) -> date | None:
    """Parse the date part of an ISO string, or None."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None

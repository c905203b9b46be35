"""Prompt, response schema and payload coercion shared by extraction backends."""

from __future__ import annotations

import json
import logging

from ..errors import ExtractionEmpty
from ..models import to_float, to_str
from ..normalize import normalize_date
from . import ExtractedDocument, ExtractedProduct

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """\
Sei un estrattore dati ultra-veloce per la gestione magazzino.
Estrai in JSON: fornitore, numero, data, scadenza, nota credito, TOTALE DOCUMENTO FINALE e lista prodotti.

REGOLE UNITA DI MISURA:
- Usa 'UD' per tutto ciò che è unità, pezzi, singole unità (es. PZ, UN, Pezzo).
- Usa 'KG' per prodotti a peso (es. KG, Kilo, Grammi).
- Usa 'CJ' per confezioni, casse, box, colli (es. CA, CT, CS, Cassa, Box).

REGOLE CATEGORIE:
- Usa esclusivamente 'Frutta' o 'Verdura'.

IMPORTANTE DATE: Le date DEVONO essere in formato YYYY-MM-DD.
Mancanti = 0 o "". Solo JSON.
"""

USER_PROMPT = "Estrai prodotti e totali in JSON. Normalizza unità in UD, KG, CJ."

# JSON schema of the expected answer (also embedded in the Claude prompt)
RESPONSE_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "documents": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "supplier": {"type": "string"},
                    "documentNumber": {"type": "string"},
                    "date": {"type": "string"},
                    "dueDate": {"type": "string"},
                    "isCreditNote": {"type": "boolean"},
                    "totalAmount": {
                        "type": "number",
                        "description": "Il totale finale del documento inclusa IVA e oneri",
                    },
                    "products": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "code": {"type": "string"},
                                "name": {"type": "string"},
                                "quantity": {"type": "number"},
                                "unit": {
                                    "type": "string",
                                    "description": "Usa solo 'UD' per unità/pezzo, "
                                    "'KG' per peso, 'CJ' per casse/confezioni.",
                                },
                                "unitPrice": {"type": "number"},
                                "totalPrice": {"type": "number"},
                                "category": {
                                    "type": "string",
                                    "description": "Usa solo 'Frutta' o 'Verdura'. "
                                    "Mappa 'Vegetables' a 'Verdura'.",
                                },
                            },
                            "required": ["name", "quantity", "unit"],
                        },
                    },
                },
                "required": [
                    "supplier", "documentNumber", "date", "products",
                    "isCreditNote", "totalAmount",
                ],
            },
        }
    },
    "required": ["documents"],
}


def strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def _coerce_product(item: dict) -> ExtractedProduct:
    return ExtractedProduct(
        code=to_str(item.get("code")),
        name=to_str(item.get("name")),
        quantity=to_float(item.get("quantity")),
        unit=to_str(item.get("unit")),
        unit_price=to_float(item.get("unitPrice")),
        total_price=to_float(item.get("totalPrice")),
        category=to_str(item.get("category")),
    )


def _coerce_document(item: dict) -> ExtractedDocument:
    raw_date = to_str(item.get("date"))
    products = item.get("products")
    if not isinstance(products, list):
        products = []
    return ExtractedDocument(
        supplier=to_str(item.get("supplier")),
        document_number=to_str(item.get("documentNumber")),
        date=normalize_date(raw_date),
        due_date=normalize_date(to_str(item.get("dueDate")) or raw_date),
        is_credit_note=bool(item.get("isCreditNote")),
        total_amount=to_float(item.get("totalAmount")),
        products=[_coerce_product(p) for p in products if isinstance(p, dict)],
    )


def parse_extraction_payload(text: str | None) -> list[ExtractedDocument]:
    """Parse and coerce a model answer into ExtractedDocument records.

    Accepts ``{"documents": [...]}`` or a bare list, optionally wrapped in
    markdown fences. Dates are normalized to ``YYYY-MM-DD``; the due date
    defaults to the document date.

    Raises:
        ExtractionEmpty: Empty text, undecodable JSON or no documents.
    """
    if not text or not text.strip():
        raise ExtractionEmpty("Risposta vuota dal servizio di estrazione.")

    try:
        parsed = json.loads(strip_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionEmpty(f"Risposta non valida dal servizio di estrazione: {e}") from e

    if isinstance(parsed, dict):
        items = parsed.get("documents") or []
    elif isinstance(parsed, list):
        items = parsed
    else:
        items = []

    documents = [_coerce_document(d) for d in items if isinstance(d, dict)]
    if not documents:
        raise ExtractionEmpty("Nessun documento trovato nel file.")
    logger.debug("Estratti %d documenti", len(documents))
    return documents

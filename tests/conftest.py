"""Shared factories for documents and product lines."""

import pytest

from magazzino.models import Document, Product


def _product(name="Mele", quantity=10.0, unit="KG", unit_price=2.0, sku="", **kw):
    total = kw.pop("total_price", quantity * unit_price)
    return Product(
        id=kw.pop("id", f"P-{name}"),
        name=name,
        sku=sku,
        quantity=quantity,
        unit_of_measure=unit,
        unit_price=unit_price,
        total_price=total,
        **kw,
    )


def _document(doc_id="D1", products=(), doc_type="invoice", date="2025-01-10", **kw):
    products = tuple(products)
    return Document(
        id=doc_id,
        document_number=kw.pop("document_number", f"N-{doc_id}"),
        date=date,
        supplier=kw.pop("supplier", "Ortofrutta Rossi"),
        total_amount=kw.pop("total_amount", sum(p.total_price for p in products)),
        type=doc_type,
        extracted_products=products,
        **kw,
    )


@pytest.fixture
def make_product():
    return _product


@pytest.fixture
def make_document():
    return _document

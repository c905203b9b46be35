"""Tests for the inventory ledger and its views."""

import pytest

from magazzino.ledger import (
    available_years,
    build_inventory,
    dashboard_stats,
    group_inventory,
    normalize_category,
    search_inventory,
)


def _by_key(inventory):
    return {e.key: e for e in inventory}


class TestBuildInventory:
    def test_single_document(self, make_product, make_document):
        doc = make_document("D1", [make_product("Mele", 10, "kg", 2.0)])
        inventory = build_inventory([doc])

        assert len(inventory) == 1
        entry = inventory[0]
        assert entry.key == "NAME-mele-KG"
        assert entry.id == "INV-KEY-NAME-mele-KG"
        assert entry.quantity == 10
        assert entry.total_price == 20
        assert entry.unit_of_measure == "KG"
        assert entry.invoice_number == "N-D1"

    def test_lines_with_same_key_accumulate(self, make_product, make_document):
        a = make_document("A", [make_product("Mele", 10, "kg", 2.0)])
        b = make_document("B", [make_product("MELE", 5, "Kilo", 3.0)], date="2025-01-12")
        entry = build_inventory([a, b])[0]

        assert entry.quantity == 15
        assert entry.total_price == 35
        assert entry.unit_price == pytest.approx(35 / 15)

    def test_credit_note_reduces_quantity(self, make_product, make_document):
        a = make_document("A", [make_product("Mele", 30, "kg", 2.0)])
        credit = make_document(
            "NC", [make_product("Mele", 10, "kg", 2.0)], is_credit_note=True
        )
        entry = build_inventory([a, credit])[0]

        assert entry.quantity == 20
        assert entry.total_price == 40

    def test_credit_note_alone_gives_negative_stock(self, make_product, make_document):
        credit = make_document(
            "NC", [make_product("Mele", 4, "kg", 2.0)], is_credit_note=True
        )
        entry = build_inventory([credit])[0]
        assert entry.quantity == -4
        assert entry.total_price == -8

    def test_order_independent_values(self, make_product, make_document):
        a = make_document("A", [
            make_product("Mele", 10.1, "kg", 1.3),
            make_product("Pere", 3, "cj", 12.0, sku="P-7"),
        ], date="2025-01-10")
        b = make_document("B", [
            make_product("Mele", 2.7, "kg", 1.1),
            make_product("Pere cassa", 1, "ct", 11.5, sku="p7"),
        ], date="2025-01-10", supplier="Verdi")

        forward = _by_key(build_inventory([a, b]))
        backward = _by_key(build_inventory([b, a]))

        assert forward.keys() == backward.keys()
        for key in forward:
            assert forward[key].quantity == backward[key].quantity
            assert forward[key].total_price == backward[key].total_price

    def test_same_date_tie_goes_to_last_processed(self, make_product, make_document):
        a = make_document("A", [make_product("Mele")], supplier="Rossi")
        b = make_document("B", [make_product("Mele")], supplier="Verdi")

        assert build_inventory([a, b])[0].supplier == "Verdi"
        assert build_inventory([b, a])[0].supplier == "Rossi"

    def test_older_document_keeps_newer_metadata(self, make_product, make_document):
        new = make_document("NEW", [make_product("Mele")], date="2025-02-01", supplier="Verdi")
        old = make_document("OLD", [make_product("Mele")], date="2025-01-01", supplier="Rossi")
        entry = build_inventory([new, old])[0]

        assert entry.supplier == "Verdi"
        assert entry.invoice_date == "2025-02-01"
        assert entry.invoice_number == "N-NEW"

    def test_zero_quantity_dropped_and_price_kept(self, make_product, make_document):
        a = make_document("A", [make_product("Mele", 10, "kg", 2.0)])
        credit = make_document(
            "NC", [make_product("Mele", 10, "kg", 2.0)], is_credit_note=True
        )
        assert build_inventory([a, credit]) == []

    def test_float_noise_is_dropped(self, make_product, make_document):
        a = make_document("A", [make_product("Mele", 0.00005, "kg", 1.0)])
        assert build_inventory([a]) == []

    def test_other_document_types_ignored(self, make_product, make_document):
        count = make_document("PC", [make_product("Mele")], doc_type="physicalCount")
        review = make_document("R", [make_product("Mele")], doc_type="reviewInvoice")
        assert build_inventory([count, review]) == []

    def test_delivery_notes_are_folded(self, make_product, make_document):
        ddt = make_document("DDT", [make_product("Mele", 3)], doc_type="deliveryNote")
        assert build_inventory([ddt])[0].quantity == 3

    def test_rebuild_after_delete(self, make_product, make_document):
        a = make_document("A", [make_product("Mele", 10)])
        b = make_document("B", [make_product("Mele", 5)])
        assert build_inventory([a, b])[0].quantity == 15
        assert build_inventory([a])[0].quantity == 10


def test_available_years(make_document):
    docs = [
        make_document("A", date="2023-05-01"),
        make_document("B", date="2025-01-01", doc_type="deliveryNote"),
        make_document("C", date="2023-12-31"),
        make_document("R", date="2021-01-01", doc_type="reviewInvoice"),
    ]
    assert available_years(docs) == [2025, 2023]


class TestNormalizeCategory:
    @pytest.mark.parametrize("raw", ["Vegetables", "verdura fresca", "Insalata", "ORTAGGI"])
    def test_vegetables(self, raw):
        assert normalize_category(raw) == "Verdura"

    @pytest.mark.parametrize("raw", ["Fruit", "frutta secca"])
    def test_fruit(self, raw):
        assert normalize_category(raw) == "Frutta"

    def test_other_is_capitalized(self):
        assert normalize_category("LATTICINI") == "Latticini"

    def test_empty(self):
        assert normalize_category("") == "Generico"


class TestViews:
    @pytest.fixture
    def inventory(self, make_product, make_document):
        docs = [
            make_document("A", [make_product("Mele", category="Frutta", sku="M1")],
                          date="2025-01-10", supplier="Rossi"),
            make_document("B", [make_product("Lattuga", category="Insalata")],
                          date="2025-03-02", supplier="Verdi"),
            make_document("C", [make_product("Arance", category="fruit")],
                          date="2025-02-20", supplier="Rossi"),
        ]
        return build_inventory(docs)

    def test_search_sorts_newest_first(self, inventory):
        names = [e.name for e in search_inventory(inventory)]
        assert names == ["Lattuga", "Arance", "Mele"]

    def test_search_matches_supplier_and_sku(self, inventory):
        assert {e.name for e in search_inventory(inventory, "rossi")} == {"Mele", "Arance"}
        assert [e.name for e in search_inventory(inventory, "m1")] == ["Mele"]
        assert [e.name for e in search_inventory(inventory, "N-B")] == ["Lattuga"]

    def test_group_by_category(self, inventory):
        groups = group_inventory(inventory, "category")
        assert sorted(groups) == ["Frutta", "Verdura"]
        assert len(groups["Frutta"]) == 2

    def test_group_by_month(self, inventory):
        groups = group_inventory(inventory, "month")
        assert sorted(groups) == ["2025-01", "2025-02", "2025-03"]

    def test_group_by_supplier(self, inventory):
        assert len(group_inventory(inventory, "supplier")["Rossi"]) == 2

    def test_group_unknown(self, inventory):
        with pytest.raises(ValueError, match="Raggruppamento"):
            group_inventory(inventory, "colour")


def test_dashboard_stats(make_product, make_document):
    invoices = [
        make_document("A", [make_product("Mele", 10, "kg", 2.0),
                            make_product("Uova", 6, "pz", 0.5)],
                      date="2025-01-10", supplier="Rossi"),
        make_document("B", [make_product("mele", 5, "kg", 2.0)],
                      date="2025-02-03", supplier="ROSSI"),
    ]
    stats = dashboard_stats(build_inventory(invoices), invoices)

    assert stats.total_value == 33
    assert stats.unique_products == 2
    assert stats.supplier_count == 1
    assert stats.quantity_by_unit == {"UD": 6, "KG": 15, "CJ": 0}
    assert stats.monthly_totals == {"2025-01": 23, "2025-02": 10}

"""Tests for the Warehouse service (local SQLite store, fake remote and backend)."""

import pytest

from magazzino.db import DocumentStore, LocalDocumentStore, StoreResult
from magazzino.errors import (
    BatchIngestError,
    DocumentNotFound,
    ExtractionEmpty,
    MagazzinoError,
    PersistenceTransient,
)
from magazzino.extraction import ExtractedDocument, ExtractedProduct, ExtractionBackend
from magazzino.warehouse import Warehouse


class FakeRemote(DocumentStore):
    def __init__(self, docs=(), online=True):
        self.docs = {d.id: d for d in docs}
        self.online = online
        self.deleted = []

    def fetch_all(self):
        if not self.online:
            return StoreResult.failure(PersistenceTransient("offline"))
        return StoreResult.success(list(self.docs.values()))

    def upsert(self, doc):
        if not self.online:
            return StoreResult.failure(PersistenceTransient("offline"))
        self.docs[doc.id] = doc
        return StoreResult.success(doc.id)

    def delete(self, doc_id):
        if not self.online:
            return StoreResult.failure(PersistenceTransient("offline"))
        self.docs.pop(doc_id, None)
        self.deleted.append(doc_id)
        return StoreResult.success(doc_id)


class FakeBackend(ExtractionBackend):
    """Returns one document per file; files whose name contains "rotto" fail."""

    def __init__(self):
        self.seen = []

    async def extract_documents(self, data, media_type):
        self.seen.append((data, media_type))
        if data.startswith(b"rotto"):
            raise ExtractionEmpty("Nessun documento trovato nel file.")
        return [
            ExtractedDocument(
                supplier="Ortofrutta Rossi",
                document_number=data.decode(),
                date="2025-01-10",
                products=[ExtractedProduct(name="Mele", quantity=10, unit="kg",
                                           unit_price=2.0, total_price=20.0)],
            )
        ]


@pytest.fixture
def local(tmp_path):
    store = LocalDocumentStore(db_path=tmp_path / "magazzino.db")
    yield store
    store.close()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def warehouse(local, remote):
    wh = Warehouse(local, remote=remote, backend=FakeBackend(), retry_backoff_s=0)
    wh.load()
    return wh


def _files(tmp_path, *names):
    paths = []
    for name in names:
        path = tmp_path / name
        path.write_bytes(path.stem.encode())
        paths.append(path)
    return paths


class TestDocuments:
    def test_add_writes_local_and_remote(self, warehouse, local, remote, make_document):
        warehouse.add_document(make_document("F1"))

        assert [d.id for d in warehouse.state.invoices] == ["F1"]
        assert [d.id for d in local.load_collection("invoices").value] == ["F1"]
        assert "F1" in remote.docs

    def test_remote_failure_keeps_local_write(self, warehouse, local, remote, make_document, caplog):
        remote.online = False
        warehouse.add_document(make_document("F1"))

        assert [d.id for d in local.load_collection("invoices").value] == ["F1"]
        assert remote.docs == {}
        assert "solo in locale" in caplog.text

    def test_get_unknown(self, warehouse):
        with pytest.raises(DocumentNotFound, match="Documento non trovato"):
            warehouse.get_document("nope")

    def test_update_unknown(self, warehouse, make_document):
        with pytest.raises(DocumentNotFound):
            warehouse.update_document(make_document("nope"))

    def test_delete(self, warehouse, local, remote, make_document):
        warehouse.add_document(make_document("F1"))
        warehouse.delete_document("F1")

        assert warehouse.state.invoices == ()
        assert local.load_collection("invoices").value == []
        assert remote.deleted == ["F1"]

    def test_payments(self, warehouse, make_document):
        warehouse.add_document(make_document("R1", doc_type="reviewInvoice", total_amount=100.0))

        assert warehouse.add_installment("R1", 40).payment_status == "partial"
        assert warehouse.add_installment("R1", 0).paid_amount == 40
        assert warehouse.set_payment_status("R1", "paid").paid_amount == 100
        assert warehouse.get_document("R1").payment_status == "paid"

    def test_inventory_and_years(self, warehouse, make_product, make_document):
        warehouse.add_document(make_document("F1", [make_product("Mele", 10)], date="2024-05-01"))
        warehouse.add_document(
            make_document("D1", [make_product("Mele", 5)], doc_type="deliveryNote",
                          date="2025-02-01")
        )

        [entry] = warehouse.inventory()
        assert entry.quantity == 15
        assert warehouse.available_years() == [2025, 2024]

    def test_reset_year(self, warehouse, remote, make_document):
        warehouse.add_document(make_document("F24", date="2024-05-01"))
        warehouse.add_document(make_document("F25", date="2025-05-01"))
        warehouse.add_document(make_document("PC", doc_type="physicalCount"))

        assert warehouse.reset_warehouse(2024) == ["F24"]
        assert [d.id for d in warehouse.state.invoices] == ["F25"]
        assert [d.id for d in warehouse.state.physical_counts] == ["PC"]
        assert remote.deleted == ["F24"]


class TestLoadAndSync:
    def test_load_merges_remote(self, local, make_document):
        local.upsert(make_document("R1", doc_type="reviewInvoice", payment_status="paid",
                                   paid_amount=10.0, total_amount=10.0))
        local.upsert(make_document("F1", date="2025-01-01"))
        remote = FakeRemote([
            make_document("R1", doc_type="reviewInvoice", payment_status="unpaid",
                          total_amount=10.0),
            make_document("F2", date="2025-03-01"),
        ])

        state = Warehouse(local, remote=remote).load()

        assert [d.id for d in state.invoices] == ["F2", "F1"]
        assert state.review_invoices[0].payment_status == "paid"
        assert [d.id for d in local.load_collection("invoices").value] == ["F2", "F1"]

    def test_load_offline_uses_local(self, local, make_document):
        local.upsert(make_document("F1"))
        state = Warehouse(local, remote=FakeRemote(online=False)).load()
        assert [d.id for d in state.invoices] == ["F1"]

    def test_sync_pushes_everything(self, local, make_document):
        local.upsert(make_document("F1"))
        local.upsert(make_document("PC", doc_type="physicalCount"))
        remote = FakeRemote()
        wh = Warehouse(local, remote=remote)
        wh.load()

        assert wh.sync() == 2
        assert set(remote.docs) == {"F1", "PC"}

    def test_sync_without_remote(self, local):
        with pytest.raises(MagazzinoError, match="cloud"):
            Warehouse(local).sync()


class TestIngest:
    @pytest.mark.asyncio
    async def test_ingest_files(self, warehouse, tmp_path):
        paths = _files(tmp_path, "FT-1.pdf", "FT-2.jpg")
        added = await warehouse.ingest_files(paths, "invoice")

        assert [d.document_number for d in added] == ["FT-1", "FT-2"]
        assert [d.document_number for d in warehouse.state.invoices] == ["FT-2", "FT-1"]
        media = [m for _, m in warehouse._backend.seen]
        assert media == ["application/pdf", "image/jpeg"]
        assert warehouse.inventory()[0].quantity == 20

    @pytest.mark.asyncio
    async def test_failure_keeps_prefix_and_reports_remaining(self, warehouse, tmp_path):
        paths = _files(tmp_path, "FT-1.pdf", "rotto.pdf", "FT-3.pdf")

        with pytest.raises(BatchIngestError) as exc_info:
            await warehouse.ingest_files(paths, "deliveryNote")

        err = exc_info.value
        assert [d.document_number for d in err.added] == ["FT-1"]
        assert err.failed_path == str(paths[1])
        assert err.remaining == [str(paths[2])]
        assert isinstance(err.__cause__, ExtractionEmpty)
        assert [d.document_number for d in warehouse.state.delivery_notes] == ["FT-1"]

    @pytest.mark.asyncio
    async def test_without_backend(self, local, tmp_path):
        wh = Warehouse(local)
        with pytest.raises(BatchIngestError):
            await wh.ingest_files(_files(tmp_path, "FT-1.pdf"), "invoice")


class TestPhysicalCount:
    @pytest.mark.asyncio
    async def test_import_csv_and_reconcile(self, warehouse, tmp_path, make_product, make_document):
        warehouse.add_document(make_document("F1", [make_product("Mele", 10, "kg", 2.0)]))
        sheet = tmp_path / "conta.csv"
        sheet.write_text("Nome;Quantità;UM\nMele;12;kg\nFichi;1;kg\n", encoding="utf-8")

        count = await warehouse.import_physical_count(sheet)

        assert count.type == "physicalCount"
        assert warehouse.state.physical_counts[0].id == count.id
        summary = warehouse.reconcile(count.id)
        assert [l.name for l in summary.lines] == ["Mele", "Fichi"]
        assert summary.lines[0].difference == 2
        assert summary.surplus_value == 4
        assert not summary.lines[1].matched

    @pytest.mark.asyncio
    async def test_import_scan(self, warehouse, tmp_path):
        [path] = _files(tmp_path, "C-1.png")
        count = await warehouse.import_physical_count(path)
        assert count.document_number == "C-1"
        assert count.extracted_products[0].unit_of_measure == "KG"

    def test_reconcile_requires_count(self, warehouse, make_document):
        warehouse.add_document(make_document("F1"))
        with pytest.raises(MagazzinoError, match="inventario fisico"):
            warehouse.reconcile("F1")

"""CLI entry point for the warehouse module."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from dotenv import load_dotenv

from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import BatchIngestError, MagazzinoError
from .ledger import INVENTORY_GROUPINGS, dashboard_stats, group_inventory, search_inventory
from .models import DELIVERY_NOTE, INVOICE, PAYMENT_STATUSES, REVIEW_INVOICE
from .payments import (
    DOC_TYPE_FILTERS,
    DOCUMENT_GROUPINGS,
    PAYMENT_FILTERS,
    SORT_FIELDS,
    filter_documents,
    group_documents,
    payment_stats,
    sort_documents,
)
from .reconciliation import STATUS_LABELS
from .spreadsheet import export_inventory, export_reconciliation
from .warehouse import Warehouse


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="magazzino",
        description="Magazzino: fatture, bolle, inventari fisici e riconciliazione giacenze",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help="percorso del file di configurazione (TOML)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="log di debug")

    sub = parser.add_subparsers(dest="command")

    # upload
    upload_parser = sub.add_parser("upload", help="carica fatture, bolle o fatture da revisionare")
    upload_parser.add_argument("files", nargs="+", help="file PDF o immagini")
    upload_parser.add_argument(
        "--type",
        choices=[INVOICE, DELIVERY_NOTE, REVIEW_INVOICE],
        default=INVOICE,
        dest="doc_type",
        help="tipo di documento (default: invoice)",
    )

    # count
    count_parser = sub.add_parser("count", help="importa un inventario fisico")
    count_parser.add_argument("file", help="foglio xlsx/csv oppure PDF/immagine")

    # inventory
    inv_parser = sub.add_parser("inventory", help="mostra le giacenze calcolate")
    inv_parser.add_argument("--search", type=str, default="", help="filtra per testo")
    inv_parser.add_argument(
        "--group", choices=INVENTORY_GROUPINGS, default="none", help="raggruppamento"
    )
    inv_parser.add_argument(
        "--export",
        type=str,
        default=None,
        metavar="FILE",
        help="esporta in xlsx (percorsi relativi nella cartella export.output_dir)",
    )
    inv_parser.add_argument("--stats", action="store_true", help="mostra il riepilogo")
    inv_parser.add_argument("--json", action="store_true", help="output in formato JSON")

    # reconcile
    rec_parser = sub.add_parser("reconcile", help="confronta un inventario fisico con il sistema")
    rec_parser.add_argument("doc_id", help="id del documento di inventario fisico")
    rec_parser.add_argument(
        "--export",
        type=str,
        default=None,
        metavar="FILE",
        help="esporta in xlsx (percorsi relativi nella cartella export.output_dir)",
    )
    rec_parser.add_argument("--discrepancies", action="store_true", help="solo le righe non allineate")

    # pay
    pay_parser = sub.add_parser("pay", help="aggiorna lo stato di pagamento")
    pay_parser.add_argument("doc_id", help="id del documento")
    group = pay_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--status", choices=PAYMENT_STATUSES, help="nuovo stato")
    group.add_argument("--installment", type=float, help="importo della rata")

    # payments
    pays_parser = sub.add_parser("payments", help="elenco fatture da revisionare")
    pays_parser.add_argument("--type", choices=DOC_TYPE_FILTERS, default="all", dest="doc_type")
    pays_parser.add_argument("--status", choices=PAYMENT_FILTERS, default="all")
    pays_parser.add_argument("--supplier", type=str, default=None)
    pays_parser.add_argument("--sort", choices=SORT_FIELDS, default="date")
    pays_parser.add_argument("--asc", action="store_true", help="ordine crescente")
    pays_parser.add_argument("--group", choices=DOCUMENT_GROUPINGS, default="none")

    # delete
    del_parser = sub.add_parser("delete", help="elimina un documento")
    del_parser.add_argument("doc_id")

    # reset
    reset_parser = sub.add_parser("reset", help="svuota il magazzino (fatture e bolle)")
    reset_parser.add_argument("--year", type=int, default=None, help="solo l'anno indicato")

    # sync
    sub.add_parser("sync", help="invia tutti i documenti locali al cloud")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # API keys may also come from a .env file in the working directory
    load_dotenv()
    config = load_config(args.config)
    warehouse = Warehouse.from_config(config)
    try:
        warehouse.load()
        _dispatch(warehouse, config, args)
    except BatchIngestError as e:
        print(str(e), file=sys.stderr)
        if e.added:
            print(f"Documenti già aggiunti: {len(e.added)}", file=sys.stderr)
        if e.remaining:
            print("File non elaborati: " + ", ".join(e.remaining), file=sys.stderr)
        sys.exit(1)
    except MagazzinoError as e:
        print(f"Errore: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        warehouse.close()


def _dispatch(warehouse: Warehouse, config, args) -> None:
    match args.command:
        case "upload":
            docs = asyncio.run(warehouse.ingest_files(args.files, args.doc_type))
            print(f"Caricati {len(docs)} documenti.")
            for d in docs:
                print(f"  {d.id}  {d.date}  {d.supplier}  {d.total_amount:.2f} €")
        case "count":
            doc = asyncio.run(warehouse.import_physical_count(args.file))
            print(f"Inventario fisico {doc.id}: {len(doc.extracted_products)} righe.")
        case "inventory":
            _cmd_inventory(warehouse, config, args)
        case "reconcile":
            _cmd_reconcile(warehouse, config, args)
        case "pay":
            if args.status:
                doc = warehouse.set_payment_status(args.doc_id, args.status)
            else:
                doc = warehouse.add_installment(args.doc_id, args.installment)
            print(
                f"{doc.id}: {doc.payment_status} "
                f"({doc.paid_amount:.2f} / {doc.total_amount:.2f} €)"
            )
        case "payments":
            _cmd_payments(warehouse, config, args)
        case "delete":
            warehouse.delete_document(args.doc_id)
            print(f"Documento {args.doc_id} eliminato.")
        case "reset":
            removed = warehouse.reset_warehouse(args.year)
            print(f"Rimossi {len(removed)} documenti.")
        case "sync":
            pushed = warehouse.sync()
            print(f"Inviati {pushed} documenti al cloud.")


def _export_path(config, name: str) -> Path:
    """Relative export names land in the configured output directory."""
    path = Path(name).expanduser()
    if path.is_absolute():
        return path
    return Path(config.export.output_dir).expanduser() / path


def _cmd_inventory(warehouse: Warehouse, config, args) -> None:
    entries = search_inventory(warehouse.inventory(), args.search)

    if args.export:
        path = export_inventory(
            entries, _export_path(config, args.export), config.export.language
        )
        print(f"Giacenze esportate in {path}")
        return

    if args.json:
        print(json.dumps([asdict(e) for e in entries], ensure_ascii=False, indent=2))
        return

    if args.stats:
        stats = dashboard_stats(entries, warehouse.state.invoices)
        print(f"Valore totale: {stats.total_value:.2f} €")
        print(f"Prodotti: {stats.unique_products}  Fornitori: {stats.supplier_count}")
        for unit, qty in stats.quantity_by_unit.items():
            print(f"  {unit}: {qty:g}")
        print()

    if not entries:
        print("Nessuna giacenza.")
        return
    for label, group in group_inventory(entries, args.group).items():
        print(f"\n{label} ({len(group)})")
        for e in group:
            print(
                f"  {e.sku or 'N/D':<12} {e.name:<30} {e.quantity:>10g} {e.unit_of_measure:<3}"
                f" {e.unit_price:>9.2f} €  {e.total_price:>10.2f} €  [{e.supplier}]"
            )


def _cmd_reconcile(warehouse: Warehouse, config, args) -> None:
    summary = warehouse.reconcile(args.doc_id)

    if args.export:
        path = export_reconciliation(
            summary, _export_path(config, args.export), config.export.language
        )
        print(f"Report salvato in {path}")
        return

    labels = STATUS_LABELS.get(config.export.language, STATUS_LABELS["it"])
    lines = summary.discrepancies() if args.discrepancies else summary.lines
    for line in lines:
        match_flag = "" if line.matched else " (nuovo)"
        print(
            f"  {line.name:<30}{match_flag} fisico {line.counted_quantity:g}"
            f" / sistema {line.system_quantity:g}  diff {line.difference:+g}"
            f"  {line.value_difference:+.2f} €  {labels[line.status]}"
        )
    print()
    print(f"Eccedenze: {summary.surplus_value:.2f} €")
    print(f"Ammanchi:  {summary.deficit_value:.2f} €")
    print(f"Netto:     {summary.net_variance:+.2f} €")
    print(
        f"Discrepanze: {summary.discrepancy_count}  "
        f"Abbinati: {summary.matched_count}/{len(summary.lines)}"
    )


def _cmd_payments(warehouse: Warehouse, config, args) -> None:
    docs = warehouse.state.review_invoices
    stats = payment_stats(docs)
    selected = filter_documents(docs, args.doc_type, args.status, args.supplier)
    selected = sort_documents(selected, args.sort, descending=not args.asc)

    for label, group in group_documents(
        selected, args.group, config.export.language
    ).items():
        print(f"\n{label}")
        for d in group:
            kind = "NC" if d.is_credit_note else "FT"
            print(
                f"  {d.id}  {kind} {d.document_number:<12} {d.date}"
                f" scad. {d.due_date or d.date}  {d.supplier:<25}"
                f" {d.paid_amount:>9.2f} / {d.total_amount:>9.2f} €  {d.payment_status}"
            )

    print()
    print(f"Pagato: {stats.paid:.2f} €  Da pagare: {stats.unpaid:.2f} €")
    print(
        f"Note credito incassate: {stats.received_credits:.2f} €"
        f"  da incassare: {stats.pending_credits:.2f} €"
    )
    print(f"Residuo parziali: {stats.partial_residue:.2f} €")


if __name__ == "__main__":
    main()

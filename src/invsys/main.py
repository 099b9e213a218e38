from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable, Optional, Sequence

from invsys import __version__
from invsys.application.container import AppContainer, build_container
from invsys.config import get_app_paths, load_settings
from invsys.domain.errors import (
    AppError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from invsys.logging_config import setup_logging

log = logging.getLogger(__name__)

EXIT_CODES: list[tuple[type, int]] = [
    (ValidationError, 2),
    (NotFoundError, 3),
    (InsufficientStockError, 4),
    (ConflictError, 4),
    (AppError, 1),
]


def parse_line(raw: str) -> dict:
    """``PRODUCT_ID:QTY:UNIT_PRICE`` -> line dict."""
    parts = raw.split(":")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected PRODUCT_ID:QTY:UNIT_PRICE, got {raw!r}")
    try:
        return {"product_id": int(parts[0]), "quantity": int(parts[1]), "unit_price": parts[2]}
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid line {raw!r}: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="invsys", description="Inventory purchases, sales and stock.")
    parser.add_argument("--db", default=None, help="Path to the sqlite database (defaults to INVSYS_DB_PATH or the app data dir).")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Mirror log records to stderr.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create or migrate the database.")

    p = sub.add_parser("add-product", help="Register a product.")
    p.add_argument("--name", required=True)
    p.add_argument("--price", required=True)
    p.add_argument("--stock", type=int, default=0)
    p.add_argument("--description", default=None)

    for name in ("add-supplier", "add-customer"):
        p = sub.add_parser(name, help=f"Register a {name.split('-')[1]}.")
        p.add_argument("--name", required=True)
        p.add_argument("--email", required=True)
        p.add_argument("--phone", default=None)

    p = sub.add_parser("add-user", help="Register an acting user.")
    p.add_argument("--username", required=True)
    p.add_argument("--first-name", required=True)
    p.add_argument("--last-name", default="")

    p = sub.add_parser("purchase", help="Record a purchase (adds stock).")
    p.add_argument("--supplier", type=int, required=True)
    p.add_argument("--user", type=int, required=True)
    p.add_argument("--line", type=parse_line, action="append", default=[], help="PRODUCT_ID:QTY:UNIT_PRICE")

    p = sub.add_parser("sale", help="Record a sale (removes stock).")
    p.add_argument("--customer", type=int, required=True)
    p.add_argument("--user", type=int, required=True)
    p.add_argument("--line", type=parse_line, action="append", default=[], help="PRODUCT_ID:QTY:UNIT_PRICE")

    p = sub.add_parser("show-purchase")
    p.add_argument("id", type=int)
    p = sub.add_parser("show-sale")
    p.add_argument("id", type=int)

    sub.add_parser("list-purchases")
    p = sub.add_parser("list-sales")
    p.add_argument("--from", dest="date_from", default=None)
    p.add_argument("--to", dest="date_to", default=None)
    p.add_argument("--customer", type=int, default=None)
    p.add_argument("--user", type=int, default=None)

    sub.add_parser("stock", help="Stock report.")

    p = sub.add_parser("export-report", help="Write an Excel report.")
    p.add_argument("path")
    p.add_argument("--from", dest="date_from", required=True)
    p.add_argument("--to", dest="date_to", required=True)
    return parser


def _dispatch(c: AppContainer, args: argparse.Namespace) -> object:
    def export_report() -> dict:
        c.reporting.export_excel(args.path, args.date_from, args.date_to)
        return {"path": args.path}

    handlers: dict[str, Callable[[], object]] = {
        "init": lambda: {"schema_version": c.repo.schema_version()},
        "add-product": lambda: {
            "id": c.inventory.add_product(args.name, args.price, args.stock, args.description)
        },
        "add-supplier": lambda: {"id": c.suppliers.add(args.name, args.email, args.phone)},
        "add-customer": lambda: {"id": c.customers.add(args.name, args.email, args.phone)},
        "add-user": lambda: {"id": c.users.add_user(args.username, args.first_name, args.last_name)},
        "purchase": lambda: c.purchases.create_purchase(args.supplier, args.user, args.line).to_dict(),
        "sale": lambda: c.sales.create_sale(args.customer, args.user, args.line).to_dict(),
        "show-purchase": lambda: c.purchases.get_purchase(args.id).to_dict(),
        "show-sale": lambda: c.sales.get_sale(args.id).to_dict(),
        "list-purchases": lambda: [p.to_dict() for p in c.purchases.list_purchases()],
        "list-sales": lambda: [
            s.to_dict() for s in c.sales.list_sales(args.date_from, args.date_to, args.customer, args.user)
        ],
        "stock": lambda: [
            {"product_id": r.product_id, "name": r.name, "stock": r.stock, "status": r.status}
            for r in c.reporting.stock_report()
        ],
        "export-report": export_report,
    }
    return handlers[args.command]()


def exit_code_for(exc: AppError) -> int:
    for error_type, code in EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ValidationError as e:
        print(json.dumps({"error": type(e).__name__, "message": str(e)}), file=sys.stderr)
        return exit_code_for(e)
    paths = get_app_paths(db_override=args.db or settings.db_path)
    setup_logging(paths.logs_dir, level=logging.DEBUG if args.verbose else logging.INFO, console=args.verbose)

    try:
        container = build_container(paths.db_path, settings)
        result = _dispatch(container, args)
    except AppError as e:
        log.error("command_failed command=%s error=%s", args.command, e)
        print(json.dumps({"error": type(e).__name__, "message": str(e)}), file=sys.stderr)
        return exit_code_for(e)

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Generic stock-affecting transaction engine.

Purchases and sales share one orchestration: validate, open a unit of work,
write the header, write each line and move its stock through the ledger in
input order, price the header, commit, then re-read the enriched record.
Only the :class:`~invsys.domain.models.TransactionKind` differs.
"""
from __future__ import annotations

import sqlite3
from typing import Callable, Iterable, Mapping

from invsys.domain import calculator
from invsys.domain.errors import (
    CustomerNotFoundError,
    StorageError,
    SupplierNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from invsys.domain.models import LineRequest, StockTransaction, TransactionKind
from invsys.repositories.unit_of_work import UnitOfWork
from invsys.services.stock_ledger import StockLedger, utc_now_iso

COUNTERPARTY_ERRORS = {
    "suppliers": SupplierNotFoundError,
    "customers": CustomerNotFoundError,
}


def positive_id(value: object, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a positive integer.")
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} must be a positive integer.") from e
    if parsed <= 0 or parsed > calculator.MAX_STORED_INT or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{label} must be a positive integer.")
    return parsed


def coerce_line(raw: LineRequest | Mapping) -> LineRequest:
    """Accepts a :class:`LineRequest` or a mapping with product_id, quantity (or qty) and unit_price."""
    if isinstance(raw, LineRequest):
        product_id, quantity, unit_price = raw.product_id, raw.quantity, raw.unit_price
    elif isinstance(raw, Mapping):
        try:
            product_id = raw["product_id"]
            quantity = raw["quantity"] if "quantity" in raw else raw["qty"]
            unit_price = raw["unit_price"]
        except KeyError as e:
            raise ValidationError(f"Line is missing field: {e.args[0]}") from e
    else:
        raise ValidationError(f"Unsupported line item: {raw!r}")

    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"Qty must be an integer: {quantity!r}")
    line = LineRequest(
        product_id=positive_id(product_id, "Product id"),
        quantity=quantity,
        unit_price=calculator.to_money(unit_price),
    )
    calculator.subtotal(line.quantity, line.unit_price)
    return line


class StockTransactionEngine:
    def __init__(
        self,
        repo,
        kind: TransactionKind,
        ledger: StockLedger | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.kind = kind
        self.ledger = ledger or StockLedger()
        self.uow_factory = uow_factory or repo.unit_of_work

    def validate(self, counterparty_id: object, acting_user_id: object, lines: Iterable) -> tuple[int, int, list[LineRequest], int]:
        """Returns the parsed ids, the lines and the total in cents."""
        party_label = "Supplier id" if self.kind.counterparty_table == "suppliers" else "Customer id"
        cid = positive_id(counterparty_id, party_label)
        uid = positive_id(acting_user_id, "User id")
        if lines is None:
            raise ValidationError("At least one line item is required.")
        requests = [coerce_line(raw) for raw in lines]
        if not requests:
            raise ValidationError("At least one line item is required.")
        return cid, uid, requests, calculator.to_cents(calculator.total(requests))

    def create(self, counterparty_id: object, acting_user_id: object, lines: Iterable) -> StockTransaction:
        kind = self.kind
        cid, uid, requests, total_cents = self.validate(counterparty_id, acting_user_id, lines)

        with self.uow_factory() as uow:
            if not uow.counterparty_exists(kind, cid):
                raise COUNTERPARTY_ERRORS[kind.counterparty_table](cid)
            if not uow.user_exists(uid):
                raise UserNotFoundError(uid)

            header_id = uow.insert_header(kind, cid, uid, utc_now_iso())
            for line in requests:
                uow.insert_line(kind, header_id, line.product_id, line.quantity, calculator.to_cents(line.unit_price))
                self.ledger.adjust_stock(
                    uow,
                    line.product_id,
                    line.quantity,
                    kind.direction,
                    reference_type=kind.name,
                    reference_id=header_id,
                    actor_user_id=uid,
                )

            uow.update_header_total(kind, header_id, total_cents)

        try:
            record = self.repo.get_transaction(kind, header_id)
        except sqlite3.Error as e:
            raise StorageError(f"Could not read back {kind.name} {header_id}: {e}") from e
        if record is None:
            raise StorageError(f"{kind.name} {header_id} missing after commit")
        return record

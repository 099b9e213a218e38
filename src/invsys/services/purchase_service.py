from __future__ import annotations

import logging
from typing import Callable, Iterable

from invsys.domain.errors import AppError, TransactionNotFoundError
from invsys.domain.models import PURCHASE, StockTransaction
from invsys.repositories.unit_of_work import UnitOfWork
from invsys.services.stock_ledger import StockLedger
from invsys.services.transaction_engine import StockTransactionEngine, positive_id

log = logging.getLogger("invsys.purchases")


class PurchaseService:
    def __init__(
        self,
        repo,
        ledger: StockLedger | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.engine = StockTransactionEngine(repo, PURCHASE, ledger=ledger, uow_factory=uow_factory)

    def create_purchase(self, supplier_id: int, acting_user_id: int, lines: Iterable) -> StockTransaction:
        """
        lines: [{product_id, quantity, unit_price}]

        Increases stock for every line. Either the whole purchase is stored or nothing is.
        """
        try:
            purchase = self.engine.create(supplier_id, acting_user_id, lines)
        except AppError as e:
            log.warning("purchase_failed supplier_id=%s actor=%s error=%s", supplier_id, acting_user_id, e)
            raise
        log.info(
            "purchase_created purchase_id=%s supplier_id=%s lines=%s total=%s actor=%s",
            purchase.id,
            purchase.counterparty_id,
            len(purchase.lines),
            purchase.total,
            purchase.user_id,
        )
        return purchase

    def get_purchase(self, purchase_id: int) -> StockTransaction:
        pid = positive_id(purchase_id, "Purchase id")
        purchase = self.repo.get_transaction(PURCHASE, pid)
        if purchase is None:
            raise TransactionNotFoundError(PURCHASE.name, pid)
        return purchase

    def list_purchases(self) -> list[StockTransaction]:
        return self.repo.list_transactions(PURCHASE)

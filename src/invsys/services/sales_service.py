from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from invsys.domain.errors import AppError, InsufficientStockError, TransactionNotFoundError
from invsys.domain.models import SALE, StockTransaction
from invsys.repositories.unit_of_work import UnitOfWork
from invsys.services.date_range import date_range
from invsys.services.stock_ledger import StockLedger
from invsys.services.transaction_engine import StockTransactionEngine, positive_id

log = logging.getLogger("invsys.sales")


class SalesService:
    def __init__(
        self,
        repo,
        ledger: StockLedger | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.engine = StockTransactionEngine(repo, SALE, ledger=ledger, uow_factory=uow_factory)

    def create_sale(self, customer_id: int, acting_user_id: int, lines: Iterable) -> StockTransaction:
        """
        lines: [{product_id, quantity, unit_price}]

        Lines are applied in the given order; the first line without enough
        stock aborts the sale and nothing from it is kept.
        """
        try:
            sale = self.engine.create(customer_id, acting_user_id, lines)
        except InsufficientStockError as e:
            log.warning(
                "sale_rejected_insufficient_stock customer_id=%s product_id=%s available=%s requested=%s actor=%s",
                customer_id,
                e.product_id,
                e.available,
                e.requested,
                acting_user_id,
            )
            raise
        except AppError as e:
            log.warning("sale_failed customer_id=%s actor=%s error=%s", customer_id, acting_user_id, e)
            raise
        log.info(
            "sale_created sale_id=%s customer_id=%s lines=%s total=%s actor=%s",
            sale.id,
            sale.counterparty_id,
            len(sale.lines),
            sale.total,
            sale.user_id,
        )
        return sale

    def get_sale(self, sale_id: int) -> StockTransaction:
        sid = positive_id(sale_id, "Sale id")
        sale = self.repo.get_transaction(SALE, sid)
        if sale is None:
            raise TransactionNotFoundError(SALE.name, sid)
        return sale

    def list_sales(
        self,
        date_from=None,
        date_to=None,
        customer_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[StockTransaction]:
        start, end = date_range(date_from, date_to)
        return self.repo.list_transactions(
            SALE,
            date_from=start,
            date_to=end,
            counterparty_id=positive_id(customer_id, "Customer id") if customer_id is not None else None,
            user_id=positive_id(user_id, "User id") if user_id is not None else None,
        )

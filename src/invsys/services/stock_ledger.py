from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from invsys.domain import calculator
from invsys.domain.errors import InsufficientStockError, ProductNotFoundError, ValidationError
from invsys.domain.models import StockDirection
from invsys.repositories.unit_of_work import UnitOfWork

log = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat(sep=" ")


class StockLedger:
    """Owns quantity-on-hand mutation.

    Every adjustment is issued against the caller's unit of work and is undone
    together with it; the ledger never commits by itself.
    """

    def adjust_stock(
        self,
        uow: UnitOfWork,
        product_id: int,
        quantity: int,
        direction: StockDirection,
        *,
        reference_type: str = "manual",
        reference_id: Optional[int] = None,
        actor_user_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Apply ``quantity`` in ``direction`` and return the resulting stock."""
        calculator.check_quantity(quantity)
        direction = StockDirection(direction)
        now = utc_now_iso()

        if direction is StockDirection.INCREASE:
            current = uow.get_product_stock(product_id)
            if current is None:
                raise ProductNotFoundError(product_id)
            if current + quantity > calculator.MAX_STORED_INT:
                raise ValidationError(f"Stock for product {product_id} would exceed the storable maximum.")
            stock_after = uow.increment_stock(product_id, quantity, now)
            if stock_after is None:
                raise ProductNotFoundError(product_id)
            qty_delta = quantity
        else:
            available = uow.get_product_stock(product_id)
            if available is None:
                raise ProductNotFoundError(product_id)
            if quantity > available:
                raise InsufficientStockError(product_id, available, quantity)
            stock_after = uow.decrement_stock(product_id, quantity, now)
            if stock_after is None:
                # the unit of work holds the write lock, so this means the row changed under us
                raise InsufficientStockError(product_id, uow.get_product_stock(product_id) or 0, quantity)
            qty_delta = -quantity

        uow.append_movement(
            now,
            product_id,
            direction,
            qty_delta,
            stock_after,
            reference_type,
            reference_id,
            actor_user_id,
            notes,
        )
        log.debug("stock_adjusted product_id=%s delta=%s stock_after=%s", product_id, qty_delta, stock_after)
        return stock_after

from __future__ import annotations

from typing import Callable, Optional

from invsys.domain import calculator
from invsys.domain.errors import ConflictError, ProductNotFoundError, UserNotFoundError, ValidationError
from invsys.domain.models import Product, StockDirection, StockMovement
from invsys.repositories.unit_of_work import UnitOfWork
from invsys.services.stock_ledger import StockLedger, utc_now_iso
from invsys.services.transaction_engine import positive_id


class InventoryService:
    def __init__(
        self,
        repo,
        ledger: StockLedger | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.ledger = ledger or StockLedger()
        self.uow_factory = uow_factory or repo.unit_of_work

    def list_products(self) -> list[Product]:
        return self.repo.list_products()

    def get_product(self, product_id: int) -> Product:
        pid = positive_id(product_id, "Product id")
        p = self.repo.get_product(pid)
        if not p:
            raise ProductNotFoundError(pid)
        return p

    def add_product(self, name: str, unit_price, stock: int = 0, description: Optional[str] = None) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        if len(name) > 200:
            raise ValidationError("Name must have at most 200 characters.")
        if description is not None and len(description) > 500:
            raise ValidationError("Description must have at most 500 characters.")
        price = calculator.to_money(unit_price)
        if price <= 0:
            raise ValidationError("Price must be > 0.")
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            raise ValidationError("Stock must be >= 0.")
        if stock > calculator.MAX_STORED_INT:
            raise ValidationError(f"Stock out of range: {stock}")
        return self.repo.add_product(name, description, calculator.to_cents(price), stock, utc_now_iso())

    def update_product(self, product_id: int, name: str, unit_price, description: Optional[str] = None) -> Product:
        """Stock is not editable here; it only moves through :meth:`adjust_stock` or transactions."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        price = calculator.to_money(unit_price)
        if price <= 0:
            raise ValidationError("Price must be > 0.")
        pid = positive_id(product_id, "Product id")
        updated = self.repo.update_product(pid, name, description, calculator.to_cents(price), utc_now_iso())
        if not updated:
            raise ProductNotFoundError(pid)
        return self.get_product(pid)

    def delete_product(self, product_id: int) -> None:
        pid = self.get_product(product_id).id
        if self.repo.product_has_history(pid):
            raise ConflictError("Product cannot be deleted because it has recorded stock history.")
        if not self.repo.delete_product(pid):
            raise ProductNotFoundError(pid)

    def adjust_stock(self, product_id: int, delta: int, actor_user_id: int | None = None, notes: str | None = None) -> int:
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("Stock adjustment must be a non-zero integer.")
        pid = positive_id(product_id, "Product id")
        actor = positive_id(actor_user_id, "User id") if actor_user_id is not None else None
        direction = StockDirection.INCREASE if delta > 0 else StockDirection.DECREASE
        with self.uow_factory() as uow:
            if actor is not None and not uow.user_exists(actor):
                raise UserNotFoundError(actor)
            return self.ledger.adjust_stock(
                uow,
                pid,
                abs(delta),
                direction,
                reference_type="manual",
                actor_user_id=actor,
                notes=notes,
            )

    def recent_movements(self, limit: int = 100, product_id: int | None = None) -> list[StockMovement]:
        pid = positive_id(product_id, "Product id") if product_id is not None else None
        return self.repo.recent_movements(positive_id(limit, "Limit"), product_id=pid)

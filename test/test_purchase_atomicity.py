from decimal import Decimal
from pathlib import Path

import pytest
from conftest import count_rows, seed

from invsys.domain.errors import (
    ProductNotFoundError,
    StorageError,
    SupplierNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from invsys.repositories.unit_of_work import SqliteUnitOfWork
from invsys.services.purchase_service import PurchaseService


class FailingTotalUow(SqliteUnitOfWork):
    def update_header_total(self, kind, header_id, total_cents):
        self._execute("UPDATE table_that_does_not_exist SET total_cents=?", (total_cents,))


def test_purchase_round_trip_total_and_stock(tmp_path: Path):
    s = seed(tmp_path)
    inv = s.container.inventory
    p1 = inv.add_product("Widget", "12.00", 0)
    p2 = inv.add_product("Gadget", "4.00", 1)

    purchase = s.container.purchases.create_purchase(
        s.supplier_id,
        s.user_id,
        [
            {"product_id": p1, "quantity": 5, "unit_price": "10.00"},
            {"product_id": p2, "quantity": 2, "unit_price": 3.50},
        ],
    )

    assert purchase.total == Decimal("57.00")
    assert [line.subtotal for line in purchase.lines] == [Decimal("50.00"), Decimal("7.00")]
    assert inv.get_product(p1).stock == 5
    assert inv.get_product(p2).stock == 3


def test_purchase_rolls_back_when_second_product_is_missing(tmp_path: Path):
    s = seed(tmp_path)
    inv = s.container.inventory
    pid = inv.add_product("Widget", "12.00", 4)

    with pytest.raises(ProductNotFoundError) as exc:
        s.container.purchases.create_purchase(
            s.supplier_id,
            s.user_id,
            [
                {"product_id": pid, "quantity": 5, "unit_price": "10.00"},
                {"product_id": 9999, "quantity": 1, "unit_price": "1.00"},
            ],
        )

    assert exc.value.product_id == 9999
    assert inv.get_product(pid).stock == 4
    assert count_rows(s.repo, "purchases") == 0
    assert count_rows(s.repo, "purchase_items") == 0
    assert count_rows(s.repo, "stock_movements") == 0


def test_purchase_rolls_back_when_storage_fails(tmp_path: Path):
    s = seed(tmp_path)
    pid = s.container.inventory.add_product("Widget", "12.00", 0)
    purchases = PurchaseService(s.repo, uow_factory=lambda: FailingTotalUow(s.repo.db_path))

    with pytest.raises(StorageError):
        purchases.create_purchase(s.supplier_id, s.user_id, [{"product_id": pid, "quantity": 5, "unit_price": "3.00"}])

    assert s.container.inventory.get_product(pid).stock == 0
    assert purchases.list_purchases() == []


def test_purchase_rolls_back_on_interrupt(tmp_path: Path):
    s = seed(tmp_path)
    pid = s.container.inventory.add_product("Widget", "12.00", 0)

    class InterruptingLedger(type(s.container.ledger)):
        calls = 0

        def adjust_stock(self, uow, *args, **kwargs):
            InterruptingLedger.calls += 1
            if InterruptingLedger.calls == 2:
                raise KeyboardInterrupt
            return super().adjust_stock(uow, *args, **kwargs)

    purchases = PurchaseService(s.repo, ledger=InterruptingLedger())
    with pytest.raises(KeyboardInterrupt):
        purchases.create_purchase(
            s.supplier_id,
            s.user_id,
            [
                {"product_id": pid, "quantity": 5, "unit_price": "3.00"},
                {"product_id": pid, "quantity": 1, "unit_price": "3.00"},
            ],
        )

    assert s.container.inventory.get_product(pid).stock == 0
    assert count_rows(s.repo, "purchases") == 0


def test_purchase_rejects_unknown_supplier_and_user(tmp_path: Path):
    s = seed(tmp_path)
    pid = s.container.inventory.add_product("Widget", "12.00", 0)
    line = [{"product_id": pid, "quantity": 1, "unit_price": "1.00"}]

    with pytest.raises(SupplierNotFoundError):
        s.container.purchases.create_purchase(424242, s.user_id, line)
    with pytest.raises(UserNotFoundError):
        s.container.purchases.create_purchase(s.supplier_id, 424242, line)

    assert count_rows(s.repo, "purchases") == 0
    assert s.container.inventory.get_product(pid).stock == 0


@pytest.mark.parametrize(
    "quantity,unit_price",
    [(10**19, "1.00"), (1, "1E+30"), (10**9, "99999999999.99")],
)
def test_out_of_range_lines_are_rejected_before_any_write(tmp_path: Path, quantity, unit_price):
    s = seed(tmp_path)
    pid = s.container.inventory.add_product("Widget", "1.00", 3)

    with pytest.raises(ValidationError):
        s.container.purchases.create_purchase(
            s.supplier_id, s.user_id, [{"product_id": pid, "quantity": quantity, "unit_price": unit_price}]
        )

    assert count_rows(s.repo, "purchases") == 0
    assert s.container.inventory.get_product(pid).stock == 3


def test_stock_increase_past_storage_range_rolls_back(tmp_path: Path):
    s = seed(tmp_path)
    pid = s.container.inventory.add_product("Bulk", "0.01", 2**62)

    with pytest.raises(ValidationError):
        s.container.purchases.create_purchase(
            s.supplier_id, s.user_id, [{"product_id": pid, "quantity": 2**62, "unit_price": "0.01"}]
        )

    assert count_rows(s.repo, "purchases") == 0
    assert s.container.inventory.get_product(pid).stock == 2**62


def test_oversized_parameters_surface_as_storage_errors(tmp_path: Path):
    s = seed(tmp_path)
    with SqliteUnitOfWork(s.repo.db_path) as uow:
        with pytest.raises(StorageError):
            uow.get_product_stock(10**19)

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from conftest import seed

from invsys.domain.errors import InsufficientStockError, TransactionNotFoundError, ValidationError


def _stocked(tmp_path: Path):
    s = seed(tmp_path)
    inv = s.container.inventory
    a = inv.add_product("Alpha", "2.00", 20)
    b = inv.add_product("Beta", "3.00", 20)
    return s, a, b


def test_header_total_equals_sum_of_line_subtotals(tmp_path: Path):
    s, a, b = _stocked(tmp_path)
    s.container.purchases.create_purchase(
        s.supplier_id, s.user_id, [{"product_id": a, "quantity": 3, "unit_price": "0.10"}, {"product_id": b, "quantity": 7, "unit_price": "0.20"}]
    )
    s.container.sales.create_sale(
        s.customer_id, s.user_id, [{"product_id": a, "quantity": 3, "unit_price": "0.10"}, {"product_id": b, "quantity": 1, "unit_price": "19.99"}]
    )

    records = s.container.purchases.list_purchases() + s.container.sales.list_sales()
    assert len(records) == 2
    for tx in records:
        assert tx.total == sum((line.subtotal for line in tx.lines), Decimal("0.00"))
        for line in tx.lines:
            assert line.subtotal == line.unit_price * line.quantity
    assert records[0].total == Decimal("1.70")


def test_stock_never_goes_negative(tmp_path: Path):
    s, a, _b = _stocked(tmp_path)
    s.container.sales.create_sale(s.customer_id, s.user_id, [{"product_id": a, "quantity": 20, "unit_price": "2.00"}])

    with pytest.raises(InsufficientStockError):
        s.container.sales.create_sale(s.customer_id, s.user_id, [{"product_id": a, "quantity": 1, "unit_price": "2.00"}])

    assert all(p.stock >= 0 for p in s.container.inventory.list_products())
    assert s.container.inventory.get_product(a).stock == 0


def test_reads_are_idempotent_and_enriched(tmp_path: Path):
    s, a, b = _stocked(tmp_path)
    sale = s.container.sales.create_sale(
        s.customer_id, s.user_id, [{"product_id": b, "quantity": 2, "unit_price": "3.00"}, {"product_id": a, "quantity": 1, "unit_price": "2.50"}]
    )

    first = s.container.sales.get_sale(sale.id)
    second = s.container.sales.get_sale(sale.id)

    assert first == second == sale
    assert sale.counterparty_name == "Jane Roe"
    assert sale.user_name == "Carla Diaz"
    assert [line.product_name for line in sale.lines] == ["Beta", "Alpha"]
    assert sale.to_dict()["customer_id"] == s.customer_id
    assert sale.to_dict()["total"] == "8.50"


def test_display_names_follow_current_reference_data_but_prices_are_snapshotted(tmp_path: Path):
    s, a, _b = _stocked(tmp_path)
    purchase = s.container.purchases.create_purchase(s.supplier_id, s.user_id, [{"product_id": a, "quantity": 1, "unit_price": "1.25"}])

    s.container.inventory.update_product(a, "Alpha Prime", "99.00")
    s.container.suppliers.update(s.supplier_id, "ACME Renamed", "sales@acme.example.com")

    again = s.container.purchases.get_purchase(purchase.id)
    assert again.counterparty_name == "ACME Renamed"
    assert again.lines[0].product_name == "Alpha Prime"
    assert again.lines[0].unit_price == Decimal("1.25")
    assert again.total == Decimal("1.25")


def test_unknown_transaction_ids_raise_not_found(tmp_path: Path):
    s, _a, _b = _stocked(tmp_path)

    with pytest.raises(TransactionNotFoundError):
        s.container.sales.get_sale(12345)
    with pytest.raises(TransactionNotFoundError):
        s.container.purchases.get_purchase(12345)


def test_list_sales_filters_by_date_customer_and_user(tmp_path: Path):
    s, a, _b = _stocked(tmp_path)
    other_customer = s.container.customers.add("John Poe", "john@example.com")
    other_user = s.container.users.add_user("seller", "Sam", "Lee")
    sales = s.container.sales

    sales.create_sale(s.customer_id, s.user_id, [{"product_id": a, "quantity": 1, "unit_price": "2.00"}])
    sales.create_sale(other_customer, other_user, [{"product_id": a, "quantity": 1, "unit_price": "2.00"}])

    today = datetime.now(timezone.utc).date()
    window = (today - timedelta(days=1), today + timedelta(days=1))

    assert len(sales.list_sales(*window)) == 2
    assert [x.counterparty_id for x in sales.list_sales(*window, customer_id=other_customer)] == [other_customer]
    assert [x.user_id for x in sales.list_sales(*window, user_id=s.user_id)] == [s.user_id]
    assert sales.list_sales("2000-01-01", "2000-12-31") == []
    assert len(sales.list_sales()) == 2


@pytest.mark.parametrize("date_from,date_to", [("2024-02-10", "2024-02-01"), ("not-a-date", None), ("2024-13-01", None)])
def test_list_sales_rejects_malformed_date_range(tmp_path: Path, date_from, date_to):
    s, _a, _b = _stocked(tmp_path)

    with pytest.raises(ValidationError):
        s.container.sales.list_sales(date_from, date_to)


def test_list_purchases_is_newest_first(tmp_path: Path):
    s, a, _b = _stocked(tmp_path)
    first = s.container.purchases.create_purchase(s.supplier_id, s.user_id, [{"product_id": a, "quantity": 1, "unit_price": "1.00"}])
    second = s.container.purchases.create_purchase(s.supplier_id, s.user_id, [{"product_id": a, "quantity": 2, "unit_price": "1.00"}])

    assert [p.id for p in s.container.purchases.list_purchases()] == [second.id, first.id]

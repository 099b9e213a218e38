from decimal import Decimal

import pytest

from invsys.domain import calculator
from invsys.domain.errors import ValidationError
from invsys.domain.models import LineRequest


def test_subtotal_uses_fixed_point_arithmetic():
    assert calculator.subtotal(3, "0.10") == Decimal("0.30")
    assert calculator.subtotal(2, 3.5) == Decimal("7.00")
    assert calculator.subtotal(1, Decimal("19.99")) == Decimal("19.99")


def test_total_sums_subtotals_without_drift():
    lines = [LineRequest(product_id=1, quantity=1, unit_price=Decimal("0.10")) for _ in range(10)]
    assert calculator.total(lines) == Decimal("1.00")
    assert calculator.total([]) == Decimal("0.00")


@pytest.mark.parametrize("qty,price", [(0, "1.00"), (-1, "1.00"), (1, "0.00"), (1, "-0.01"), (True, "1.00"), (2, "0.001")])
def test_subtotal_rejects_non_positive_or_imprecise_input(qty, price):
    with pytest.raises(ValidationError):
        calculator.subtotal(qty, price)


@pytest.mark.parametrize("value", ["abc", None, "NaN", "Infinity", False])
def test_to_money_rejects_garbage(value):
    with pytest.raises(ValidationError):
        calculator.to_money(value)


def test_cents_conversion():
    assert calculator.to_cents(Decimal("57.00")) == 5700
    assert calculator.from_cents(5700) == Decimal("57.00")
    assert str(calculator.from_cents(5)) == "0.05"
    assert calculator.to_money("3.5") == Decimal("3.50")


@pytest.mark.parametrize("value", ["1E+30", "99999999999999999999", Decimal("1E+17")])
def test_to_money_rejects_amounts_beyond_storage(value):
    with pytest.raises(ValidationError):
        calculator.to_money(value)


def test_subtotal_and_total_stay_within_storage_range():
    with pytest.raises(ValidationError):
        calculator.subtotal(10**19, "1.00")
    with pytest.raises(ValidationError):
        calculator.subtotal(10**9, "99999999999.99")

    half = calculator.MAX_STORED_INT // 2
    line = LineRequest(product_id=1, quantity=half + 1, unit_price=Decimal("0.01"))
    assert calculator.subtotal(line.quantity, line.unit_price) == calculator.from_cents(half + 1)
    with pytest.raises(ValidationError):
        calculator.total([line, line])

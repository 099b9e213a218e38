"""Line subtotal and transaction total arithmetic.

Money is handled as :class:`~decimal.Decimal` with exactly two places and is
stored as integer cents. Floats are accepted only through their ``str()`` form
so ``3.5`` becomes ``Decimal("3.50")`` rather than a binary approximation.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable

from invsys.domain.errors import ValidationError
from invsys.domain.models import LineRequest

CENTS = Decimal("0.01")
# largest value a SQLite INTEGER column holds
MAX_STORED_INT = 2**63 - 1


def to_money(value: object) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid money amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValidationError(f"Invalid money amount: {value!r}")
        quantized = amount.quantize(CENTS)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid money amount: {value!r}") from e
    if quantized != amount:
        raise ValidationError(f"Money amounts allow at most 2 decimal places: {value!r}")
    if abs(quantized) * 100 > MAX_STORED_INT:
        raise ValidationError(f"Money amount out of range: {value!r}")
    return quantized


def to_cents(amount: Decimal) -> int:
    return int(to_money(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENTS)


def check_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"Qty must be an integer: {quantity!r}")
    if quantity <= 0:
        raise ValidationError("Qty must be >= 1.")
    if quantity > MAX_STORED_INT:
        raise ValidationError(f"Qty out of range: {quantity}")
    return quantity


def _subtotal_cents(quantity: int, unit_price: object) -> int:
    check_quantity(quantity)
    price = to_money(unit_price)
    if price <= 0:
        raise ValidationError("Unit price must be > 0.")
    cents = to_cents(price) * quantity
    if cents > MAX_STORED_INT:
        raise ValidationError(f"Line subtotal out of range: {quantity} x {price}")
    return cents


def subtotal(quantity: int, unit_price: object) -> Decimal:
    return from_cents(_subtotal_cents(quantity, unit_price))


def total(lines: Iterable[LineRequest]) -> Decimal:
    cents = sum(_subtotal_cents(line.quantity, line.unit_price) for line in lines)
    if cents > MAX_STORED_INT:
        raise ValidationError("Transaction total out of range.")
    return from_cents(cents)

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    description: Optional[str]
    unit_price: Decimal
    stock: int
    created_at: str
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class Supplier:
    id: int
    name: str
    email: str
    phone: Optional[str]
    created_at: str


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    email: str
    phone: Optional[str]
    created_at: str


@dataclass(frozen=True)
class User:
    id: int
    username: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class TransactionLine:
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class StockTransaction:
    """A committed purchase or sale, enriched with current display names."""

    kind: str
    id: int
    counterparty_id: int
    counterparty_name: str
    user_id: int
    user_name: str
    datetime: str
    total: Decimal
    lines: tuple[TransactionLine, ...]

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict:
        party = "supplier" if self.kind == "purchase" else "customer"
        return {
            "id": self.id,
            f"{party}_id": self.counterparty_id,
            f"{party}_name": self.counterparty_name,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "timestamp": self.datetime,
            "total": str(self.total),
            "lines": [
                {
                    "id": line.id,
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "subtotal": str(line.subtotal),
                }
                for line in self.lines
            ],
        }


@dataclass(frozen=True)
class StockMovement:
    id: int
    datetime: str
    product_id: int
    direction: str
    qty_delta: int
    stock_after: int
    reference_type: str
    reference_id: Optional[int]
    actor_user_id: Optional[int]
    notes: Optional[str]


@dataclass(frozen=True)
class StockReportRow:
    product_id: int
    name: str
    description: Optional[str]
    unit_price: Decimal
    stock: int
    status: str


@dataclass(frozen=True)
class DashboardStats:
    total_products: int
    low_stock_products: int
    total_customers: int
    total_suppliers: int
    month_sales_total: Decimal
    month_sales_count: int
    month_purchases_total: Decimal
    month_purchases_count: int


class StockDirection(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


@dataclass(frozen=True)
class TransactionKind:
    """Table layout and stock polarity of one transaction kind."""

    name: str
    header_table: str
    line_table: str
    parent_column: str
    counterparty_table: str
    counterparty_column: str
    direction: StockDirection


PURCHASE = TransactionKind(
    name="purchase",
    header_table="purchases",
    line_table="purchase_items",
    parent_column="purchase_id",
    counterparty_table="suppliers",
    counterparty_column="supplier_id",
    direction=StockDirection.INCREASE,
)

SALE = TransactionKind(
    name="sale",
    header_table="sales",
    line_table="sale_items",
    parent_column="sale_id",
    counterparty_table="customers",
    counterparty_column="customer_id",
    direction=StockDirection.DECREASE,
)

from .models import (
    Product,
    Supplier,
    Customer,
    User,
    LineRequest,
    TransactionLine,
    StockTransaction,
    StockMovement,
)
from .errors import (
    ValidationError,
    NotFoundError,
    ProductNotFoundError,
    SupplierNotFoundError,
    CustomerNotFoundError,
    UserNotFoundError,
    TransactionNotFoundError,
    InsufficientStockError,
    ConflictError,
    StorageError,
)

__all__ = [
    "Product",
    "Supplier",
    "Customer",
    "User",
    "LineRequest",
    "TransactionLine",
    "StockTransaction",
    "StockMovement",
    "ValidationError",
    "NotFoundError",
    "ProductNotFoundError",
    "SupplierNotFoundError",
    "CustomerNotFoundError",
    "UserNotFoundError",
    "TransactionNotFoundError",
    "InsufficientStockError",
    "ConflictError",
    "StorageError",
]

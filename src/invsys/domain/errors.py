class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class SupplierNotFoundError(NotFoundError):
    def __init__(self, supplier_id: int):
        super().__init__(f"Supplier not found: {supplier_id}")
        self.supplier_id = supplier_id


class CustomerNotFoundError(NotFoundError):
    def __init__(self, customer_id: int):
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class TransactionNotFoundError(NotFoundError):
    def __init__(self, kind: str, transaction_id: int):
        super().__init__(f"{kind.capitalize()} not found: {transaction_id}")
        self.kind = kind
        self.transaction_id = transaction_id


class InsufficientStockError(AppError):
    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Not enough stock for product {product_id}. Available: {available}, requested: {requested}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class ConflictError(AppError):
    pass


class StorageError(AppError):
    pass

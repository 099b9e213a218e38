from .stock_ledger import StockLedger
from .transaction_engine import StockTransactionEngine
from .inventory_service import InventoryService
from .sales_service import SalesService
from .purchase_service import PurchaseService
from .party_service import SupplierService, CustomerService, UserDirectory
from .reporting_service import ReportingService

__all__ = [
    "StockLedger",
    "StockTransactionEngine",
    "InventoryService",
    "SalesService",
    "PurchaseService",
    "SupplierService",
    "CustomerService",
    "UserDirectory",
    "ReportingService",
]

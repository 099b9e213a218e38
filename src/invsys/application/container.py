from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from invsys.config import Settings
from invsys.repositories.sqlite_repo import SqliteRepository
from invsys.services.inventory_service import InventoryService
from invsys.services.party_service import CustomerService, SupplierService, UserDirectory
from invsys.services.purchase_service import PurchaseService
from invsys.services.reporting_service import ReportingService
from invsys.services.sales_service import SalesService
from invsys.services.stock_ledger import StockLedger


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    ledger: StockLedger
    inventory: InventoryService
    suppliers: SupplierService
    customers: CustomerService
    users: UserDirectory
    purchases: PurchaseService
    sales: SalesService
    reporting: ReportingService


def build_container(db_path: Path | str, settings: Settings | None = None) -> AppContainer:
    settings = settings or Settings()
    repo = SqliteRepository(db_path, lock_timeout=settings.lock_timeout_seconds)
    repo.init_db()

    ledger = StockLedger()
    return AppContainer(
        repo=repo,
        ledger=ledger,
        inventory=InventoryService(repo, ledger),
        suppliers=SupplierService(repo),
        customers=CustomerService(repo),
        users=UserDirectory(repo),
        purchases=PurchaseService(repo, ledger),
        sales=SalesService(repo, ledger),
        reporting=ReportingService(repo, low_stock_threshold=settings.low_stock_threshold),
    )

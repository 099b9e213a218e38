from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from invsys.domain.calculator import from_cents
from invsys.domain.errors import StorageError
from invsys.domain.models import PURCHASE, SALE, DashboardStats, StockReportRow, StockTransaction
from invsys.services.date_range import date_range, parse_date
from invsys.services.transaction_engine import positive_id

DEFAULT_LOW_STOCK_THRESHOLD = 10


def stock_status(stock: int) -> str:
    if stock <= 5:
        return "critical"
    if stock <= 10:
        return "low"
    if stock <= 50:
        return "normal"
    return "high"


def _month_window(today: date) -> tuple[date, date]:
    start = today.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


class ReportingService:
    def __init__(self, repo, low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD):
        self.repo = repo
        self.low_stock_threshold = int(low_stock_threshold)

    def stock_report(self) -> list[StockReportRow]:
        return [
            StockReportRow(
                product_id=p.id,
                name=p.name,
                description=p.description,
                unit_price=p.unit_price,
                stock=p.stock,
                status=stock_status(p.stock),
            )
            for p in self.repo.list_products(order_by_stock=True)
        ]

    def dashboard_stats(self, today: Optional[date] = None) -> DashboardStats:
        start, end = _month_window(parse_date(today) or datetime.now(timezone.utc).date())
        sales_count, sales_cents = self.repo.transaction_totals_between(SALE, start, end)
        purchases_count, purchases_cents = self.repo.transaction_totals_between(PURCHASE, start, end)
        return DashboardStats(
            total_products=self.repo.count_products(),
            low_stock_products=self.repo.count_products(max_stock=self.low_stock_threshold),
            total_customers=self.repo.count_parties("customers"),
            total_suppliers=self.repo.count_parties("suppliers"),
            month_sales_total=from_cents(sales_cents),
            month_sales_count=sales_count,
            month_purchases_total=from_cents(purchases_cents),
            month_purchases_count=purchases_count,
        )

    def sales_report(self, date_from, date_to, customer_id: Optional[int] = None, user_id: Optional[int] = None) -> list[StockTransaction]:
        start, end = date_range(date_from, date_to)
        return self.repo.list_transactions(
            SALE,
            date_from=start,
            date_to=end,
            counterparty_id=positive_id(customer_id, "Customer id") if customer_id is not None else None,
            user_id=positive_id(user_id, "User id") if user_id is not None else None,
        )

    def purchases_report(self, date_from, date_to) -> list[StockTransaction]:
        start, end = date_range(date_from, date_to)
        return self.repo.list_transactions(PURCHASE, date_from=start, date_to=end)

    def export_excel(self, path: str, date_from, date_to) -> None:
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, end_row: int, end_col: int):
            ref = f"A{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        def detail_sheet(title: str, table_name: str, party_header: str, rows: list[StockTransaction]):
            ws = wb.create_sheet(title)
            ws.append([
                "ID", "Datetime", party_header, "User",
                "Product", "Qty", "Unit Price", "Subtotal",
            ])
            bold_row(ws, 1)
            for tx in rows:
                for line in tx.lines:
                    ws.append([
                        tx.id, tx.datetime, tx.counterparty_name, tx.user_name,
                        line.product_name, line.quantity, float(line.unit_price), float(line.subtotal),
                    ])
                    money(ws[f"G{ws.max_row}"])
                    money(ws[f"H{ws.max_row}"])
            ws.freeze_panes = "A2"
            set_widths(ws, {"A": 8, "B": 22, "C": 28, "D": 24, "E": 34, "F": 8, "G": 14, "H": 14})
            if ws.max_row >= 2:
                add_table(ws, table_name, 1, ws.max_row, 8)

        sales = self.sales_report(date_from, date_to)
        purchases = self.purchases_report(date_from, date_to)
        start, end = date_range(date_from, date_to)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A3"] = "Window"
        ws["B3"] = f"{start or '-'}  ->  {end or '-'}"

        sales_total = sum((s.total for s in sales), from_cents(0))
        purchases_total = sum((p.total for p in purchases), from_cents(0))
        summary = [
            ("Sales count", len(sales), False),
            ("Sales total", float(sales_total), True),
            ("Units sold", sum(s.item_count for s in sales), False),
            ("Purchases count", len(purchases), False),
            ("Purchases total", float(purchases_total), True),
            ("Units purchased", sum(p.item_count for p in purchases), False),
        ]
        for i, (label, val, is_money) in enumerate(summary):
            r = 5 + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if is_money:
                money(ws[f"B{r}"])
        set_widths(ws, {"A": 24, "B": 34})

        # -------- 2) / 3) Details --------
        detail_sheet("Sales", "SalesDetail", "Customer", sales)
        detail_sheet("Purchases", "PurchasesDetail", "Supplier", purchases)

        # -------- 4) Stock --------
        ws4 = wb.create_sheet("Stock")
        ws4.append(["Product ID", "Name", "Unit Price", "Stock", "Status"])
        bold_row(ws4, 1)
        for row in self.stock_report():
            ws4.append([row.product_id, row.name, float(row.unit_price), row.stock, row.status])
            money(ws4[f"C{ws4.max_row}"])
        set_widths(ws4, {"A": 12, "B": 34, "C": 14, "D": 10, "E": 12})

        try:
            wb.save(path)
        except OSError as e:
            raise StorageError(f"Could not write report to {path}: {e}") from e

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from storepos.domain.errors import ValidationError
from storepos.domain.models import Operator, Product, SaleHeader
from storepos.services.auth_service import AuthService
from storepos.services.periods import DASHBOARD_PRESETS, date_range, days_between, to_iso

log = logging.getLogger(__name__)

ITEMS_PER_PAGE = 15
LOW_STOCK_LIMIT = 5

MONEY = "#,##0.00"
PERCENT = "0.00%"


@dataclass(frozen=True)
class TrendPoint:
    day: date
    label: str
    revenue: float
    profit: float
    orders: int


@dataclass(frozen=True)
class DashboardStats:
    today_sales: float
    today_profit: float
    period_sales: float
    period_profit: float
    total_orders: int
    avg_order_value: float
    total_products: int
    low_stock_count: int
    low_stock: list[Product]
    trend: list[TrendPoint]


@dataclass(frozen=True)
class HistoryStats:
    # sums cover the rows on the page, order_count every sale in the period
    total_sales: float
    total_profit: float
    total_discount: float
    order_count: int


@dataclass(frozen=True)
class SalesHistoryPage:
    rows: list[SaleHeader]
    page: int
    total_count: int
    total_pages: int
    stats: HistoryStats


def _sale_day(sale: SaleHeader) -> date:
    return date.fromisoformat(str(sale.created_at)[:10])


def _bold_row(ws: Worksheet, row: int) -> None:
    for c in ws[row]:
        c.font = Font(bold=True)


def _set_widths(ws: Worksheet, widths: dict[str, int]) -> None:
    for col, w in widths.items():
        ws.column_dimensions[col].width = w


def _format_columns(ws: Worksheet, row: int, columns: str, number_format: str) -> None:
    for col in columns:
        ws[f"{col}{row}"].number_format = number_format


def _add_table(ws: Worksheet, name: str, first_row: int, last_col: int) -> None:
    ref = f"A{first_row}:{get_column_letter(last_col)}{ws.max_row}"
    tab = Table(displayName=name, ref=ref)
    tab.tableStyleInfo = TableStyleInfo(name="TableStyleMedium9", showRowStripes=True, showColumnStripes=False)
    ws.add_table(tab)


class ReportingService:
    def __init__(self, repo, auth: AuthService):
        self.repo = repo
        self.auth = auth

    @staticmethod
    def sales_trend(sales: Iterable[SaleHeader], start: date, end: date) -> list[TrendPoint]:
        """One point per calendar day in ``start..end``, including days without sales."""
        by_day: dict[date, list[SaleHeader]] = {}
        for s in sales:
            by_day.setdefault(_sale_day(s), []).append(s)

        points = []
        for day in days_between(start, end):
            day_sales = by_day.get(day, [])
            points.append(
                TrendPoint(
                    day=day,
                    label=day.strftime("%b %d"),
                    revenue=round(sum(s.total_amount for s in day_sales), 2),
                    profit=round(sum(s.profit for s in day_sales), 2),
                    orders=len(day_sales),
                )
            )
        return points

    def dashboard(self, operator: Operator, preset: str = "7days", today: Optional[date] = None) -> DashboardStats:
        self.auth.require_action(operator, "view_dashboard")
        today = today or date.today()
        if preset not in DASHBOARD_PRESETS:
            preset = "7days"
        start, end = date_range(preset, today=today)

        sales, _total = self.repo.list_sales(start_iso=to_iso(start), end_iso=to_iso(end), newest_first=False)
        todays = [s for s in sales if _sale_day(s) == today]

        period_sales = sum(s.total_amount for s in sales)
        orders = len(sales)
        low_stock = self.repo.low_stock_products(limit=LOW_STOCK_LIMIT)

        return DashboardStats(
            today_sales=sum(s.total_amount for s in todays),
            today_profit=sum(s.profit for s in todays),
            period_sales=period_sales,
            period_profit=sum(s.profit for s in sales),
            total_orders=orders,
            avg_order_value=(period_sales / orders) if orders else 0.0,
            total_products=self.repo.count_products(),
            low_stock_count=len(low_stock),
            low_stock=low_stock,
            trend=self.sales_trend(sales, start.date(), end.date()),
        )

    def sales_history(
        self,
        operator: Operator,
        page: int = 1,
        preset: str = "all",
        custom_start: Optional[date] = None,
        custom_end: Optional[date] = None,
        today: Optional[date] = None,
        query: Optional[str] = None,
    ) -> SalesHistoryPage:
        self.auth.require_action(operator, "view_sales")
        if page < 1:
            raise ValidationError("Page must be >= 1.")

        start, end = date_range(preset, today=today, custom_start=custom_start, custom_end=custom_end)
        rows, total = self.repo.list_sales(
            store_id=self.auth.store_scope(operator),
            start_iso=to_iso(start),
            end_iso=to_iso(end),
            limit=ITEMS_PER_PAGE,
            offset=(page - 1) * ITEMS_PER_PAGE,
            query=query,
        )
        stats = HistoryStats(
            total_sales=sum(s.total_amount for s in rows),
            total_profit=sum(s.profit for s in rows),
            total_discount=sum(s.discount_amount for s in rows),
            order_count=total,
        )
        return SalesHistoryPage(
            rows=rows,
            page=page,
            total_count=total,
            total_pages=math.ceil(total / ITEMS_PER_PAGE),
            stats=stats,
        )

    def export_sales_report_excel(
        self,
        path: str,
        operator: Operator,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
    ) -> None:
        self.auth.require_action(operator, "export_report")

        sales, _total = self.repo.list_sales(start_iso=start_iso, end_iso=end_iso)
        purchases = self.repo.list_purchases(start_iso=start_iso, end_iso=end_iso)

        revenue = sum(s.total_amount for s in sales)
        discounts = sum(s.discount_amount for s in sales)
        profit = sum(s.profit for s in sales)
        spent = sum(p.total_cost for p in purchases)

        wb = Workbook()

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A2"] = "Generated"
        ws["B2"] = datetime.now().replace(microsecond=0).isoformat(sep=" ")
        ws["A3"] = "Window"
        ws["B3"] = f"{start_iso or 'beginning'}  ->  {end_iso or 'now'}"

        summary = [
            ("Sales count", len(sales), False),
            ("Revenue", revenue, True),
            ("Discounts given", discounts, True),
            ("Gross profit", profit, True),
            ("Purchases spent", spent, True),
            ("Net (profit - spent)", profit - spent, True),
        ]
        for r, (label, value, is_money) in enumerate(summary, start=5):
            ws[f"A{r}"] = label
            ws[f"B{r}"] = value
            if is_money:
                ws[f"B{r}"].number_format = MONEY
        _set_widths(ws, {"A": 24, "B": 40})

        # -------- 2) Sales Detail --------
        ws2 = wb.create_sheet("Sales Detail")
        ws2.append([
            "Sale ID", "Datetime", "Customer", "Payment",
            "SKU", "Product Name", "Qty",
            "Unit Price", "Unit Cost", "Line Revenue", "Line Profit", "Margin %",
        ])
        _bold_row(ws2, 1)
        for s in sales:
            for it in self.repo.sale_items_for_sale(s.id):
                ws2.append([
                    s.id, s.created_at, s.customer_name or "", s.payment_method or "",
                    it.sku or "", it.product_name or "", it.quantity,
                    it.price_at_sale, it.cost_at_sale, it.subtotal, it.profit,
                    (it.profit / it.subtotal) if it.subtotal else 0.0,
                ])
                _format_columns(ws2, ws2.max_row, "HIJK", MONEY)
                _format_columns(ws2, ws2.max_row, "L", PERCENT)
        ws2.freeze_panes = "A2"
        _set_widths(ws2, {
            "A": 38, "B": 20, "C": 24, "D": 10, "E": 14, "F": 32,
            "G": 6, "H": 12, "I": 12, "J": 14, "K": 14, "L": 10,
        })
        if ws2.max_row >= 2:
            _add_table(ws2, "SalesDetail", 1, 12)

        # -------- 3) Purchases --------
        ws3 = wb.create_sheet("Purchases")
        ws3["A1"] = "Purchases / Restock"
        ws3["A1"].font = Font(bold=True, size=14)
        ws3["A3"] = "Total spent"
        ws3["B3"] = spent
        ws3["B3"].number_format = MONEY

        ws3.append([])
        ws3.append(["Purchase ID", "Datetime", "Supplier", "Notes", "Product Name", "Qty", "Unit Cost", "Total Cost"])
        _bold_row(ws3, 5)
        for p in purchases:
            ws3.append([
                p.id, p.created_at, p.supplier or "", p.notes or "", p.product_name or "",
                p.quantity, p.cost_per_unit, p.total_cost,
            ])
            _format_columns(ws3, ws3.max_row, "GH", MONEY)
        ws3.freeze_panes = "A6"
        _set_widths(ws3, {"A": 38, "B": 20, "C": 20, "D": 26, "E": 32, "F": 6, "G": 12, "H": 14})
        if ws3.max_row >= 6:
            _add_table(ws3, "PurchasesDetail", 5, 8)

        wb.save(path)
        log.info("report_exported path=%s sales=%s purchases=%s actor=%s", path, len(sales), len(purchases), operator.id)

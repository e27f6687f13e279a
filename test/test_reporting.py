from datetime import date, datetime
from pathlib import Path

import pytest
from openpyxl import load_workbook

from conftest import make_repo, seed_operator, seed_product, seed_sale, seed_store

from storepos.domain.errors import AuthorizationError, ValidationError
from storepos.domain.models import SaleHeader
from storepos.services.auth_service import AuthService
from storepos.services.periods import date_range
from storepos.services.purchase_service import PurchaseService
from storepos.services.reporting_service import ITEMS_PER_PAGE, ReportingService

TODAY = date(2026, 10, 19)


def test_date_presets():
    assert date_range("today", today=TODAY) == (datetime(2026, 10, 19), datetime(2026, 10, 19, 23, 59, 59))
    assert date_range("yesterday", today=TODAY)[0] == datetime(2026, 10, 18)
    assert date_range("last7days", today=TODAY)[0] == datetime(2026, 10, 13)
    assert date_range("last30days", today=TODAY)[0] == datetime(2026, 9, 20)
    assert date_range("thisMonth", today=TODAY) == (datetime(2026, 10, 1), datetime(2026, 10, 31, 23, 59, 59))
    assert date_range("7days", today=TODAY) == date_range("last7days", today=TODAY)
    assert date_range("all", today=TODAY) == (None, None)
    assert date_range("custom", today=TODAY, custom_start=date(2026, 1, 5)) == (None, None)
    assert date_range("custom", custom_start=date(2026, 1, 5), custom_end=date(2026, 1, 6))[1] == datetime(2026, 1, 6, 23, 59, 59)


def test_bad_periods_are_rejected():
    with pytest.raises(ValidationError):
        date_range("custom", custom_start=date(2026, 2, 1), custom_end=date(2026, 1, 1))
    with pytest.raises(ValidationError):
        date_range("fortnight")


def sale(created_at: str, total: float, profit: float) -> SaleHeader:
    return SaleHeader(
        id=created_at, store_id="s1", total_amount=total, profit=profit, payment_method="cash",
        sold_by=None, customer_id=None, discount_amount=0.0, original_amount=total, created_at=created_at,
    )


def test_trend_has_one_point_per_day():
    points = ReportingService.sales_trend(
        [sale("2026-10-17 10:00:00", 10.0, 3.0), sale("2026-10-17T18:00:00+00:00", 5.0, 1.0), sale("2026-10-19 08:00:00", 7.0, 2.0)],
        date(2026, 10, 16),
        date(2026, 10, 19),
    )

    assert [p.label for p in points] == ["Oct 16", "Oct 17", "Oct 18", "Oct 19"]
    assert [p.orders for p in points] == [0, 2, 0, 1]
    assert points[1].revenue == 15.0
    assert points[1].profit == 4.0


def seeded(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    product = seed_product(repo, store, stock=100, threshold=2)
    return repo, store, owner, product


def test_dashboard_totals(tmp_path: Path):
    repo, store, owner, product = seeded(tmp_path)
    seed_product(repo, store, name="Almost Gone", stock=1, threshold=5)
    seed_sale(repo, store, product, 2, "2026-10-19 09:00:00")
    seed_sale(repo, store, product, 1, "2026-10-15 12:00:00", discount=10.0)
    seed_sale(repo, store, product, 5, "2026-09-01 12:00:00")

    stats = ReportingService(repo, AuthService(repo)).dashboard(owner, "7days", today=TODAY)

    assert stats.today_sales == 200
    assert stats.today_profit == 80
    assert stats.period_sales == 290
    assert stats.period_profit == 110
    assert stats.total_orders == 2
    assert stats.avg_order_value == 145
    assert stats.total_products == 2
    assert stats.low_stock_count == 1
    assert stats.low_stock[0].name == "Almost Gone"
    assert len(stats.trend) == 7


def test_dashboard_is_owner_only(tmp_path: Path):
    repo, store, _owner, _product = seeded(tmp_path)
    clerk = seed_operator(repo, "receptionist", store_id=store)

    with pytest.raises(AuthorizationError):
        ReportingService(repo, AuthService(repo)).dashboard(clerk)


def test_history_pages_newest_first(tmp_path: Path):
    repo, store, owner, product = seeded(tmp_path)
    for day in range(1, 21):
        seed_sale(repo, store, product, 1, f"2026-10-{day:02d} 10:00:00")
    reporting = ReportingService(repo, AuthService(repo))

    first = reporting.sales_history(owner, page=1)
    second = reporting.sales_history(owner, page=2)

    assert first.total_count == 20
    assert first.total_pages == 2
    assert len(first.rows) == ITEMS_PER_PAGE
    assert first.rows[0].created_at == "2026-10-20 10:00:00"
    assert len(second.rows) == 5
    assert second.stats.order_count == 20
    assert second.stats.total_sales == 500

    week = reporting.sales_history(owner, preset="last7days", today=TODAY)
    assert week.total_count == 7
    assert week.stats.order_count == 7

    wanted = first.rows[3].id
    found = reporting.sales_history(owner, query=wanted[:8])
    assert [s.id for s in found.rows] == [wanted]
    assert found.stats.order_count == 1

    with pytest.raises(ValidationError):
        reporting.sales_history(owner, page=0)


def test_history_is_store_scoped(tmp_path: Path):
    repo, store, owner, product = seeded(tmp_path)
    other = seed_store(repo, "Other")
    other_product = seed_product(repo, other, name="Other thing")
    seed_sale(repo, store, product, 1, "2026-10-01 10:00:00")
    seed_sale(repo, other, other_product, 1, "2026-10-02 10:00:00")
    clerk = seed_operator(repo, "receptionist", store_id=other)

    page = ReportingService(repo, AuthService(repo)).sales_history(clerk)
    assert [s.store_id for s in page.rows] == [other]


def test_excel_export_has_three_sheets(tmp_path: Path):
    repo, store, owner, product = seeded(tmp_path)
    seed_sale(repo, store, product, 2, "2026-10-19 09:00:00")
    PurchaseService(repo, AuthService(repo)).record_purchase(owner, store, product.id, 4, 50.0, supplier="Acme")
    out = tmp_path / "report.xlsx"

    ReportingService(repo, AuthService(repo)).export_sales_report_excel(str(out), owner)

    wb = load_workbook(out)
    assert wb.sheetnames == ["Summary", "Sales Detail", "Purchases"]
    assert wb["Summary"]["B5"].value == 1
    assert wb["Summary"]["B6"].value == 200
    detail = wb["Sales Detail"]
    assert detail.max_row == 2
    assert detail["G2"].value == 2
    assert detail["F2"].value == "Product A"
    purchases = wb["Purchases"]
    assert purchases["B3"].value == 200
    assert purchases["C6"].value == "Acme"


def test_excel_export_requires_owner(tmp_path: Path):
    repo, store, _owner, _product = seeded(tmp_path)
    clerk = seed_operator(repo, "receptionist", store_id=store)

    with pytest.raises(AuthorizationError):
        ReportingService(repo, AuthService(repo)).export_sales_report_excel(str(tmp_path / "x.xlsx"), clerk)

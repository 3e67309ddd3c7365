# grocery_admin/routers/admin_reports.py
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from grocery_admin.core.auth import require_admin
from grocery_admin.core.csv_export import csv_response
from grocery_admin.database import get_session
from grocery_admin.repositories.report_repo import ReportRepository
from grocery_admin.routers.admin_orders import service as order_service
from grocery_admin.schemas.report import (
    CustomersReport,
    FinancialReport,
    ProductsReport,
    ReportsOverview,
    SalesReport,
)
from grocery_admin.services.report_service import ReportService

router = APIRouter(
    prefix="/admin/reports",
    tags=["Admin Reports"],
    dependencies=[Depends(require_admin)],
)

repo = ReportRepository()
service = ReportService(repo, order_service)


@router.get("", response_model=ReportsOverview)
def reports_overview(session: Session = Depends(get_session)):
    """
    Headline statistics, 6-month sales trend and top 5 products.

    Sales only count delivered orders.
    """
    return service.get_overview(session)


@router.get("/sales", response_model=SalesReport)
def sales_report(
    start_date: date | None = None,
    end_date: date | None = None,
    status: str = "all",
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1, le=100),
    session: Session = Depends(get_session),
):
    """
    Orders in [start_date, end_date] (default: current month).
    """
    return service.get_sales(
        session,
        start_date=start_date,
        end_date=end_date,
        order_status=status,
        page=page,
        per_page=per_page,
    )


@router.get("/products", response_model=ProductsReport)
def products_report(
    category_id: int | None = None,
    session: Session = Depends(get_session),
):
    return service.get_products(session, category_id=category_id)


@router.get("/customers", response_model=CustomersReport)
def customers_report(session: Session = Depends(get_session)):
    """
    Buyers with order aggregates, acquisition trend and segments.
    """
    return service.get_customers(session)


@router.get("/financial", response_model=FinancialReport)
def financial_report(
    start_date: date | None = None,
    end_date: date | None = None,
    session: Session = Depends(get_session),
):
    """
    Gross / tax / net revenue, refunds and growth vs the previous period.
    """
    return service.get_financial(session, start_date=start_date, end_date=end_date)


@router.get("/export/{resource}")
def export_report(
    resource: str,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str = "all",
    category_id: int | None = None,
    session: Session = Depends(get_session),
):
    """
    CSV download of one report: sales | products | customers | financial.
    """
    filename, header, rows = service.export(
        session,
        resource,
        start_date=start_date,
        end_date=end_date,
        order_status=status,
        category_id=category_id,
    )
    return csv_response(filename, header, rows)

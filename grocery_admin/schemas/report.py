# grocery_admin/schemas/report.py
from datetime import date, datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from grocery_admin.schemas.common import Page
from grocery_admin.schemas.order import OrderRead


class ReportStatistics(SQLModel):
    """
    Headline numbers of the reports landing page.
    Sales only count delivered orders.
    """
    model_config = ConfigDict(extra="forbid")

    total_sales: float
    monthly_sales: float
    total_orders: int
    monthly_orders: int
    total_customers: int
    active_products: int


class SalesTrendPoint(SQLModel):
    month: str  # YYYY-MM
    sales: float
    orders: int


class TopProduct(SQLModel):
    """
    Aggregated stats for top-selling products.
    """
    model_config = ConfigDict(extra="forbid")

    product_id: int
    name: str
    price: float
    total_sold: int
    total_revenue: float


class ReportsOverview(SQLModel):
    statistics: ReportStatistics
    sales_trend: list[SalesTrendPoint]
    top_products: list[TopProduct]


# -------- Sales --------


class DailySales(SQLModel):
    """
    Revenue per day inside the selected range.
    """

    date: date
    total: float
    orders: int


class SalesSummary(SQLModel):
    total_orders: int
    total_revenue: float
    average_order_value: float
    completed_orders: int
    pending_orders: int
    cancelled_orders: int


class SalesReport(SQLModel):
    orders: Page[OrderRead]
    summary: SalesSummary
    daily_sales: list[DailySales]
    filters: dict
    statuses: dict[str, str]


# -------- Products --------


class ProductPerformance(SQLModel):
    id: int
    name: str
    category: str | None
    price: float
    stock: int
    is_active: bool
    total_sold: int
    revenue: float


class ProductSummary(SQLModel):
    total_products: int
    total_sold_items: int
    total_revenue: float
    low_stock_products: int


class ProductsReport(SQLModel):
    products: list[ProductPerformance]
    summary: ProductSummary
    filters: dict


# -------- Customers --------


class CustomerPerformance(SQLModel):
    id: int
    name: str
    email: str
    phone: str | None
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None
    total_orders: int
    total_spent: float
    average_order_value: float
    last_order_date: datetime | None


class CustomerReportSummary(SQLModel):
    total_customers: int
    active_customers: int
    new_customers: int
    repeat_customers: int


class AcquisitionPoint(SQLModel):
    date: date
    new_customers: int


class CustomerSegments(SQLModel):
    new: int
    repeat: int
    inactive: int


class CustomersReport(SQLModel):
    customers: list[CustomerPerformance]
    summary: CustomerReportSummary
    acquisition_trend: list[AcquisitionPoint]
    segments: CustomerSegments


# -------- Financial --------


class RevenueSummary(SQLModel):
    gross_revenue: float
    tax: float
    net_revenue: float
    total_orders: int
    average_order_value: float
    refunds: float
    growth_rate: float


class CategoryRevenue(SQLModel):
    category: str
    revenue: float


class DailyRevenue(SQLModel):
    date: date
    revenue: float
    orders: int


class FinancialReport(SQLModel):
    revenue: RevenueSummary
    revenue_by_category: list[CategoryRevenue]
    daily_revenue: list[DailyRevenue]
    filters: dict

# grocery_admin/services/report_service.py
import logging
from datetime import date, datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from grocery_admin.core.config import get_settings
from grocery_admin.core.csv_export import money
from grocery_admin.repositories.order_repo import day_bounds
from grocery_admin.repositories.report_repo import ReportRepository
from grocery_admin.schemas.common import Page
from grocery_admin.schemas.order import OrderRead
from grocery_admin.schemas.report import (
    AcquisitionPoint,
    CategoryRevenue,
    CustomerPerformance,
    CustomerSegments,
    CustomerReportSummary,
    CustomersReport,
    DailyRevenue,
    DailySales,
    FinancialReport,
    ProductPerformance,
    ProductSummary,
    ProductsReport,
    ReportsOverview,
    ReportStatistics,
    RevenueSummary,
    SalesReport,
    SalesSummary,
    SalesTrendPoint,
    TopProduct,
)
from grocery_admin.services import order_workflow as wf
from grocery_admin.services.order_service import OrderService

logger = logging.getLogger(__name__)

settings = get_settings()

EXPORT_RESOURCES = ("sales", "products", "customers", "financial")


def month_start(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """First day of the month `months` away from day's month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def percentage(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class ReportService:
    """
    Orchestrates the admin reports (overview, sales, products,
    customers, financial) and their CSV exports.
    """

    def __init__(self, repo: ReportRepository, order_service: OrderService):
        self.repo = repo
        self.order_service = order_service

    @staticmethod
    def _today() -> date:
        return datetime.now(timezone.utc).date()

    def _date_range(
        self,
        start_date: date | None,
        end_date: date | None,
    ) -> tuple[date, date, datetime, datetime]:
        """
        Resolve an inclusive [start_date, end_date] range; defaults to the
        current month.
        """
        today = self._today()
        start = start_date or month_start(today)
        end = end_date or add_months(today, 1) - timedelta(days=1)
        if end < start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_date must not be before start_date",
            )
        return start, end, day_bounds(start)[0], day_bounds(end)[1]

    # -------- Overview --------

    def get_overview(self, session: Session, months: int = 6, top_n: int = 5) -> ReportsOverview:
        today = self._today()
        this_month = day_bounds(month_start(today))[0]

        total_orders, total_sales = self.repo.order_totals(session, status=wf.DELIVERED)
        monthly_orders, monthly_sales = self.repo.order_totals(
            session, status=wf.DELIVERED, since=this_month
        )
        statistics = ReportStatistics(
            total_sales=total_sales,
            monthly_sales=monthly_sales,
            total_orders=total_orders,
            monthly_orders=monthly_orders,
            total_customers=self.repo.count_buyers(session),
            active_products=self.repo.count_active_products(session),
        )

        sales_trend: list[SalesTrendPoint] = []
        for offset in range(months - 1, -1, -1):
            start = add_months(today, -offset)
            end = add_months(start, 1)
            count, amount = self.repo.order_totals(
                session,
                status=wf.DELIVERED,
                since=day_bounds(start)[0],
                until=day_bounds(end)[0],
            )
            sales_trend.append(SalesTrendPoint(month=f"{start:%Y-%m}", sales=amount, orders=count))

        top_products = [
            TopProduct(
                product_id=pid,
                name=name,
                price=float(price),
                total_sold=int(sold or 0),
                total_revenue=float(revenue or 0.0),
            )
            for pid, name, price, sold, revenue in self.repo.top_products(session, limit=top_n)
        ]

        return ReportsOverview(
            statistics=statistics,
            sales_trend=sales_trend,
            top_products=top_products,
        )

    # -------- Sales --------

    @staticmethod
    def _status_filter(order_status: str | None) -> str | None:
        if not order_status or order_status == "all":
            return None
        if not wf.is_valid_status(order_status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown status: {order_status}",
            )
        return order_status

    def get_sales(
        self,
        session: Session,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        order_status: str | None = "all",
        page: int = 1,
        per_page: int | None = None,
    ) -> SalesReport:
        """
        Orders created inside the range plus a summary and daily sales.

        total_revenue and daily_sales only count delivered orders.
        """
        start, end, since, until = self._date_range(start_date, end_date)
        status_filter = self._status_filter(order_status)
        per_page = per_page or settings.ORDERS_PER_PAGE

        orders, total = self.repo.list_orders(
            session,
            status=status_filter,
            since=since,
            until=until,
            skip=(page - 1) * per_page,
            limit=per_page,
        )
        rows = self.order_service.to_reads(session, orders)

        by_status = self.repo.counts_by_status(session, since=since, until=until)
        completed, revenue = self.repo.order_totals(
            session, status=wf.DELIVERED, since=since, until=until
        )
        summary = SalesSummary(
            total_orders=sum(by_status.values()),
            total_revenue=revenue,
            average_order_value=round(revenue / completed, 2) if completed else 0.0,
            completed_orders=completed,
            pending_orders=by_status.get(wf.PENDING, 0),
            cancelled_orders=by_status.get(wf.CANCELLED, 0),
        )

        daily_sales = [
            DailySales(date=day, total=amount, orders=count)
            for day, amount, count in self.repo.daily_totals(
                session, status=wf.DELIVERED, since=since, until=until
            )
        ]

        return SalesReport(
            orders=Page[OrderRead].build(rows, page=page, per_page=per_page, total=total),
            summary=summary,
            daily_sales=daily_sales,
            filters={
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "status": order_status or "all",
            },
            statuses=wf.STATUS_LABELS,
        )

    # -------- Products --------

    def get_products(self, session: Session, category_id: int | None = None) -> ProductsReport:
        products = [
            ProductPerformance(
                id=p.id,
                name=p.name,
                category=category,
                price=p.price,
                stock=p.stock,
                is_active=p.is_active,
                total_sold=int(sold or 0),
                revenue=float(revenue or 0.0),
            )
            for p, category, sold, revenue in self.repo.product_performance(session, category_id)
        ]
        summary = ProductSummary(
            total_products=len(products),
            total_sold_items=sum(p.total_sold for p in products),
            total_revenue=round(sum(p.revenue for p in products), 2),
            low_stock_products=sum(
                1 for p in products if p.stock <= settings.LOW_STOCK_THRESHOLD
            ),
        )
        filters = {"category_id": category_id} if category_id is not None else {}
        return ProductsReport(products=products, summary=summary, filters=filters)

    # -------- Customers --------

    def get_customers(self, session: Session) -> CustomersReport:
        today = self._today()
        thirty_days_ago = day_bounds(today - timedelta(days=30))[0]

        customers = [
            CustomerPerformance(
                id=user.id,
                name=user.name,
                email=user.email,
                phone=user.phone,
                is_active=user.is_active,
                created_at=user.created_at,
                last_login_at=user.last_login_at,
                total_orders=int(orders or 0),
                total_spent=float(spent or 0.0),
                average_order_value=round(float(spent or 0.0) / orders, 2) if orders else 0.0,
                last_order_date=last_order,
            )
            for user, orders, spent, last_order in self.repo.customer_performance(session)
        ]

        segments = CustomerSegments(
            new=sum(1 for c in customers if c.total_orders == 1),
            repeat=sum(1 for c in customers if c.total_orders > 1),
            inactive=sum(1 for c in customers if c.total_orders == 0),
        )
        summary = CustomerReportSummary(
            total_customers=len(customers),
            active_customers=self.repo.buyers_ordering_since(session, thirty_days_ago),
            new_customers=self.repo.count_buyers(
                session, registered_since=day_bounds(month_start(today))[0]
            ),
            repeat_customers=segments.repeat,
        )
        acquisition_trend = [
            AcquisitionPoint(date=day, new_customers=count)
            for day, count in self.repo.registrations_per_day(session, thirty_days_ago)
        ]

        return CustomersReport(
            customers=customers,
            summary=summary,
            acquisition_trend=acquisition_trend,
            segments=segments,
        )

    # -------- Financial --------

    def get_financial(
        self,
        session: Session,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> FinancialReport:
        """
        Revenue figures for delivered orders in the range.

        growth_rate compares gross revenue with the period of equal
        length right before start_date.
        """
        start, end, since, until = self._date_range(start_date, end_date)

        orders, gross = self.repo.order_totals(
            session, status=wf.DELIVERED, since=since, until=until
        )
        _, refunds = self.repo.order_totals(
            session, status=wf.CANCELLED, since=since, until=until
        )
        _, previous = self.repo.order_totals(
            session, status=wf.DELIVERED, since=since - (until - since), until=since
        )
        tax = round(gross * settings.REPORT_TAX_RATE, 2)

        revenue = RevenueSummary(
            gross_revenue=gross,
            tax=tax,
            net_revenue=round(gross - tax, 2),
            total_orders=orders,
            average_order_value=round(gross / orders, 2) if orders else 0.0,
            refunds=refunds,
            growth_rate=percentage(gross - previous, previous),
        )

        return FinancialReport(
            revenue=revenue,
            revenue_by_category=[
                CategoryRevenue(category=name, revenue=amount)
                for name, amount in self.repo.revenue_by_category(session, since=since, until=until)
            ],
            daily_revenue=[
                DailyRevenue(date=day, revenue=amount, orders=count)
                for day, amount, count in self.repo.daily_totals(
                    session, status=wf.DELIVERED, since=since, until=until
                )
            ],
            filters={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )

    # -------- CSV exports --------

    def export(
        self,
        session: Session,
        resource: str,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        order_status: str | None = "all",
        category_id: int | None = None,
    ) -> tuple[str, list[str], list[list]]:
        """
        Build (filename, header, rows) for one report download.
        """
        if resource not in EXPORT_RESOURCES:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown report: {resource}",
            )

        logger.info("Exporting %s report", resource)
        if resource == "sales":
            return self._export_sales(session, start_date, end_date, order_status)
        if resource == "products":
            return self._export_products(session, category_id)
        if resource == "customers":
            return self._export_customers(session)
        return self._export_financial(session, start_date, end_date)

    def _export_sales(self, session, start_date, end_date, order_status):
        start, end, since, until = self._date_range(start_date, end_date)
        orders, _ = self.repo.list_orders(
            session, status=self._status_filter(order_status), since=since, until=until
        )
        rows = self.order_service.export_rows(session, orders)
        for row in rows:
            row[4] = row[4].capitalize()
        header = [
            "Order Number",
            "Customer Name",
            "Customer Email",
            "Total Amount",
            "Status",
            "Created Date",
            "Items Count",
        ]
        return f"sales_report_{start}to{end}.csv", header, rows

    def _export_products(self, session, category_id):
        header = [
            "Product Name",
            "Category",
            "Price",
            "Stock",
            "Total Sold",
            "Revenue",
            "Status",
            "Created Date",
        ]
        rows = [
            [
                p.name,
                category or "",
                money(p.price),
                p.stock,
                int(sold or 0),
                money(revenue),
                "Active" if p.is_active else "Inactive",
                p.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            ]
            for p, category, sold, revenue in self.repo.product_performance(session, category_id)
        ]
        return f"products_report_{self._today()}.csv", header, rows

    def _export_customers(self, session):
        header = [
            "Customer Name",
            "Email",
            "Phone",
            "Total Orders",
            "Total Spent",
            "Registration Date",
            "Last Login",
            "Status",
        ]
        rows = [
            [
                user.name,
                user.email,
                user.phone or "N/A",
                int(orders or 0),
                money(spent),
                user.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                user.last_login_at.strftime("%Y-%m-%d %H:%M:%S") if user.last_login_at else "Never",
                "Active" if user.is_active else "Inactive",
            ]
            for user, orders, spent, _ in self.repo.customer_performance(session)
        ]
        return f"customers_report_{self._today()}.csv", header, rows

    def _export_financial(self, session, start_date, end_date):
        start, end, since, until = self._date_range(start_date, end_date)
        orders, _ = self.repo.list_orders(session, status=wf.DELIVERED, since=since, until=until)
        customers = self.order_service.order_repo.customers_for(session, [o.user_id for o in orders])
        rate = settings.REPORT_TAX_RATE
        header = [
            "Date",
            "Order Number",
            "Customer",
            "Gross Revenue",
            f"Tax ({rate:.0%})",
            "Net Revenue",
            "Status",
        ]
        rows = []
        for o in orders:
            tax = o.total_amount * rate
            customer = customers.get(o.user_id)
            rows.append(
                [
                    o.created_at.strftime("%Y-%m-%d"),
                    o.order_number,
                    customer.name if customer else "N/A",
                    money(o.total_amount),
                    money(tax),
                    money(o.total_amount - tax),
                    o.status.capitalize(),
                ]
            )
        return f"financial_report_{start}to{end}.csv", header, rows

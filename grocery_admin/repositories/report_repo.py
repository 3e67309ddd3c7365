# grocery_admin/repositories/report_repo.py
from datetime import date, datetime

from sqlalchemy import func
from sqlmodel import Session, select

from grocery_admin.models.order import Order, OrderItem
from grocery_admin.models.product import Category, Product
from grocery_admin.models.user import User


def as_date(value) -> date:
    """
    func.date() gives a string on SQLite and a date on Postgres.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class ReportRepository:
    """
    Read-only aggregated queries for the admin reports.
    """

    @staticmethod
    def _window(stmt, *, status=None, since=None, until=None):
        if status:
            stmt = stmt.where(Order.status == status)
        if since is not None:
            stmt = stmt.where(Order.created_at >= since)
        if until is not None:
            stmt = stmt.where(Order.created_at < until)
        return stmt

    # ----- Orders -----

    def order_totals(
        self,
        session: Session,
        *,
        status: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> tuple[int, float]:
        """(count, sum of total_amount) of matching orders."""
        stmt = select(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0.0))
        stmt = self._window(stmt, status=status, since=since, until=until)
        count, amount = session.exec(stmt).one()
        return int(count or 0), float(amount or 0.0)

    def counts_by_status(self, session: Session, *, since=None, until=None) -> dict[str, int]:
        stmt = select(Order.status, func.count(Order.id)).group_by(Order.status)
        stmt = self._window(stmt, since=since, until=until)
        return {s: int(n) for s, n in session.exec(stmt).all()}

    def list_orders(
        self,
        session: Session,
        *,
        status: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Order], int]:
        count_stmt = self._window(
            select(func.count(Order.id)), status=status, since=since, until=until
        )
        total = int(session.exec(count_stmt).one() or 0)

        stmt = self._window(select(Order), status=status, since=since, until=until)
        stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.exec(stmt).all()), total

    def daily_totals(
        self,
        session: Session,
        *,
        status: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[tuple[date, float, int]]:
        """
        Revenue and order count per calendar day, oldest first.
        """
        day_expr = func.date(Order.created_at)
        stmt = (
            select(
                day_expr.label("day"),
                func.coalesce(func.sum(Order.total_amount), 0.0).label("revenue"),
                func.count(Order.id).label("order_count"),
            )
            .group_by(day_expr)
            .order_by(day_expr)
        )
        stmt = self._window(stmt, status=status, since=since, until=until)
        return [
            (as_date(day), float(revenue or 0.0), int(n or 0))
            for day, revenue, n in session.exec(stmt).all()
        ]

    def revenue_by_category(
        self,
        session: Session,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[tuple[str, float]]:
        """Delivered item revenue grouped by product category."""
        revenue = func.coalesce(func.sum(OrderItem.quantity * OrderItem.price), 0.0)
        category = func.coalesce(Category.name, "Tanpa Kategori")
        stmt = (
            select(category.label("category"), revenue.label("revenue"))
            .select_from(OrderItem)
            .join(Order, Order.id == OrderItem.order_id)
            .join(Product, Product.id == OrderItem.product_id, isouter=True)
            .join(Category, Category.id == Product.category_id, isouter=True)
            .group_by(category)
            .order_by(revenue.desc())
        )
        stmt = self._window(stmt, status="delivered", since=since, until=until)
        return [(name, float(total or 0.0)) for name, total in session.exec(stmt).all()]

    # ----- Products -----

    def count_active_products(self, session: Session) -> int:
        stmt = select(func.count(Product.id)).where(Product.is_active == True)  # noqa: E712
        return int(session.exec(stmt).one() or 0)

    def top_products(self, session: Session, limit: int = 5) -> list[tuple]:
        """
        Products by quantity sold in delivered orders.

        Rows: (product_id, name, price, total_sold, total_revenue)
        """
        qty_sum = func.coalesce(func.sum(OrderItem.quantity), 0)
        revenue_sum = func.coalesce(func.sum(OrderItem.quantity * OrderItem.price), 0.0)
        stmt = (
            select(
                Product.id,
                Product.name,
                Product.price,
                qty_sum.label("total_sold"),
                revenue_sum.label("total_revenue"),
            )
            .join(OrderItem, OrderItem.product_id == Product.id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status == "delivered")
            .group_by(Product.id, Product.name, Product.price)
            .order_by(qty_sum.desc(), Product.id)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def product_performance(self, session: Session, category_id: int | None = None) -> list[tuple]:
        """
        Every product with units sold and revenue from non-cancelled orders.

        Rows: (Product, category name, total_sold, revenue)
        """
        sold = (
            select(
                OrderItem.product_id.label("product_id"),
                func.sum(OrderItem.quantity).label("total_sold"),
                func.sum(OrderItem.quantity * OrderItem.price).label("revenue"),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status != "cancelled")
            .group_by(OrderItem.product_id)
            .subquery()
        )
        total_sold = func.coalesce(sold.c.total_sold, 0)
        revenue = func.coalesce(sold.c.revenue, 0.0)
        stmt = (
            select(Product, Category.name, total_sold, revenue)
            .join(Category, Category.id == Product.category_id, isouter=True)
            .join(sold, sold.c.product_id == Product.id, isouter=True)
            .order_by(total_sold.desc(), Product.name)
        )
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        return list(session.exec(stmt).all())

    # ----- Customers -----

    def count_buyers(self, session: Session, *, registered_since: datetime | None = None) -> int:
        stmt = select(func.count(User.id)).where(User.role == "buyer")
        if registered_since is not None:
            stmt = stmt.where(User.created_at >= registered_since)
        return int(session.exec(stmt).one() or 0)

    def buyers_ordering_since(self, session: Session, since: datetime) -> int:
        stmt = (
            select(func.count(func.distinct(Order.user_id)))
            .join(User, User.id == Order.user_id)
            .where(User.role == "buyer", Order.created_at >= since)
        )
        return int(session.exec(stmt).one() or 0)

    def customer_performance(self, session: Session) -> list[tuple]:
        """
        Buyers with their order aggregates, best spenders first.

        Rows: (User, total_orders, total_spent, last_order_date)
        """
        per_user = (
            select(
                Order.user_id.label("user_id"),
                func.count(Order.id).label("total_orders"),
                func.sum(Order.total_amount).label("total_spent"),
                func.max(Order.created_at).label("last_order_date"),
            )
            .group_by(Order.user_id)
            .subquery()
        )
        total_orders = func.coalesce(per_user.c.total_orders, 0)
        total_spent = func.coalesce(per_user.c.total_spent, 0.0)
        stmt = (
            select(User, total_orders, total_spent, per_user.c.last_order_date)
            .join(per_user, per_user.c.user_id == User.id, isouter=True)
            .where(User.role == "buyer")
            .order_by(total_spent.desc(), User.id)
        )
        return list(session.exec(stmt).all())

    def registrations_per_day(self, session: Session, since: datetime) -> list[tuple[date, int]]:
        day_expr = func.date(User.created_at)
        stmt = (
            select(day_expr, func.count(User.id))
            .where(User.role == "buyer", User.created_at >= since)
            .group_by(day_expr)
            .order_by(day_expr)
        )
        return [(as_date(day), int(n)) for day, n in session.exec(stmt).all()]

# grocery_admin/repositories/order_repo.py
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, or_
from sqlmodel import Session, select

from grocery_admin.models.order import Order, OrderItem
from grocery_admin.models.product import Product
from grocery_admin.models.user import User

ORDER_NUMBER_PREFIX = "ORD"


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) UTC datetimes covering one calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def parse_amount_range(value: str) -> tuple[float, float | None]:
    """
    Parse "100000-500000" or "1000000+" into (min, max); max None = open.

    Raises:
        ValueError: on anything else.
    """
    value = value.strip()
    if value.endswith("+"):
        return float(value[:-1]), None
    low, sep, high = value.partition("-")
    if not sep:
        raise ValueError(f"invalid amount range: {value}")
    low_f, high_f = float(low), float(high)
    if high_f < low_f:
        raise ValueError(f"invalid amount range: {value}")
    return low_f, high_f


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; creation and bulk updates are multi-step
        transactions. The service is responsible for session.commit().
    """

    # ---- Filtering ----

    def _filtered(
        self,
        stmt,
        *,
        status: str | None = None,
        search: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        amount_range: tuple[float, float | None] | None = None,
        tracking_number: str | None = None,
    ):
        if status:
            stmt = stmt.where(Order.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Order.order_number.ilike(pattern),
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
        if date_from:
            stmt = stmt.where(Order.created_at >= day_bounds(date_from)[0])
        if date_to:
            stmt = stmt.where(Order.created_at < day_bounds(date_to)[1])
        if amount_range:
            low, high = amount_range
            stmt = stmt.where(Order.total_amount >= low)
            if high is not None:
                stmt = stmt.where(Order.total_amount <= high)
        if tracking_number:
            stmt = stmt.where(Order.tracking_number.ilike(f"%{tracking_number.strip()}%"))
        return stmt

    def list_filtered(
        self,
        session: Session,
        *,
        skip: int = 0,
        limit: int = 15,
        **filters,
    ) -> tuple[list[Order], int]:
        """
        Filtered, newest-first page of orders plus the total match count.
        """
        base = select(Order).join(User, User.id == Order.user_id)
        base = self._filtered(base, **filters)

        count_stmt = self._filtered(
            select(func.count(Order.id)).select_from(Order).join(
                User, User.id == Order.user_id
            ),
            **filters,
        )
        total = int(session.exec(count_stmt).one() or 0)

        stmt = (
            base.order_by(Order.created_at.desc(), Order.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all()), total

    def list_for_export(self, session: Session, **filters) -> list[Order]:
        stmt = self._filtered(
            select(Order).join(User, User.id == Order.user_id), **filters
        ).order_by(Order.created_at.desc(), Order.id.desc())
        return list(session.exec(stmt).all())

    # ---- Single orders ----

    def get_by_id(self, session: Session, order_id: int) -> Order | None:
        return session.get(Order, order_id)

    def get_many(self, session: Session, order_ids: list[int]) -> list[Order]:
        if not order_ids:
            return []
        stmt = select(Order).where(Order.id.in_(order_ids)).order_by(Order.id)
        return list(session.exec(stmt).all())

    def last_number_for_day(self, session: Session, day: date) -> str | None:
        prefix = f"{ORDER_NUMBER_PREFIX}{day:%Y%m%d}"
        stmt = (
            select(Order.order_number)
            .where(Order.order_number.like(f"{prefix}%"))
            .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
            .limit(1)
        )
        return session.exec(stmt).first()

    def next_order_number(self, session: Session, day: date) -> str:
        """
        ORD + YYYYMMDD + sequence (zero-padded to 4 digits), restarting every day.
        """
        prefix = f"{ORDER_NUMBER_PREFIX}{day:%Y%m%d}"
        last = self.last_number_for_day(session, day)
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        return order

    def delete_order(self, session: Session, order: Order) -> None:
        """Remove an order and its items (items first)."""
        for item in self.list_items_for_order(session, order.id):
            session.delete(item)
        session.flush()
        session.delete(order)
        session.flush()

    # ---- Order items ----

    def list_items_for_order(self, session: Session, order_id: int) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        return list(session.exec(stmt).all())

    def count_items_for_orders(self, session: Session, order_ids: list[int]) -> dict[int, int]:
        if not order_ids:
            return {}
        stmt = (
            select(OrderItem.order_id, func.count(OrderItem.id))
            .where(OrderItem.order_id.in_(order_ids))
            .group_by(OrderItem.order_id)
        )
        return {oid: int(n) for oid, n in session.exec(stmt).all()}

    def create_items(self, session: Session, items: list[OrderItem]) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items

    def product_names(self, session: Session, product_ids: list[int]) -> dict[int, str]:
        ids = [pid for pid in product_ids if pid is not None]
        if not ids:
            return {}
        stmt = select(Product.id, Product.name).where(Product.id.in_(ids))
        return {pid: name for pid, name in session.exec(stmt).all()}

    def customers_for(self, session: Session, user_ids: list[int]) -> dict[int, User]:
        if not user_ids:
            return {}
        stmt = select(User).where(User.id.in_(set(user_ids)))
        return {u.id: u for u in session.exec(stmt).all()}

    # ---- Aggregates ----

    def count(
        self,
        session: Session,
        *,
        status: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        stmt = select(func.count(Order.id))
        stmt = self._time_window(stmt, status=status, since=since, until=until)
        return int(session.exec(stmt).one() or 0)

    def sum_total(
        self,
        session: Session,
        *,
        status: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> float:
        stmt = select(func.coalesce(func.sum(Order.total_amount), 0.0))
        stmt = self._time_window(stmt, status=status, since=since, until=until)
        return float(session.exec(stmt).one() or 0.0)

    def counts_by_status(self, session: Session) -> dict[str, int]:
        stmt = select(Order.status, func.count(Order.id)).group_by(Order.status)
        return {status: int(n) for status, n in session.exec(stmt).all()}

    def repeat_customers(self, session: Session, status: str) -> int:
        """Customers with more than one order in the given status."""
        per_user = (
            select(Order.user_id)
            .where(Order.status == status)
            .group_by(Order.user_id)
            .having(func.count(Order.id) > 1)
            .subquery()
        )
        stmt = select(func.count()).select_from(per_user)
        return int(session.exec(stmt).one() or 0)

    @staticmethod
    def _time_window(stmt, *, status=None, since=None, until=None):
        if status:
            stmt = stmt.where(Order.status == status)
        if since:
            stmt = stmt.where(Order.created_at >= since)
        if until:
            stmt = stmt.where(Order.created_at < until)
        return stmt

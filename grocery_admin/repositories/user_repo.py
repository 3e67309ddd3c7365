# grocery_admin/repositories/user_repo.py
from datetime import datetime

from sqlalchemy import func, or_
from sqlmodel import Session, select

from grocery_admin.models.order import Order
from grocery_admin.models.user import Permission, Role, RolePermission, User
from grocery_admin.repositories.order_repo import day_bounds


class UserRepository:
    """
    Data access layer for User (and the role/permission tables).

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Basic CRUD -----

    def get_by_id(self, session: Session, user_id: int) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by unique email (case-insensitive), or None."""
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return session.exec(stmt).first()

    def get_many(self, session: Session, user_ids: list[int]) -> list[User]:
        if not user_ids:
            return []
        stmt = select(User).where(User.id.in_(user_ids)).order_by(User.id)
        return list(session.exec(stmt).all())

    def create(self, session: Session, user: User) -> User:
        """Insert a new User and return the persisted row."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def delete(self, session: Session, user: User) -> None:
        """Delete a User."""
        session.delete(user)
        session.commit()

    # ----- Listings -----

    @staticmethod
    def _activity_subquery():
        """Per-user order aggregates, excluding cancelled orders."""
        return (
            select(
                Order.user_id.label("user_id"),
                func.count(Order.id).label("orders_count"),
                func.coalesce(func.sum(Order.total_amount), 0.0).label("total_spent"),
                func.min(Order.created_at).label("first_order_date"),
                func.max(Order.created_at).label("last_order_date"),
            )
            .where(Order.status != "cancelled")
            .group_by(Order.user_id)
            .subquery()
        )

    @staticmethod
    def _base_filters(
        stmt,
        *,
        search: str | None = None,
        role: str | None = None,
        date_from=None,
        date_to=None,
        only_active: bool = False,
        registered_since: datetime | None = None,
    ):
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern))
            )
        if role:
            stmt = stmt.where(User.role == role)
        if date_from:
            stmt = stmt.where(User.created_at >= day_bounds(date_from)[0])
        if date_to:
            stmt = stmt.where(User.created_at < day_bounds(date_to)[1])
        if only_active:
            stmt = stmt.where(User.is_active == True)  # noqa: E712
        if registered_since:
            stmt = stmt.where(User.created_at >= registered_since)
        return stmt

    def list_users(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 10,
        **filters,
    ) -> tuple[list[User], int]:
        """
        Paginated user listing, newest first.

        Returns:
            (users, total matching rows)
        """
        stmt = self._base_filters(select(User), **filters)
        count_stmt = self._base_filters(select(func.count(User.id)), **filters)
        total = int(session.exec(count_stmt).one() or 0)
        stmt = stmt.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all()), total

    def list_with_activity(
        self,
        session: Session,
        *,
        skip: int = 0,
        limit: int = 10,
        min_orders: int | None = None,
        max_orders: int | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        **filters,
    ) -> tuple[list[tuple], int]:
        """
        Users joined with their order aggregates.

        Rows are (User, orders_count, total_spent, first_order_date,
        last_order_date); users without orders get 0 / None.
        """
        activity = self._activity_subquery()
        orders_count = func.coalesce(activity.c.orders_count, 0)
        total_spent = func.coalesce(activity.c.total_spent, 0.0)

        def build(columns):
            stmt = select(*columns).select_from(User).join(
                activity, activity.c.user_id == User.id, isouter=True
            )
            stmt = self._base_filters(stmt, **filters)
            if min_orders is not None:
                stmt = stmt.where(orders_count >= min_orders)
            if max_orders is not None:
                stmt = stmt.where(orders_count <= max_orders)
            return stmt

        total = int(session.exec(build([func.count(User.id)])).one() or 0)

        sort_columns = {
            "name": User.name,
            "created_at": User.created_at,
            "orders_count": orders_count,
            "total_spent": total_spent,
        }
        sort_col = sort_columns.get(sort_by, User.created_at)
        ordering = sort_col.asc() if sort_order == "asc" else sort_col.desc()

        stmt = (
            build(
                [
                    User,
                    orders_count,
                    total_spent,
                    activity.c.first_order_date,
                    activity.c.last_order_date,
                ]
            )
            .order_by(ordering, User.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all()), total

    # ----- Aggregates -----

    def count(self, session: Session, **filters) -> int:
        stmt = self._base_filters(select(func.count(User.id)), **filters)
        return int(session.exec(stmt).one() or 0)

    def count_with_orders(self, session: Session, *, since: datetime | None = None, **filters) -> int:
        """Users matching filters that placed at least one non-cancelled order."""
        stmt = select(func.count(func.distinct(User.id))).select_from(User).join(
            Order, Order.user_id == User.id
        ).where(Order.status != "cancelled")
        if since is not None:
            stmt = stmt.where(Order.created_at >= since)
        stmt = self._base_filters(stmt, **filters)
        return int(session.exec(stmt).one() or 0)

    def order_totals(self, session: Session, **filters) -> tuple[int, float]:
        """(order count, amount) of non-cancelled orders of matching users."""
        stmt = select(
            func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0.0)
        ).select_from(User).join(Order, Order.user_id == User.id).where(
            Order.status != "cancelled"
        )
        stmt = self._base_filters(stmt, **filters)
        count, amount = session.exec(stmt).one()
        return int(count or 0), float(amount or 0.0)

    def activity_for(self, session: Session, user_ids: list[int]) -> dict[int, tuple[int, float]]:
        """user_id -> (orders_count, total_spent) for the given users."""
        if not user_ids:
            return {}
        activity = self._activity_subquery()
        stmt = select(activity.c.user_id, activity.c.orders_count, activity.c.total_spent).where(
            activity.c.user_id.in_(user_ids)
        )
        return {uid: (int(n or 0), float(spent or 0.0)) for uid, n, spent in session.exec(stmt).all()}

    def has_orders(self, session: Session, user_id: int) -> bool:
        stmt = select(Order.id).where(Order.user_id == user_id).limit(1)
        return session.exec(stmt).first() is not None

    # ----- Roles & permissions -----

    def get_role(self, session: Session, name: str) -> Role | None:
        return session.exec(select(Role).where(Role.name == name)).first()

    def get_or_create_role(self, session: Session, name: str) -> Role:
        role = self.get_role(session, name)
        if role is None:
            role = Role(name=name)
            session.add(role)
            session.flush()
        return role

    def get_or_create_permission(self, session: Session, name: str) -> Permission:
        permission = session.exec(select(Permission).where(Permission.name == name)).first()
        if permission is None:
            permission = Permission(name=name)
            session.add(permission)
            session.flush()
        return permission

    def grant(self, session: Session, role: Role, permission: Permission) -> None:
        link = session.get(RolePermission, (role.id, permission.id))
        if link is None:
            session.add(RolePermission(role_id=role.id, permission_id=permission.id))
            session.flush()

    def permissions_for_role(self, session: Session, role_name: str) -> list[str]:
        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .where(Role.name == role_name)
            .order_by(Permission.name)
        )
        return list(session.exec(stmt).all())

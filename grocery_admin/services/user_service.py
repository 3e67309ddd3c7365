# grocery_admin/services/user_service.py
import logging
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from grocery_admin.core import email_client
from grocery_admin.core.auth import create_access_token, hash_password, verify_password
from grocery_admin.core.csv_export import money
from grocery_admin.models.user import User
from grocery_admin.repositories.order_repo import day_bounds
from grocery_admin.repositories.user_repo import UserRepository
from grocery_admin.schemas.common import Page
from grocery_admin.schemas.user import (
    ActiveUsersResponse,
    ActiveUserStatistics,
    LoginRequest,
    NewUsersResponse,
    NewUserStatistics,
    TokenResponse,
    UserActionResult,
    UserActivityRead,
    UserBulkAction,
    UserBulkActionResult,
    UserCreate,
    UserFilters,
    UserListResponse,
    UserRead,
    UserUpdate,
)

logger = logging.getLogger(__name__)

NEW_USER_WINDOW_DAYS = 30

# activity_level -> (min_orders, max_orders)
ACTIVITY_LEVELS: dict[str, tuple[int | None, int | None]] = {
    "high": (10, None),
    "medium": (5, 9),
    "low": (1, 4),
    "inactive": (None, 0),
}

EXPORT_HEADER = [
    "Name",
    "Email",
    "Phone",
    "Role",
    "Total Orders",
    "Total Spent",
    "Registration Date",
    "Last Login",
    "Status",
]


class UserService:
    """
    Business logic for admin user management.

    Responsibilities:
      - listings (all / active / new) with statistics
      - account CRUD (unique email, no self-delete, no deleting buyers
        that have orders)
      - bulk actions
      - admin login
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def to_read(user: User) -> UserRead:
        return UserRead.model_validate(user, from_attributes=True)

    # ----- Listings -----

    def list_users(self, session: Session, filters: UserFilters) -> UserListResponse:
        """All users, newest first, filtered by search / role / date."""
        users, total = self.repo.list_users(
            session,
            skip=(filters.page - 1) * filters.per_page,
            limit=filters.per_page,
            search=filters.search,
            role=filters.role,
            date_from=filters.date_from,
            date_to=filters.date_to,
        )
        rows = [self.to_read(u) for u in users]
        return UserListResponse(
            users=Page[UserRead].build(
                rows, page=filters.page, per_page=filters.per_page, total=total
            ),
            filters=filters.echo(),
        )

    def _activity_page(
        self,
        session: Session,
        filters: UserFilters,
        **extra,
    ) -> Page[UserActivityRead]:
        rows, total = self.repo.list_with_activity(
            session,
            skip=(filters.page - 1) * filters.per_page,
            limit=filters.per_page,
            sort_by=filters.sort_by,
            sort_order=filters.sort_order,
            search=filters.search,
            role=filters.role,
            date_from=filters.date_from,
            date_to=filters.date_to,
            **extra,
        )
        data = [
            UserActivityRead(
                **self.to_read(user).model_dump(),
                orders_count=int(orders_count or 0),
                total_spent=float(total_spent or 0.0),
                first_order_date=first,
                last_order_date=last,
            )
            for user, orders_count, total_spent, first, last in rows
        ]
        return Page[UserActivityRead].build(
            data, page=filters.page, per_page=filters.per_page, total=total
        )

    def list_active(self, session: Session, filters: UserFilters) -> ActiveUsersResponse:
        """
        Active accounts with their order aggregates.

        activity_level buckets by number of (non-cancelled) orders.
        """
        min_orders, max_orders = ACTIVITY_LEVELS.get(filters.activity_level, (None, None))
        page = self._activity_page(
            session,
            filters,
            only_active=True,
            min_orders=min_orders,
            max_orders=max_orders,
        )

        now = self._now()
        month_start = day_bounds(now.date().replace(day=1))[0]
        total_active = self.repo.count(session, only_active=True)
        order_count, total_spent = self.repo.order_totals(session, only_active=True)
        statistics = ActiveUserStatistics(
            total_active=total_active,
            new_this_month=self.repo.count(
                session, only_active=True, registered_since=month_start
            ),
            with_orders=self.repo.count_with_orders(session, only_active=True),
            total_spent=total_spent,
            average_orders=round(order_count / total_active, 2) if total_active else 0.0,
            last_30_days=self.repo.count_with_orders(
                session, since=now - timedelta(days=30), only_active=True
            ),
        )

        return ActiveUsersResponse(users=page, statistics=statistics, filters=filters.echo())

    def list_new(self, session: Session, filters: UserFilters) -> NewUsersResponse:
        """
        Users registered in the last 30 days.
        """
        now = self._now()
        window_start = now - timedelta(days=NEW_USER_WINDOW_DAYS)

        extra: dict = {"registered_since": window_start}
        if filters.has_ordered == "yes":
            extra["min_orders"] = 1
        elif filters.has_ordered == "no":
            extra["max_orders"] = 0
        page = self._activity_page(session, filters, **extra)

        today = now.date()
        today_start = day_bounds(today)[0]
        week_start = day_bounds(today - timedelta(days=today.weekday()))[0]
        month_start = day_bounds(today.replace(day=1))[0]

        total_new = self.repo.count(session, registered_since=window_start)
        with_orders = self.repo.count_with_orders(session, registered_since=window_start)
        statistics = NewUserStatistics(
            total_new=total_new,
            today=self.repo.count(session, registered_since=today_start),
            this_week=self.repo.count(session, registered_since=week_start),
            this_month=self.repo.count(
                session, registered_since=max(month_start, window_start)
            ),
            with_orders=with_orders,
            without_orders=total_new - with_orders,
            conversion_rate=round(with_orders / total_new * 100, 2) if total_new else 0.0,
        )

        return NewUsersResponse(users=page, statistics=statistics, filters=filters.echo())

    # ----- CRUD -----

    def get_user(self, session: Session, user_id: int) -> User:
        """
        Get a user by id.

        Raises:
            HTTPException(404): if not found.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return user

    def _ensure_email_free(self, session: Session, email: str, ignore_id: int | None = None) -> None:
        existing = self.repo.get_by_email(session, email)
        if existing and existing.id != ignore_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email is already registered",
            )

    def create_user(self, session: Session, payload: UserCreate) -> UserActionResult:
        self._ensure_email_free(session, payload.email)
        user = User(
            name=payload.name,
            email=payload.email.lower(),
            hashed_password=hash_password(payload.password),
            role=payload.role,
            phone=payload.phone,
            address=payload.address,
            is_active=payload.is_active,
        )
        user = self.repo.create(session, user)
        logger.info("User %s created (%s)", user.email, user.role)
        return UserActionResult(message="User berhasil ditambahkan.", user=self.to_read(user))

    def update_user(self, session: Session, user_id: int, payload: UserUpdate) -> UserActionResult:
        """
        Update an account; the password only changes when a new one is sent.
        """
        user = self.get_user(session, user_id)
        self._ensure_email_free(session, payload.email, ignore_id=user.id)

        user.name = payload.name
        user.email = payload.email.lower()
        if payload.password:
            user.hashed_password = hash_password(payload.password)
        for field in ("role", "phone", "address", "is_active"):
            value = getattr(payload, field)
            if value is not None:
                setattr(user, field, value)
        user.updated_at = self._now()

        user = self.repo.update(session, user)
        return UserActionResult(message="User berhasil diperbarui.", user=self.to_read(user))

    def _ensure_deletable(self, session: Session, user: User, current_user: User) -> None:
        if user.id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Anda tidak dapat menghapus akun Anda sendiri",
            )
        if self.repo.has_orders(session, user.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User tidak dapat dihapus karena memiliki data terkait",
            )

    def delete_user(self, session: Session, user_id: int, current_user: User) -> UserActionResult:
        user = self.get_user(session, user_id)
        self._ensure_deletable(session, user, current_user)
        name = user.name
        self.repo.delete(session, user)
        logger.info("User %s deleted by %s", user_id, current_user.email)
        return UserActionResult(message=f'User "{name}" berhasil dihapus')

    # ----- Bulk actions -----

    def _load_selection(self, session: Session, user_ids: list[int]) -> list[User]:
        users = self.repo.get_many(session, user_ids)
        missing = sorted(set(user_ids) - {u.id for u in users})
        if missing:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"message": "Some users do not exist", "user_ids": missing},
            )
        return users

    def bulk_action(
        self,
        session: Session,
        payload: UserBulkAction,
        current_user: User,
    ) -> UserBulkActionResult:
        """
        Apply one action to all selected users.

        Validation covers the whole selection before anything changes.
        """
        users = self._load_selection(session, payload.user_ids)
        action = payload.action

        if action in ("deactivate", "delete") and current_user.id in payload.user_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot deactivate or delete your own account",
            )

        if action in ("activate", "deactivate"):
            active = action == "activate"
            now = self._now()
            for user in users:
                user.is_active = active
                user.updated_at = now
                session.add(user)
            session.commit()
            message = f"{len(users)} user berhasil {'diaktifkan' if active else 'dinonaktifkan'}."
            result = UserBulkActionResult(
                message=message, action=action, affected=len(users), user_ids=payload.user_ids
            )
        elif action == "delete":
            blocked = [u.email for u in users if self.repo.has_orders(session, u.id)]
            if blocked:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"message": "Users with orders cannot be deleted", "users": blocked},
                )
            for user in users:
                session.delete(user)
            session.commit()
            result = UserBulkActionResult(
                message=f"{len(users)} user berhasil dihapus.",
                action=action,
                affected=len(users),
                user_ids=payload.user_ids,
            )
        elif action in ("send_notification", "send_welcome"):
            result = self._send_emails(users, payload)
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Action {action} is not handled here",
            )

        logger.info("User bulk action %s applied to %d users", action, result.affected)
        return result

    def _send_emails(self, users: list[User], payload: UserBulkAction) -> UserBulkActionResult:
        if payload.action == "send_notification" and not (
            (payload.subject or "").strip() and (payload.message or "").strip()
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="subject and message are required for send_notification",
            )
        if not email_client.is_configured():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Email service is not configured",
            )

        sent = 0
        failed: list[str] = []
        for user in users:
            if payload.action == "send_welcome":
                subject = "Selamat datang!"
                body = (
                    f"Halo {user.name},\n\n"
                    "Terima kasih telah bergabung. Selamat berbelanja kebutuhan harian Anda."
                )
            else:
                subject = payload.subject.strip()
                body = f"Halo {user.name},\n\n{payload.message.strip()}"
            try:
                email_client.send_email(to_email=user.email, subject=subject, text_body=body)
                sent += 1
            except Exception as exc:
                logger.error("Email to %s failed: %s", user.email, exc)
                failed.append(user.email)

        message = f"Email terkirim ke {sent} user."
        if failed:
            message += f" Gagal: {', '.join(failed)}."
        return UserBulkActionResult(
            success=not failed,
            level="success" if not failed else "warning",
            message=message,
            action=payload.action,
            affected=sent,
            user_ids=payload.user_ids,
        )

    def export_selection(self, session: Session, user_ids: list[int]) -> list[list]:
        users = self._load_selection(session, user_ids)
        activity = self.repo.activity_for(session, [u.id for u in users])
        return [
            [
                u.name,
                u.email,
                u.phone or "N/A",
                u.role,
                activity.get(u.id, (0, 0.0))[0],
                money(activity.get(u.id, (0, 0.0))[1]),
                u.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                u.last_login_at.strftime("%Y-%m-%d %H:%M:%S") if u.last_login_at else "Never",
                "Active" if u.is_active else "Inactive",
            ]
            for u in users
        ]

    # ----- Auth -----

    def login(self, session: Session, payload: LoginRequest) -> TokenResponse:
        """
        Verify credentials and issue an access token.

        Raises:
            HTTPException(401): unknown email, wrong password or inactive account.
        """
        user = self.repo.get_by_email(session, payload.email)
        if not user or not verify_password(payload.password, user.hashed_password):
            logger.warning("Failed login for %s", payload.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is inactive",
            )

        user.last_login_at = self._now()
        user = self.repo.update(session, user)
        return TokenResponse(access_token=create_access_token(user), user=self.to_read(user))

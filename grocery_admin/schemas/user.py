# grocery_admin/schemas/user.py
from datetime import date, datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from grocery_admin.schemas.common import ActionResult, Page

Role = Literal["admin", "buyer"]

ActivityLevel = Literal["high", "medium", "low", "inactive"]

UserBulkActionName = Literal[
    "activate",
    "deactivate",
    "delete",
    "send_notification",
    "send_welcome",
    "export",
]


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: int
    name: str
    email: str
    role: str
    phone: str | None = None
    address: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class UserActivityRead(UserRead):
    """User row with order aggregates (computed on read)."""

    orders_count: int = 0
    total_spent: float = 0.0
    first_order_date: datetime | None = None
    last_order_date: datetime | None = None


class UserCreate(SQLModel):
    """
    Admin payload for creating an account.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=255)
    email: EmailStr
    password: str = Field(min_length=8)
    role: Role = "buyer"
    phone: str | None = Field(default=None, max_length=30)
    address: str | None = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _strip_required(v)


class UserUpdate(SQLModel):
    """
    Admin edit of an account.

    name and email are always sent by the edit form; password only
    when it should change.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=255)
    email: EmailStr
    password: str | None = Field(default=None, min_length=8)
    role: Role | None = None
    phone: str | None = Field(default=None, max_length=30)
    address: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("password", mode="before")
    @classmethod
    def blank_password(cls, v: str | None) -> str | None:
        # Edit form sends "" when the password is left untouched
        if v is None or not str(v).strip():
            return None
        return v


class UserBulkAction(SQLModel):
    model_config = ConfigDict(extra="forbid")

    action: UserBulkActionName
    user_ids: list[int] = Field(min_length=1)
    subject: str | None = Field(default=None, max_length=200)
    message: str | None = Field(default=None, max_length=5000)

    @field_validator("user_ids")
    @classmethod
    def unique_ids(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))


class UserFilters(SQLModel):
    search: str | None = None
    role: Role | None = None
    date_from: date | None = None
    date_to: date | None = None
    activity_level: ActivityLevel | None = None
    has_ordered: Literal["yes", "no"] | None = None
    sort_by: Literal["name", "created_at", "orders_count", "total_spent"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=1)

    def echo(self) -> dict:
        return {
            k: v
            for k, v in self.model_dump(exclude={"page", "per_page"}).items()
            if v not in (None, "")
        }


class UserListResponse(SQLModel):
    users: Page[UserRead]
    filters: dict


class ActiveUserStatistics(SQLModel):
    total_active: int
    new_this_month: int
    with_orders: int
    total_spent: float
    average_orders: float
    last_30_days: int


class ActiveUsersResponse(SQLModel):
    users: Page[UserActivityRead]
    statistics: ActiveUserStatistics
    filters: dict


class NewUserStatistics(SQLModel):
    total_new: int
    today: int
    this_week: int
    this_month: int
    with_orders: int
    without_orders: int
    conversion_rate: float


class NewUsersResponse(SQLModel):
    users: Page[UserActivityRead]
    statistics: NewUserStatistics
    filters: dict


class UserActionResult(ActionResult):
    user: UserRead | None = None


class UserBulkActionResult(ActionResult):
    action: str
    affected: int
    user_ids: list[int]


# -------- Auth --------


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    password: str


class TokenResponse(SQLModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead

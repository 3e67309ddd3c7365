# grocery_admin/models/user.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Admin or customer account.

    Role:
      - "admin" | "buyer" (must exist in the roles table, see seeders)

    Aggregates such as orders_count / total_spent are never stored here;
    repositories compute them on read.
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)

    name: str = Field(max_length=255)

    email: str = Field(
        unique=True,
        index=True,
        max_length=255,
    )

    hashed_password: str

    role: str = Field(
        default="buyer",
        index=True,
        description="Application role: admin | buyer",
    )

    phone: str | None = Field(default=None, max_length=30)
    address: str | None = None

    is_active: bool = Field(default=True, index=True)

    last_login_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class Role(SQLModel, table=True):
    __tablename__ = "roles"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=50)


class Permission(SQLModel, table=True):
    __tablename__ = "permissions"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)


class RolePermission(SQLModel, table=True):
    """Many-to-many link between roles and permissions."""

    __tablename__ = "role_permissions"

    role_id: int = Field(foreign_key="roles.id", primary_key=True)
    permission_id: int = Field(foreign_key="permissions.id", primary_key=True)

# grocery_admin/models/product.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)


class Product(SQLModel, table=True):
    """
    Grocery catalog entry.

    Read-only for the admin order screens: products are only picked
    when an admin builds an order, and stock is deducted on creation.
    """

    __tablename__ = "products"

    id: int | None = Field(default=None, primary_key=True)

    name: str = Field(max_length=255, index=True)

    description: str | None = None

    price: float = Field(
        gt=0,
        description="Unit price in Rupiah",
    )

    stock: int = Field(
        default=0,
        ge=0,
        description="Units currently in stock",
    )

    category_id: int | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )

    is_active: bool = Field(default=True, index=True)

    image: str | None = Field(
        default=None,
        description="Public image URL",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

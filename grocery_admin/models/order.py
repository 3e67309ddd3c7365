# grocery_admin/models/order.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order.

    total_amount = sum(items quantity * price) + shipping_cost + tax_amount,
    computed once when the order is created.
    """

    __tablename__ = "orders"

    id: int | None = Field(default=None, primary_key=True)

    # ORD + YYYYMMDD + 4-digit daily sequence
    order_number: str = Field(
        unique=True,
        index=True,
        max_length=32,
    )

    user_id: int = Field(
        foreign_key="users.id",
        index=True,
    )

    # pending | processing | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    total_amount: float = Field(default=0.0)
    shipping_cost: float = Field(default=0.0, ge=0)
    tax_amount: float = Field(default=0.0, ge=0)

    tracking_number: str | None = Field(default=None, index=True, max_length=100)

    shipping_address: str

    notes: str | None = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order; price is captured at order time.
    """

    __tablename__ = "order_items"

    id: int | None = Field(default=None, primary_key=True)

    order_id: int = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: int | None = Field(
        default=None,
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    price: float = Field(
        description="Unit price at time of order",
    )

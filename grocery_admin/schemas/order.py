# grocery_admin/schemas/order.py
from datetime import date, datetime

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from grocery_admin.schemas.common import ActionResult, Page
from grocery_admin.services.order_workflow import BULK_ACTIONS, OrderStatus


class OrderFilters(SQLModel):
    """
    Query parameters accepted by every order listing.

    amount_range: "0-100000" | "100000-500000" | "500000-1000000" | "1000000+"
    """

    search: str | None = None
    status: OrderStatus | None = None
    date_from: date | None = None
    date_to: date | None = None
    amount_range: str | None = None
    tracking_number: str | None = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=15, ge=1)

    def echo(self) -> dict:
        """Non-empty filter values, echoed back to the listing page."""
        return {
            k: v
            for k, v in self.model_dump(exclude={"page", "per_page"}).items()
            if v not in (None, "")
        }


class CustomerSummary(SQLModel):
    id: int
    name: str
    email: str
    phone: str | None = None


class OrderItemRead(SQLModel):
    id: int
    product_id: int | None
    product_name: str
    quantity: int
    price: float
    subtotal: float


class OrderRead(SQLModel):
    """
    Order row as shown in listings (no items).
    """

    id: int
    order_number: str
    user_id: int
    customer: CustomerSummary | None = None
    status: OrderStatus
    status_label: str
    total_amount: float
    shipping_cost: float
    tax_amount: float
    tracking_number: str | None = None
    shipping_address: str
    notes: str | None = None
    items_count: int = 0
    created_at: datetime
    updated_at: datetime
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderDetail(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]
    subtotal: float


class OrderItemCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    product_id: int
    quantity: int = Field(gt=0)


class OrderCreate(SQLModel):
    """
    Admin payload for creating an order on behalf of a customer.

    Backend derives:
      - order_number
      - status = 'pending'
      - unit prices from current product prices
      - total_amount = items + shipping_cost + tax_amount
    """

    model_config = ConfigDict(extra="forbid")

    user_id: int
    items: list[OrderItemCreate] = Field(min_length=1)
    shipping_address: str
    notes: str | None = Field(default=None, max_length=500)
    shipping_cost: float = Field(default=0.0, ge=0)
    tax_amount: float = Field(default=0.0, ge=0)

    @field_validator("shipping_address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderUpdate(SQLModel):
    """
    Partial edit of the non-status fields.
    """

    model_config = ConfigDict(extra="forbid")

    tracking_number: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=500)
    shipping_address: str | None = None

    @field_validator("tracking_number", "shipping_address")
    @classmethod
    def strip_value(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    notes: str | None = Field(default=None, max_length=500)


class OrderBulkAction(SQLModel):
    """
    One action applied to many orders.

    - update_status requires `status`
    - update_tracking requires `tracking_number`
    """

    model_config = ConfigDict(extra="forbid")

    action: str
    order_ids: list[int] = Field(min_length=1)
    status: OrderStatus | None = None
    tracking_number: str | None = Field(default=None, max_length=100)

    @field_validator("action")
    @classmethod
    def known_action(cls, v: str) -> str:
        if v not in BULK_ACTIONS:
            raise ValueError(f"unknown bulk action: {v}")
        return v

    @field_validator("order_ids")
    @classmethod
    def unique_ids(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def required_companions(self) -> "OrderBulkAction":
        if self.action == "update_status" and self.status is None:
            raise ValueError("status is required for update_status")
        if self.action == "update_tracking" and not (self.tracking_number or "").strip():
            raise ValueError("tracking_number is required for update_tracking")
        return self


# -------- Listing payloads --------


class OrderStatistics(SQLModel):
    total_orders: int
    pending_orders: int
    processing_orders: int
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int
    total_revenue: float
    today_orders: int
    today_revenue: float


class StatusStatistics(SQLModel):
    count: int
    total_amount: float
    today_count: int
    average_amount: float
    repeat_customers: int | None = None


class OrderListResponse(SQLModel):
    orders: Page[OrderRead]
    statistics: OrderStatistics
    filters: dict
    statuses: dict[str, str]


class StatusOrderListResponse(SQLModel):
    status: OrderStatus
    orders: Page[OrderRead]
    statistics: StatusStatistics
    filters: dict
    statuses: dict[str, str]
    bulk_actions: list[str]


class ProductOption(SQLModel):
    id: int
    name: str
    price: float
    stock: int
    category: str | None = None


class OrderFormData(SQLModel):
    products: list[ProductOption]
    customers: list[CustomerSummary]
    statuses: dict[str, str]


class TrackingRead(SQLModel):
    id: int
    order_number: str
    status: OrderStatus
    status_label: str
    tracking_number: str | None
    shipping_address: str
    shipped_at: datetime | None
    delivered_at: datetime | None


# -------- Mutation results --------


class OrderActionResult(ActionResult):
    order: OrderDetail


class Invoice(SQLModel):
    order_id: int
    order_number: str
    customer_name: str
    customer_email: str
    issued_at: datetime
    items: list[OrderItemRead]
    subtotal: float
    shipping_cost: float
    tax_amount: float
    total_amount: float


class BulkActionResult(ActionResult):
    action: str
    affected: int
    order_ids: list[int]
    invoices: list[Invoice] | None = None

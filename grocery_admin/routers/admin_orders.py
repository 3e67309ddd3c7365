# grocery_admin/routers/admin_orders.py
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlmodel import Session

from grocery_admin.core.auth import require_admin
from grocery_admin.core.config import get_settings
from grocery_admin.core.csv_export import csv_response
from grocery_admin.database import get_session
from grocery_admin.repositories.order_repo import OrderRepository
from grocery_admin.repositories.product_repo import ProductRepository
from grocery_admin.repositories.user_repo import UserRepository
from grocery_admin.schemas.order import (
    BulkActionResult,
    OrderActionResult,
    OrderBulkAction,
    OrderCreate,
    OrderDetail,
    OrderFilters,
    OrderFormData,
    OrderListResponse,
    OrderStatusUpdate,
    OrderUpdate,
    StatusOrderListResponse,
    TrackingRead,
)
from grocery_admin.schemas.common import ActionResult
from grocery_admin.services import order_workflow as wf
from grocery_admin.services.order_service import EXPORT_HEADER, OrderService

router = APIRouter(
    prefix="/admin/orders",
    tags=["Admin Orders"],
    dependencies=[Depends(require_admin)],
)

settings = get_settings()

order_repo = OrderRepository()
product_repo = ProductRepository()
user_repo = UserRepository()
service = OrderService(order_repo, product_repo, user_repo)


def order_filters(
    search: str | None = None,
    status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    amount_range: str | None = None,
    tracking_number: str | None = None,
    page: int = 1,
    per_page: int | None = None,
) -> OrderFilters:
    """
    Listing query parameters; empty strings (unfilled form fields)
    count as "no filter".
    """
    raw = {
        "search": search,
        "status": status,
        "date_from": date_from,
        "date_to": date_to,
        "amount_range": amount_range,
        "tracking_number": tracking_number,
    }
    values = {k: v.strip() for k, v in raw.items() if v is not None and v.strip()}
    values["page"] = page
    values["per_page"] = min(per_page or settings.ORDERS_PER_PAGE, settings.MAX_PER_PAGE)
    try:
        return OrderFilters.model_validate(values)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())


# -------- Listings --------


@router.get("", response_model=OrderListResponse)
def list_orders(
    filters: OrderFilters = Depends(order_filters),
    session: Session = Depends(get_session),
):
    """
    Paginated order listing with dashboard statistics.

    Filters: search, status, date_from, date_to, amount_range,
    tracking_number, page, per_page.
    """
    return service.list_orders(session, filters)


@router.get("/create", response_model=OrderFormData)
def create_form(session: Session = Depends(get_session)):
    """
    Active products and buyers offered by the create-order form.
    """
    return service.get_form_data(session)


@router.get("/export")
def export_orders(
    filters: OrderFilters = Depends(order_filters),
    session: Session = Depends(get_session),
):
    """
    Download the filtered orders as CSV.
    """
    rows = service.export_orders(session, filters)
    filename = f"orders_{datetime.now():%Y-%m-%d_%H-%M-%S}.csv"
    return csv_response(filename, EXPORT_HEADER, rows)


@router.post("/bulk-action", response_model=None)
def bulk_action(
    payload: OrderBulkAction,
    session: Session = Depends(get_session),
):
    """
    Apply one action to the selected orders.

    `export` answers with a CSV download; every other action returns
    a BulkActionResult. Status changes are all-or-nothing.
    """
    if payload.action == "export":
        rows = service.export_selection(session, payload.order_ids)
        filename = f"orders_selected_{datetime.now():%Y-%m-%d_%H-%M-%S}.csv"
        return csv_response(filename, EXPORT_HEADER, rows)
    result: BulkActionResult = service.bulk_action(session, payload)
    return result.model_dump(mode="json")


@router.get("/status/{order_status}", response_model=StatusOrderListResponse)
def list_by_status(
    order_status: str,
    filters: OrderFilters = Depends(order_filters),
    session: Session = Depends(get_session),
):
    """
    Orders of one status, with that status' statistics.
    """
    return service.list_by_status(session, order_status, filters)


def _page_route(page_name: str):
    order_status = wf.PAGE_STATUS[page_name]

    def endpoint(
        filters: OrderFilters = Depends(order_filters),
        session: Session = Depends(get_session),
    ):
        return service.list_by_status(session, order_status, filters)

    endpoint.__name__ = f"list_{page_name}_orders"
    endpoint.__doc__ = f"Orders shown on the {page_name} page ({order_status})."
    return endpoint


for _page in ("pending", "processing", "shipped", "completed"):
    router.add_api_route(
        f"/{_page}",
        _page_route(_page),
        methods=["GET"],
        response_model=StatusOrderListResponse,
    )


# -------- Single order --------


@router.post("", response_model=OrderActionResult, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
):
    """
    Create an order on behalf of a customer (status = pending).
    """
    return service.create_order(session, payload)


@router.get("/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
):
    """
    Order with customer and items.
    """
    return service.get_order(session, order_id)


@router.get("/{order_id}/tracking", response_model=TrackingRead)
def get_tracking(
    order_id: int,
    session: Session = Depends(get_session),
):
    return service.get_tracking(session, order_id)


@router.patch("/{order_id}", response_model=OrderActionResult)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    session: Session = Depends(get_session),
):
    """
    Edit tracking number, notes or shipping address.
    """
    return service.update_order(session, order_id, payload)


@router.patch("/{order_id}/status", response_model=OrderActionResult)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update order status with the workflow state machine.

      pending    -> processing, cancelled

      processing -> shipped, cancelled

      shipped    -> delivered

      delivered  -> (no change)

      cancelled  -> (no change)
    """
    return service.update_status(session, order_id, payload)


@router.post(
    "/{order_id}/reorder",
    response_model=OrderActionResult,
    status_code=status.HTTP_201_CREATED,
)
def reorder(
    order_id: int,
    session: Session = Depends(get_session),
):
    """
    New pending order with the same items at current prices.
    """
    return service.reorder(session, order_id)


@router.delete("/{order_id}", response_model=ActionResult)
def delete_order(
    order_id: int,
    session: Session = Depends(get_session),
):
    """
    Delete a cancelled order (items first).
    """
    service.delete_order(session, order_id)
    return ActionResult(message="Pesanan berhasil dihapus.")

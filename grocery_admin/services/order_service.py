# grocery_admin/services/order_service.py
import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from grocery_admin.core import email_client
from grocery_admin.core.csv_export import money
from grocery_admin.models.order import Order, OrderItem
from grocery_admin.models.product import Product
from grocery_admin.models.user import User
from grocery_admin.repositories.order_repo import (
    OrderRepository,
    day_bounds,
    parse_amount_range,
)
from grocery_admin.repositories.product_repo import ProductRepository
from grocery_admin.repositories.user_repo import UserRepository
from grocery_admin.schemas.common import Page
from grocery_admin.schemas.order import (
    BulkActionResult,
    CustomerSummary,
    Invoice,
    OrderActionResult,
    OrderBulkAction,
    OrderCreate,
    OrderDetail,
    OrderFilters,
    OrderFormData,
    OrderItemRead,
    OrderListResponse,
    OrderRead,
    OrderStatistics,
    OrderStatusUpdate,
    OrderUpdate,
    ProductOption,
    StatusOrderListResponse,
    StatusStatistics,
    TrackingRead,
)
from grocery_admin.services import order_workflow as wf

logger = logging.getLogger(__name__)

MISSING_PRODUCT_NAME = "Produk tidak tersedia"

EXPORT_HEADER = [
    "Order Number",
    "Customer Name",
    "Customer Email",
    "Total Amount",
    "Status",
    "Created At",
    "Items Count",
]


class OrderService:
    """
    Business logic for admin order management.

    Responsibilities:
      - Filtered listings and per-status pages with statistics
      - Create orders for a customer (price capture, stock deduction)
      - Status updates through the shared transition table
      - Bulk actions applied all-or-nothing
      - Deletion of cancelled orders only
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.user_repo = user_repo

    # -------- Listings --------

    def _query_filters(self, filters: OrderFilters, status_override: str | None = None) -> dict:
        amount_range = None
        if filters.amount_range:
            try:
                amount_range = parse_amount_range(filters.amount_range)
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Invalid amount_range: {filters.amount_range}",
                )
        return {
            "status": status_override or filters.status,
            "search": filters.search,
            "date_from": filters.date_from,
            "date_to": filters.date_to,
            "amount_range": amount_range,
            "tracking_number": filters.tracking_number,
        }

    def _page_of_orders(
        self,
        session: Session,
        filters: OrderFilters,
        status_override: str | None = None,
    ) -> Page[OrderRead]:
        query = self._query_filters(filters, status_override)
        skip = (filters.page - 1) * filters.per_page
        orders, total = self.order_repo.list_filtered(
            session, skip=skip, limit=filters.per_page, **query
        )
        rows = self.to_reads(session, orders)
        return Page[OrderRead].build(
            rows, page=filters.page, per_page=filters.per_page, total=total
        )

    def list_orders(self, session: Session, filters: OrderFilters) -> OrderListResponse:
        """
        All orders (newest first) plus dashboard statistics.
        """
        page = self._page_of_orders(session, filters)

        by_status = self.order_repo.counts_by_status(session)
        today_start, today_end = day_bounds(datetime.now(timezone.utc).date())
        statistics = OrderStatistics(
            total_orders=sum(by_status.values()),
            pending_orders=by_status.get(wf.PENDING, 0),
            processing_orders=by_status.get(wf.PROCESSING, 0),
            shipped_orders=by_status.get(wf.SHIPPED, 0),
            delivered_orders=by_status.get(wf.DELIVERED, 0),
            cancelled_orders=by_status.get(wf.CANCELLED, 0),
            total_revenue=self.order_repo.sum_total(session, status=wf.DELIVERED),
            today_orders=self.order_repo.count(session, since=today_start, until=today_end),
            today_revenue=self.order_repo.sum_total(
                session, status=wf.DELIVERED, since=today_start, until=today_end
            ),
        )

        return OrderListResponse(
            orders=page,
            statistics=statistics,
            filters=filters.echo(),
            statuses=wf.STATUS_LABELS,
        )

    def list_by_status(
        self,
        session: Session,
        order_status: str,
        filters: OrderFilters,
    ) -> StatusOrderListResponse:
        """
        Orders of one status (pending/processing/shipped/completed pages).
        """
        if not wf.is_valid_status(order_status):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown order status: {order_status}",
            )

        page = self._page_of_orders(session, filters, status_override=order_status)

        count = self.order_repo.count(session, status=order_status)
        total_amount = self.order_repo.sum_total(session, status=order_status)
        today_start, today_end = day_bounds(datetime.now(timezone.utc).date())
        statistics = StatusStatistics(
            count=count,
            total_amount=total_amount,
            today_count=self.order_repo.count(
                session, status=order_status, since=today_start, until=today_end
            ),
            average_amount=round(total_amount / count, 2) if count else 0.0,
        )
        if order_status == wf.DELIVERED:
            statistics.repeat_customers = self.order_repo.repeat_customers(session, wf.DELIVERED)

        echoed = filters.echo()
        echoed.pop("status", None)
        return StatusOrderListResponse(
            status=order_status,
            orders=page,
            statistics=statistics,
            filters=echoed,
            statuses=wf.STATUS_LABELS,
            bulk_actions=list(wf.bulk_actions_for_status(order_status)),
        )

    def get_form_data(self, session: Session) -> OrderFormData:
        """Products and customers offered by the create-order form."""
        products = [
            ProductOption(
                id=p.id,
                name=p.name,
                price=p.price,
                stock=p.stock,
                category=category,
            )
            for p, category in self.product_repo.list_with_category(session, only_active=True)
        ]
        customers, _ = self.user_repo.list_users(
            session, skip=0, limit=1000, role="buyer", only_active=True
        )
        return OrderFormData(
            products=products,
            customers=[self._customer(c) for c in customers],
            statuses=wf.STATUS_LABELS,
        )

    # -------- Single order --------

    def _get_or_404(self, session: Session, order_id: int) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def get_order(self, session: Session, order_id: int) -> OrderDetail:
        order = self._get_or_404(session, order_id)
        return self._to_detail(session, order)

    def get_tracking(self, session: Session, order_id: int) -> TrackingRead:
        order = self._get_or_404(session, order_id)
        return TrackingRead(
            id=order.id,
            order_number=order.order_number,
            status=wf.normalize_status(order.status),
            status_label=wf.status_label(order.status),
            tracking_number=order.tracking_number,
            shipping_address=order.shipping_address,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
        )

    def create_order(
        self,
        session: Session,
        payload: OrderCreate,
        *,
        message: str = "Pesanan berhasil dibuat.",
    ) -> OrderActionResult:
        """
        Create an order for a customer.

        Steps:
          1. Ensure the customer exists.
          2. Merge duplicate product lines.
          3. Validate every product (exists, active, enough stock).
          4. Create the Order (status='pending') with captured prices.
          5. Deduct stock and commit.
        """
        customer = self.user_repo.get_by_id(session, payload.user_id)
        if not customer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Customer not found",
            )

        quantities: dict[int, int] = {}
        for line in payload.items:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        products = self.product_repo.get_many(session, list(quantities))
        self._validate_lines(quantities, products)

        subtotal = sum(products[pid].price * qty for pid, qty in quantities.items())
        total_amount = round(subtotal + payload.shipping_cost + payload.tax_amount, 2)

        today = datetime.now(timezone.utc).date()
        order = Order(
            order_number=self.order_repo.next_order_number(session, today),
            user_id=customer.id,
            status=wf.PENDING,
            total_amount=total_amount,
            shipping_cost=payload.shipping_cost,
            tax_amount=payload.tax_amount,
            shipping_address=payload.shipping_address,
            notes=payload.notes,
        )
        order = self.order_repo.create_order(session, order)

        self.order_repo.create_items(
            session,
            [
                OrderItem(
                    order_id=order.id,
                    product_id=pid,
                    quantity=qty,
                    price=products[pid].price,
                )
                for pid, qty in quantities.items()
            ],
        )

        for pid, qty in quantities.items():
            products[pid].stock -= qty
            session.add(products[pid])

        session.commit()
        session.refresh(order)
        logger.info("Order %s created for user %s (%.2f)", order.order_number, customer.id, total_amount)

        return OrderActionResult(message=message, order=self._to_detail(session, order))

    def _validate_lines(self, quantities: dict[int, int], products: dict[int, Product]) -> None:
        errors: list[dict[str, str]] = []
        for pid, qty in quantities.items():
            product = products.get(pid)
            if not product:
                errors.append({"product_id": str(pid), "reason": "Product not found"})
            elif not product.is_active:
                errors.append({"product_id": str(pid), "reason": "Product is inactive"})
            elif qty > product.stock:
                errors.append(
                    {
                        "product_id": str(pid),
                        "reason": f"Insufficient stock (have {product.stock}, requested {qty})",
                    }
                )
        if errors:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Order validation failed", "items": errors},
            )

    def update_order(self, session: Session, order_id: int, payload: OrderUpdate) -> OrderActionResult:
        """
        Edit tracking number / notes / shipping address.
        """
        order = self._get_or_404(session, order_id)
        changes = payload.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(order, field, value)
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        return OrderActionResult(
            message="Pesanan berhasil diperbarui.",
            order=self._to_detail(session, order),
        )

    def update_status(
        self,
        session: Session,
        order_id: int,
        payload: OrderStatusUpdate,
    ) -> OrderActionResult:
        """
        Move an order to a new status.

        Any transition missing from the workflow table raises 400.
        """
        order = self._get_or_404(session, order_id)

        try:
            wf.ensure_transition(order.status, payload.status)
        except wf.InvalidTransition as exc:
            logger.warning("Order %s: %s", order.order_number, exc)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            )

        previous = order.status
        self._apply_status(order, payload.status)
        if payload.notes is not None:
            order.notes = payload.notes.strip() or None

        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        logger.info("Order %s status %s -> %s", order.order_number, previous, order.status)

        return OrderActionResult(
            message="Status pesanan berhasil diperbarui.",
            order=self._to_detail(session, order),
        )

    @staticmethod
    def _apply_status(order: Order, new_status: str) -> None:
        now = datetime.now(timezone.utc)
        if order.status != new_status:
            if new_status == wf.SHIPPED:
                order.shipped_at = now
            elif new_status == wf.DELIVERED:
                order.delivered_at = now
        order.status = new_status
        order.updated_at = now

    def reorder(self, session: Session, order_id: int) -> OrderActionResult:
        """
        Create a new pending order with the items of an existing one,
        at current product prices.
        """
        source = self._get_or_404(session, order_id)
        items = self.order_repo.list_items_for_order(session, source.id)
        lines = [
            {"product_id": it.product_id, "quantity": it.quantity}
            for it in items
            if it.product_id is not None
        ]
        if not lines:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order has no reorderable items",
            )
        payload = OrderCreate(
            user_id=source.user_id,
            items=lines,
            shipping_address=source.shipping_address,
            notes=f"Pesanan ulang dari #{source.order_number}",
            shipping_cost=source.shipping_cost,
            tax_amount=source.tax_amount,
        )
        return self.create_order(session, payload, message="Pesanan ulang berhasil dibuat.")

    def delete_order(self, session: Session, order_id: int) -> None:
        """
        Delete an order (only cancelled ones).
        """
        order = self._get_or_404(session, order_id)
        if not wf.can_delete(order.status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only cancelled orders can be deleted",
            )
        number = order.order_number
        self.order_repo.delete_order(session, order)
        session.commit()
        logger.info("Order %s deleted", number)

    # -------- Bulk actions --------

    def _load_selection(self, session: Session, order_ids: list[int]) -> list[Order]:
        orders = self.order_repo.get_many(session, order_ids)
        missing = sorted(set(order_ids) - {o.id for o in orders})
        if missing:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"message": "Some orders do not exist", "order_ids": missing},
            )
        return orders

    def bulk_action(self, session: Session, payload: OrderBulkAction) -> BulkActionResult:
        """
        Apply one action to every selected order in a single transaction.

        Validation happens for the whole selection first; if any order
        is not eligible nothing is changed.
        """
        orders = self._load_selection(session, payload.order_ids)
        action = payload.action

        target = wf.bulk_target_status(action, payload.status)
        if target is not None:
            result = self._bulk_status(session, orders, target, action)
        elif action == "delete":
            result = self._bulk_delete(session, orders)
        elif action == "update_tracking":
            result = self._bulk_tracking(session, orders, payload.tracking_number.strip())
        elif action == "generate_invoices":
            result = self._bulk_invoices(session, orders)
        elif action == "send_feedback":
            result = self._bulk_feedback(session, orders)
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Action {action} is not handled here",
            )

        logger.info("Bulk action %s applied to %d orders", action, result.affected)
        return result

    def _ineligible(self, orders: list[Order], reason: str, predicate) -> None:
        bad = [o.order_number for o in orders if not predicate(o)]
        if bad:
            logger.warning("Bulk action refused (%s): %s", reason, ", ".join(bad))
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": reason, "orders": bad},
            )

    def _bulk_status(
        self, session: Session, orders: list[Order], target: str, action: str
    ) -> BulkActionResult:
        self._ineligible(
            orders,
            f"Some orders cannot move to {target}",
            lambda o: wf.can_transition(o.status, target),
        )
        for order in orders:
            self._apply_status(order, target)
            session.add(order)
        session.commit()
        return BulkActionResult(
            message=f"Status {len(orders)} pesanan berhasil diperbarui.",
            action=action,
            affected=len(orders),
            order_ids=[o.id for o in orders],
        )

    def _bulk_delete(self, session: Session, orders: list[Order]) -> BulkActionResult:
        self._ineligible(
            orders,
            "Only cancelled orders can be deleted",
            lambda o: wf.can_delete(o.status),
        )
        ids = [o.id for o in orders]
        for order in orders:
            self.order_repo.delete_order(session, order)
        session.commit()
        return BulkActionResult(
            message="Pesanan berhasil dihapus.",
            action="delete",
            affected=len(ids),
            order_ids=ids,
        )

    def _bulk_tracking(self, session: Session, orders: list[Order], tracking_number: str) -> BulkActionResult:
        self._ineligible(
            orders,
            "Tracking numbers can only be set on processing or shipped orders",
            lambda o: o.status in (wf.PROCESSING, wf.SHIPPED),
        )
        now = datetime.now(timezone.utc)
        for order in orders:
            order.tracking_number = tracking_number
            order.updated_at = now
            session.add(order)
        session.commit()
        return BulkActionResult(
            message="Nomor resi berhasil diperbarui.",
            action="update_tracking",
            affected=len(orders),
            order_ids=[o.id for o in orders],
        )

    def _bulk_invoices(self, session: Session, orders: list[Order]) -> BulkActionResult:
        self._ineligible(
            orders,
            "Invoices are only generated for delivered orders",
            lambda o: o.status == wf.DELIVERED,
        )
        invoices = [self._invoice(session, o) for o in orders]
        return BulkActionResult(
            message=f"{len(invoices)} invoice berhasil dibuat.",
            action="generate_invoices",
            affected=len(invoices),
            order_ids=[o.id for o in orders],
            invoices=invoices,
        )

    def _bulk_feedback(self, session: Session, orders: list[Order]) -> BulkActionResult:
        self._ineligible(
            orders,
            "Feedback surveys are only sent for delivered orders",
            lambda o: o.status == wf.DELIVERED,
        )
        if not email_client.is_configured():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Email service is not configured",
            )

        customers = self.order_repo.customers_for(session, [o.user_id for o in orders])
        sent = 0
        failed: list[str] = []
        for customer in customers.values():
            numbers = ", ".join(o.order_number for o in orders if o.user_id == customer.id)
            try:
                email_client.send_email(
                    to_email=customer.email,
                    subject="Bagaimana pesanan Anda?",
                    text_body=(
                        f"Halo {customer.name},\n\n"
                        f"Terima kasih telah berbelanja. Pesanan {numbers} telah selesai.\n"
                        "Mohon luangkan waktu untuk memberikan penilaian Anda."
                    ),
                )
                sent += 1
            except Exception as exc:
                logger.error("Feedback email to %s failed: %s", customer.email, exc)
                failed.append(customer.email)

        level = "success" if not failed else "warning"
        message = f"Survey dikirim ke {sent} pelanggan."
        if failed:
            message += f" Gagal: {', '.join(failed)}."
        return BulkActionResult(
            success=not failed,
            level=level,
            message=message,
            action="send_feedback",
            affected=sent,
            order_ids=[o.id for o in orders],
        )

    # -------- Export --------

    def export_rows(self, session: Session, orders: list[Order]) -> list[list]:
        customers = self.order_repo.customers_for(session, [o.user_id for o in orders])
        counts = self.order_repo.count_items_for_orders(session, [o.id for o in orders])
        rows = []
        for o in orders:
            customer = customers.get(o.user_id)
            rows.append(
                [
                    o.order_number,
                    customer.name if customer else "N/A",
                    customer.email if customer else "N/A",
                    money(o.total_amount),
                    o.status,
                    o.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                    counts.get(o.id, 0),
                ]
            )
        return rows

    def export_orders(self, session: Session, filters: OrderFilters) -> list[list]:
        orders = self.order_repo.list_for_export(session, **self._query_filters(filters))
        return self.export_rows(session, orders)

    def export_selection(self, session: Session, order_ids: list[int]) -> list[list]:
        orders = self._load_selection(session, order_ids)
        return self.export_rows(session, orders)

    # -------- Helper DTO builders --------

    @staticmethod
    def _customer(user: User | None) -> CustomerSummary | None:
        if user is None:
            return None
        return CustomerSummary(id=user.id, name=user.name, email=user.email, phone=user.phone)

    def to_reads(self, session: Session, orders: list[Order]) -> list[OrderRead]:
        customers = self.order_repo.customers_for(session, [o.user_id for o in orders])
        counts = self.order_repo.count_items_for_orders(session, [o.id for o in orders])
        return [
            self._read(o, customers.get(o.user_id), counts.get(o.id, 0))
            for o in orders
        ]

    def _read(self, order: Order, customer: User | None, items_count: int) -> OrderRead:
        return OrderRead(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            customer=self._customer(customer),
            status=wf.normalize_status(order.status),
            status_label=wf.status_label(order.status),
            total_amount=order.total_amount,
            shipping_cost=order.shipping_cost,
            tax_amount=order.tax_amount,
            tracking_number=order.tracking_number,
            shipping_address=order.shipping_address,
            notes=order.notes,
            items_count=items_count,
            created_at=order.created_at,
            updated_at=order.updated_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
        )

    def _item_reads(self, session: Session, items: list[OrderItem]) -> list[OrderItemRead]:
        names = self.order_repo.product_names(session, [it.product_id for it in items])
        return [
            OrderItemRead(
                id=it.id,
                product_id=it.product_id,
                product_name=names.get(it.product_id, MISSING_PRODUCT_NAME),
                quantity=it.quantity,
                price=it.price,
                subtotal=round(it.quantity * it.price, 2),
            )
            for it in items
        ]

    def _to_detail(self, session: Session, order: Order) -> OrderDetail:
        """
        Compose OrderDetail from ORM rows, including items and subtotal.
        """
        items = self.order_repo.list_items_for_order(session, order.id)
        item_reads = self._item_reads(session, items)
        customer = self.user_repo.get_by_id(session, order.user_id)
        base = self._read(order, customer, len(items))
        return OrderDetail(
            **base.model_dump(exclude={"customer"}),
            customer=base.customer,
            items=item_reads,
            subtotal=round(sum(i.subtotal for i in item_reads), 2),
        )

    def _invoice(self, session: Session, order: Order) -> Invoice:
        detail = self._to_detail(session, order)
        return Invoice(
            order_id=order.id,
            order_number=order.order_number,
            customer_name=detail.customer.name if detail.customer else "N/A",
            customer_email=detail.customer.email if detail.customer else "N/A",
            issued_at=datetime.now(timezone.utc),
            items=detail.items,
            subtotal=detail.subtotal,
            shipping_cost=order.shipping_cost,
            tax_amount=order.tax_amount,
            total_amount=order.total_amount,
        )

# grocery_admin/services/order_workflow.py
"""
Order status lifecycle shared by the API and the admin console.

The transition table below is the only place that decides which status
may follow which. The service layer enforces it on every update, and the
console consults it before asking the admin to confirm a quick action.

    pending    -> processing, cancelled
    processing -> shipped, cancelled
    shipped    -> delivered
    delivered  -> (final)
    cancelled  -> (final)
"""
from dataclasses import dataclass
from typing import Literal

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

PENDING = "pending"
PROCESSING = "processing"
SHIPPED = "shipped"
DELIVERED = "delivered"
CANCELLED = "cancelled"

DEFAULT_STATUS = PENDING

STATUS_LABELS: dict[str, str] = {
    PENDING: "Menunggu Konfirmasi",
    PROCESSING: "Sedang Diproses",
    SHIPPED: "Dikirim",
    DELIVERED: "Selesai",
    CANCELLED: "Dibatalkan",
}

ORDER_STATUSES: tuple[str, ...] = tuple(STATUS_LABELS)

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({PROCESSING, CANCELLED}),
    PROCESSING: frozenset({SHIPPED, CANCELLED}),
    SHIPPED: frozenset({DELIVERED}),
    DELIVERED: frozenset(),
    CANCELLED: frozenset(),
}

# Only cancelled orders may be removed
DELETABLE_STATUSES = frozenset({CANCELLED})


class InvalidTransition(ValueError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition: {current} -> {target}")


def is_valid_status(value: str | None) -> bool:
    return value in TRANSITIONS


def normalize_status(value: str | None) -> str:
    """Map unknown or missing statuses to the default one for display."""
    return value if is_valid_status(value) else DEFAULT_STATUS


def status_label(value: str | None) -> str:
    return STATUS_LABELS[normalize_status(value)]


def can_transition(current: str, target: str) -> bool:
    """
    Same-status updates are allowed (no-op); unknown statuses never are.
    """
    if not is_valid_status(current) or not is_valid_status(target):
        return False
    if current == target:
        return True
    return target in TRANSITIONS[current]


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def can_delete(status: str | None) -> bool:
    return status in DELETABLE_STATUSES


# ---------------------------------------------------------------------------
# Quick actions (one order, one click)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuickAction:
    name: str
    target_status: str | None = None
    note: str | None = None
    # Prompt shown before dispatching; formatted with order_number / customer
    confirm_message: str | None = None
    # PATCH = status change, POST = other mutation, GET = navigation only
    method: str = "PATCH"
    path: str | None = None

    @property
    def is_navigation(self) -> bool:
        return self.method == "GET"


QUICK_ACTIONS: dict[str, dict[str, QuickAction]] = {
    "pending": {
        "approve": QuickAction(
            "approve",
            target_status=PROCESSING,
            note="Pesanan dikonfirmasi",
            confirm_message="Konfirmasi pesanan #{order_number}?",
        ),
        "reject": QuickAction(
            "reject",
            target_status=CANCELLED,
            note="Pesanan ditolak",
            confirm_message="Tolak pesanan #{order_number}?",
        ),
    },
    "processing": {
        "ship": QuickAction(
            "ship",
            target_status=SHIPPED,
            note="Pesanan dikirim",
            confirm_message="Kirim pesanan #{order_number}?",
        ),
        "cancel": QuickAction(
            "cancel",
            target_status=CANCELLED,
            note="Pesanan dibatalkan",
            confirm_message="Batalkan pesanan #{order_number}?",
        ),
    },
    "shipped": {
        "complete": QuickAction(
            "complete",
            target_status=DELIVERED,
            note="Pesanan telah sampai ke tujuan",
            confirm_message="Tandai pesanan #{order_number} sebagai selesai?",
        ),
        "track": QuickAction(
            "track", method="GET", path="/admin/orders/{order_id}/tracking"
        ),
    },
    "completed": {
        "reorder": QuickAction(
            "reorder",
            confirm_message="Buat pesanan ulang untuk pelanggan {customer}?",
            method="POST",
            path="/admin/orders/{order_id}/reorder",
        ),
        "invoice": QuickAction("invoice", method="GET", path="/admin/orders/{order_id}"),
    },
}


# ---------------------------------------------------------------------------
# Bulk actions (many orders, one request)
# ---------------------------------------------------------------------------

# Bulk actions that are plain status transitions
BULK_STATUS_ACTIONS: dict[str, str] = {
    "approve_all": PROCESSING,
    "reject_all": CANCELLED,
    "ship_all": SHIPPED,
    "cancel_all": CANCELLED,
    "complete_all": DELIVERED,
}

BULK_ACTIONS: frozenset[str] = frozenset(
    {
        "update_status",
        "delete",
        "export",
        "update_tracking",
        "generate_invoices",
        "send_feedback",
        *BULK_STATUS_ACTIONS,
    }
)

# Menu offered by each listing page
PAGE_BULK_ACTIONS: dict[str, tuple[str, ...]] = {
    "index": ("update_status", "export", "delete"),
    "pending": ("approve_all", "reject_all", "export"),
    "processing": ("ship_all", "cancel_all", "export"),
    "shipped": ("complete_all", "update_tracking", "export"),
    "completed": ("generate_invoices", "send_feedback", "export"),
}

BULK_ACTION_LABELS: dict[str, str] = {
    "update_status": "Ubah Status",
    "delete": "Hapus",
    "export": "Export",
    "update_tracking": "Update Tracking",
    "generate_invoices": "Generate Invoice",
    "send_feedback": "Kirim Survey",
    "approve_all": "Konfirmasi Semua",
    "reject_all": "Tolak Semua",
    "ship_all": "Kirim Semua",
    "cancel_all": "Batalkan Semua",
    "complete_all": "Selesaikan Semua",
}

# Listing page -> status it shows ("index" shows everything)
PAGE_STATUS: dict[str, str | None] = {
    "index": None,
    "pending": PENDING,
    "processing": PROCESSING,
    "shipped": SHIPPED,
    "completed": DELIVERED,
}


def bulk_target_status(action: str, status: str | None = None) -> str | None:
    """
    Resolve the status a bulk action moves orders to.

    Returns None for actions that don't change status.
    """
    if action == "update_status":
        return status
    return BULK_STATUS_ACTIONS.get(action)


def page_for_status(status: str) -> str | None:
    for page, page_status in PAGE_STATUS.items():
        if page_status == status:
            return page
    return None


def bulk_actions_for_status(status: str) -> tuple[str, ...]:
    """Bulk menu of the listing that shows orders of this status."""
    page = page_for_status(status)
    if page is None:
        # cancelled orders have no dedicated page; they can only be exported or removed
        return ("export", "delete")
    return PAGE_BULK_ACTIONS[page]

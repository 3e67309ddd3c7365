# grocery_admin/console/bulk.py
import logging
from typing import Any

from grocery_admin.console.client import AdminClient, ConsoleError, FlashBag
from grocery_admin.console.guard import PendingMutation
from grocery_admin.services import order_workflow as wf

logger = logging.getLogger(__name__)

USER_BULK_ACTIONS: tuple[str, ...] = (
    "activate",
    "deactivate",
    "delete",
    "send_notification",
    "send_welcome",
    "export",
)

USER_BULK_ACTION_LABELS: dict[str, str] = {
    "activate": "Aktifkan",
    "deactivate": "Nonaktifkan",
    "delete": "Hapus",
    "send_notification": "Kirim Notifikasi",
    "send_welcome": "Kirim Email Selamat Datang",
    "export": "Export",
}

UPDATE_STATUS_PREFIX = "update_status_"


def order_bulk_menu(page: str) -> tuple[str, ...]:
    """
    Bulk menu of an order page; the index page adds one
    `update_status_<status>` entry per status.
    """
    menu: list[str] = []
    for action in wf.PAGE_BULK_ACTIONS[page]:
        menu.append(action)
        if action == "update_status":
            menu.extend(f"{UPDATE_STATUS_PREFIX}{s}" for s in wf.ORDER_STATUSES)
    return tuple(menu)


class BulkActionCoordinator:
    """
    Selection, chosen action and confirmation modal of one listing page.

    The selection only ever holds ids of the rows currently visible.
    execute() sends a single bulk-action request for all of them.
    """

    def __init__(
        self,
        client: AdminClient,
        page: str,
        flash: FlashBag,
        *,
        resource: str = "orders",
        guard: PendingMutation | None = None,
    ):
        if resource == "orders":
            self.menu = order_bulk_menu(page)
        elif resource == "users":
            self.menu = USER_BULK_ACTIONS
        else:
            raise ValueError(f"Unsupported resource: {resource}")
        self.client = client
        self.page = page
        self.flash = flash
        self.resource = resource
        self.guard = guard or PendingMutation()

        self.selected: set[int] = set()
        self.action: str | None = None
        self.options: dict[str, Any] = {}
        self.modal_open = False
        self.last_error: str | None = None
        self.last_result: Any = None

    # ----- Selection -----

    def toggle(self, item_id: int) -> None:
        if item_id in self.selected:
            self.selected.discard(item_id)
        else:
            self.selected.add(item_id)

    def toggle_all(self, visible_ids: list[int]) -> None:
        """Select every visible row, or clear when all are already selected."""
        visible = set(visible_ids)
        if visible and visible <= self.selected:
            self.selected = set()
        else:
            self.selected = visible

    def clear(self) -> None:
        self.selected = set()

    # ----- Action -----

    def choose(self, action: str | None, **options) -> None:
        """
        Pick the action; options carry tracking_number, subject, message.
        """
        if action is not None and action not in self.menu:
            raise ValueError(f"Action '{action}' is not available on the {self.page} page")
        self.action = action
        self.options = options

    @property
    def can_execute(self) -> bool:
        return bool(self.selected) and self.action is not None and not self.guard.busy

    def open_modal(self) -> bool:
        if not self.can_execute:
            return False
        self.modal_open = True
        return True

    def close_modal(self) -> None:
        self.modal_open = False

    def _label(self) -> str:
        if self.action is None:
            return ""
        if self.action.startswith(UPDATE_STATUS_PREFIX):
            target = self.action[len(UPDATE_STATUS_PREFIX):]
            return f"Ubah status ke {wf.status_label(target)}"
        if self.resource == "users":
            return USER_BULK_ACTION_LABELS[self.action]
        return wf.BULK_ACTION_LABELS[self.action]

    @property
    def modal_message(self) -> str:
        noun = "pesanan" if self.resource == "orders" else "user"
        return f"{self._label()} untuk {len(self.selected)} {noun} terpilih?"

    def build_payload(self) -> dict:
        ids_key = "order_ids" if self.resource == "orders" else "user_ids"
        action = self.action
        payload: dict[str, Any] = {}
        if action.startswith(UPDATE_STATUS_PREFIX):
            payload["status"] = action[len(UPDATE_STATUS_PREFIX):]
            action = "update_status"
        payload["action"] = action
        payload[ids_key] = sorted(self.selected)
        payload.update({k: v for k, v in self.options.items() if v is not None})
        return payload

    # ----- Execute -----

    def execute(self) -> Any:
        """
        Send the bulk request. A no-op (returns None) unless can_execute.

        On success the selection, action and modal are reset. On failure
        the selection stays so the admin can retry.
        """
        if not self.can_execute:
            return None

        payload = self.build_payload()
        self.last_error = None
        try:
            result = self.guard.run(self.client.bulk_action, self.resource, payload, flash=self.flash)
        except ConsoleError as exc:
            logger.warning("Bulk %s failed: %s", payload["action"], exc.message)
            self.last_error = exc.message
            self.flash.error(exc.message)
            self.close_modal()
            return None

        if payload["action"] == "export":
            self.flash.success(f"{len(self.selected)} data berhasil diexport.")

        self.last_result = result
        self.clear()
        self.action = None
        self.options = {}
        self.close_modal()
        return result

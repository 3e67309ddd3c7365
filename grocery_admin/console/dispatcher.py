# grocery_admin/console/dispatcher.py
import logging
from typing import Any, Callable

from grocery_admin.console.client import AdminClient, ConsoleError, FlashBag
from grocery_admin.console.guard import PendingMutation
from grocery_admin.services import order_workflow as wf

logger = logging.getLogger(__name__)


class StatusTransitionDispatcher:
    """
    Turns one quick-action click on an order row into at most one request.

    The page owns the FlashBag and the confirm callback (a blocking yes/no
    prompt). Local order data is never changed; the page reloads from the
    server afterwards.
    """

    def __init__(
        self,
        client: AdminClient,
        page: str,
        flash: FlashBag,
        confirm: Callable[[str], bool],
        guard: PendingMutation | None = None,
    ):
        if page not in wf.QUICK_ACTIONS:
            raise ValueError(f"No quick actions for page: {page}")
        self.client = client
        self.page = page
        self.flash = flash
        self.confirm = confirm
        self.guard = guard or PendingMutation()

    @property
    def actions(self) -> dict[str, wf.QuickAction]:
        return wf.QUICK_ACTIONS[self.page]

    def dispatch(self, order: dict, action: str) -> Any:
        """
        Run a quick action for `order` (a row from the listing).

        Returns the response body, or None when nothing was sent
        (declined, illegal transition, busy) or the request failed.
        """
        quick = self.actions.get(action)
        if quick is None:
            raise ValueError(f"Unknown action '{action}' on {self.page} page")

        order_id = order["id"]
        if quick.is_navigation:
            return self._send(self.client.get, quick.path.format(order_id=order_id))

        if quick.target_status is not None:
            current = order.get("status")
            if not wf.can_transition(current, quick.target_status):
                self.flash.warning(
                    f"Pesanan #{order.get('order_number')} tidak dapat diubah dari "
                    f"{wf.status_label(current)} ke {wf.status_label(quick.target_status)}."
                )
                return None

        customer = (order.get("customer") or {}).get("name", "")
        prompt = quick.confirm_message.format(
            order_number=order.get("order_number"), customer=customer
        )
        if not self.confirm(prompt):
            return None

        if quick.target_status is None:
            return self._guarded(self.client.reorder, order_id, flash=self.flash)
        return self._guarded(
            self.client.update_order_status,
            order_id,
            quick.target_status,
            quick.note,
            flash=self.flash,
        )

    def available_actions(self, order: dict) -> list[str]:
        """Row buttons for an order; delete only shows for cancelled orders."""
        current = order.get("status")
        names = [
            name
            for name, quick in self.actions.items()
            if quick.target_status is None
            or (quick.target_status != current and wf.can_transition(current, quick.target_status))
        ]
        if wf.can_delete(order.get("status")):
            names.append("delete")
        return names

    def delete(self, order: dict) -> Any:
        if not wf.can_delete(order.get("status")):
            self.flash.warning("Hanya pesanan yang dibatalkan yang dapat dihapus.")
            return None
        if not self.confirm(f"Hapus pesanan #{order.get('order_number')}?"):
            return None
        return self._guarded(self.client.delete_order, order["id"], flash=self.flash)

    def _guarded(self, fn, *args, **kwargs) -> Any:
        return self._send(self.guard.run, fn, *args, **kwargs)

    def _send(self, fn, *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except ConsoleError as exc:
            logger.warning("Quick action failed: %s", exc.message)
            self.flash.error(exc.message)
            return None

# grocery_admin/console/listing.py
import logging
from typing import Any, Iterable

from grocery_admin.console.client import AdminClient, FlashBag, OperationFailed, ValidationFailed

logger = logging.getLogger(__name__)

EMPTY_MESSAGES = {
    "orders": "Tidak ada pesanan",
    "users": "Tidak ada user",
}


def format_rupiah(amount: float | int | None) -> str:
    """150000 -> "Rp 150.000" (no decimals, dot as thousands separator)."""
    value = round(float(amount or 0))
    sign = "-" if value < 0 else ""
    return f"{sign}Rp {abs(value):,}".replace(",", ".")


def percentage(part: float, whole: float, digits: int = 1) -> float:
    return round(part / whole * 100, digits) if whole else 0.0


def selection_total(rows: Iterable[dict], selected_ids: Iterable[int]) -> float:
    """Sum of total_amount over the selected rows."""
    ids = set(selected_ids)
    return sum(float(r.get("total_amount") or 0) for r in rows if r.get("id") in ids)


class FilterView:
    """
    Filter form + pagination of one listing page.

    The server owns the filter state; the view only keeps the values
    echoed back by the last response, used as form defaults.
    """

    def __init__(
        self,
        client: AdminClient,
        path: str,
        flash: FlashBag,
        *,
        collection: str = "orders",
        empty_message: str | None = None,
    ):
        self.client = client
        self.path = path
        self.flash = flash
        self.collection = collection
        self.empty_message = empty_message or EMPTY_MESSAGES.get(collection, "Tidak ada data")

        self.filters: dict[str, Any] = {}
        self.page = 1
        self.per_page: int | None = None
        self.props: dict[str, Any] = {}
        self.errors: dict[str, list[str]] = {}

    def load(self) -> dict:
        """
        Fetch the current page. On failure the last props are kept.
        """
        params = dict(self.filters)
        params["page"] = self.page
        if self.per_page:
            params["per_page"] = self.per_page
        try:
            props = self.client.get(self.path, **params)
        except ValidationFailed as exc:
            self.errors = exc.errors
            self.flash.error(exc.message)
            return self.props
        except OperationFailed as exc:
            logger.warning("Loading %s failed: %s", self.path, exc.message)
            self.flash.error(exc.message)
            return self.props

        self.errors = {}
        self.props = props
        self.filters = dict(props.get("filters") or {})
        return props

    def submit(self, **filters) -> dict:
        """Apply new filters; always starts again from page 1."""
        self.per_page = filters.pop("per_page", None) or self.per_page
        self.filters = {k: v for k, v in filters.items() if v is not None and v != ""}
        self.page = 1
        return self.load()

    def reset(self) -> dict:
        return self.submit()

    def go_to(self, page: int) -> dict:
        self.page = max(1, page)
        return self.load()

    # ----- Derived view data -----

    @property
    def pagination(self) -> dict:
        return self.props.get(self.collection) or {}

    @property
    def rows(self) -> list[dict]:
        return list(self.pagination.get("data") or [])

    @property
    def visible_ids(self) -> list[int]:
        return [row["id"] for row in self.rows]

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def last_page(self) -> int:
        return int(self.pagination.get("last_page") or 1)

    @property
    def statistics(self) -> dict:
        return self.props.get("statistics") or {}

# grocery_admin/console/client.py
"""
HTTP client used by the admin console pages.

Each method sends exactly one request. Failures are classified as:

  - ValidationFailed: 422, with per-field messages for inline display
  - OperationFailed: any other 4xx/5xx, or a transport error

Successful mutations that carry a `message` push it onto the FlashBag
owned by the calling page.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from grocery_admin.schemas.common import FlashLevel

logger = logging.getLogger(__name__)

FLASH_LEVELS = ("success", "error", "warning", "info")


@dataclass
class FlashMessage:
    level: FlashLevel
    message: str


@dataclass
class FlashBag:
    """
    One-shot messages for the banner at the top of a page.
    """

    messages: list[FlashMessage] = field(default_factory=list)

    def push(self, level: str, message: str) -> None:
        if level not in FLASH_LEVELS:
            level = "info"
        self.messages.append(FlashMessage(level, message))

    def success(self, message: str) -> None:
        self.push("success", message)

    def error(self, message: str) -> None:
        self.push("error", message)

    def warning(self, message: str) -> None:
        self.push("warning", message)

    def info(self, message: str) -> None:
        self.push("info", message)

    def consume(self) -> list[FlashMessage]:
        """Return all pending messages and clear them."""
        messages, self.messages = self.messages, []
        return messages

    def __len__(self) -> int:
        return len(self.messages)


class ConsoleError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationFailed(ConsoleError):
    """422 from the service; `errors` maps field name -> messages."""

    def __init__(self, errors: dict[str, list[str]], status_code: int = 422):
        self.errors = errors
        summary = "; ".join(f"{k}: {', '.join(v)}" for k, v in errors.items())
        super().__init__(summary or "Validation failed", status_code)


class OperationFailed(ConsoleError):
    def __init__(self, message: str, status_code: int | None = None, detail: Any = None):
        super().__init__(message, status_code)
        self.detail = detail


def _field_errors(detail: Any) -> dict[str, list[str]]:
    """
    FastAPI validation detail ([{loc, msg, ...}]) -> {field: [msg, ...]}.
    """
    errors: dict[str, list[str]] = {}
    if isinstance(detail, list):
        for item in detail:
            loc = [str(part) for part in item.get("loc", []) if part not in ("body", "query", "path")]
            name = loc[-1] if loc else "__all__"
            errors.setdefault(name, []).append(item.get("msg", "Invalid value"))
    elif isinstance(detail, dict):
        errors["__all__"] = [str(detail.get("message", detail))]
    elif detail:
        errors["__all__"] = [str(detail)]
    return errors


def _detail_message(detail: Any, fallback: str) -> str:
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict) and "message" in detail:
        extra = detail.get("orders") or detail.get("users")
        return f"{detail['message']}: {', '.join(extra)}" if extra else detail["message"]
    return fallback


class AdminClient:
    """
    Thin wrapper around an httpx.Client (FastAPI's TestClient works too).
    """

    def __init__(self, http: httpx.Client, token: str | None = None):
        self.http = http
        self.token = token

    # ----- Core -----

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
        flash: FlashBag | None = None,
    ) -> Any:
        """
        Send one request and return the decoded body.

        CSV downloads come back as text. Raises ValidationFailed or
        OperationFailed on errors.
        """
        try:
            response = self.http.request(
                method, path, params=params, json=json, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise OperationFailed(f"Tidak dapat terhubung ke server: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            detail = body.get("detail") if isinstance(body, dict) else body
            if response.status_code == 422:
                raise ValidationFailed(_field_errors(detail))
            message = _detail_message(detail, f"Request failed ({response.status_code})")
            logger.warning("%s %s -> %s: %s", method, path, response.status_code, message)
            raise OperationFailed(message, response.status_code, detail)

        if response.headers.get("content-type", "").startswith("text/csv"):
            return response.text

        body = response.json()
        if flash is not None and isinstance(body, dict) and body.get("message"):
            flash.push(body.get("level", "success"), body["message"])
        return body

    def get(self, path: str, **params) -> Any:
        clean = {k: v for k, v in params.items() if v is not None and v != ""}
        return self.request("GET", path, params=clean or None)

    # ----- Auth -----

    def login(self, email: str, password: str) -> dict:
        body = self.request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = body["access_token"]
        return body

    # ----- Orders -----

    def update_order_status(
        self,
        order_id: int,
        status: str,
        notes: str | None = None,
        *,
        flash: FlashBag | None = None,
    ) -> dict:
        payload = {"status": status}
        if notes is not None:
            payload["notes"] = notes
        return self.request("PATCH", f"/admin/orders/{order_id}/status", json=payload, flash=flash)

    def create_order(self, payload: dict, *, flash: FlashBag | None = None) -> dict:
        return self.request("POST", "/admin/orders", json=payload, flash=flash)

    def reorder(self, order_id: int, *, flash: FlashBag | None = None) -> dict:
        return self.request("POST", f"/admin/orders/{order_id}/reorder", flash=flash)

    def delete_order(self, order_id: int, *, flash: FlashBag | None = None) -> dict:
        return self.request("DELETE", f"/admin/orders/{order_id}", flash=flash)

    def bulk_action(self, resource: str, payload: dict, *, flash: FlashBag | None = None) -> Any:
        """POST /admin/{resource}/bulk-action (resource: orders | users)."""
        return self.request("POST", f"/admin/{resource}/bulk-action", json=payload, flash=flash)

    def export_orders(self, **filters) -> str:
        return self.get("/admin/orders/export", **filters)

    def export_report(self, resource: str, **filters) -> str:
        return self.get(f"/admin/reports/export/{resource}", **filters)

    # ----- Users -----

    def create_user(self, payload: dict, *, flash: FlashBag | None = None) -> dict:
        return self.request("POST", "/admin/users", json=payload, flash=flash)

    def update_user(self, user_id: int, payload: dict, *, flash: FlashBag | None = None) -> dict:
        return self.request("PUT", f"/admin/users/{user_id}", json=payload, flash=flash)

    def delete_user(self, user_id: int, *, flash: FlashBag | None = None) -> dict:
        return self.request("DELETE", f"/admin/users/{user_id}", flash=flash)

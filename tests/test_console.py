import json
from datetime import datetime, timezone

import httpx
import pytest

from grocery_admin.console.bulk import BulkActionCoordinator, order_bulk_menu
from grocery_admin.console.client import (
    AdminClient,
    FlashBag,
    OperationFailed,
    ValidationFailed,
)
from grocery_admin.console.dispatcher import StatusTransitionDispatcher
from grocery_admin.console.guard import PendingMutation
from grocery_admin.console.listing import FilterView, format_rupiah, percentage, selection_total

ORDER_1001 = {
    "id": 1,
    "order_number": "1001",
    "status": "pending",
    "total_amount": 150000,
    "customer": {"name": "Budi"},
}


class FakeApi:
    """Records every request and answers with queued (status, body) pairs."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[tuple[int, object]] = []

    def queue(self, status_code, body):
        self.responses.append((status_code, body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body = self.responses.pop(0) if self.responses else (200, {})
        if isinstance(body, str):
            return httpx.Response(status_code, text=body, headers={"content-type": "text/csv"})
        return httpx.Response(status_code, json=body)

    def body(self, index=-1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def admin_client(api):
    http = httpx.Client(transport=httpx.MockTransport(api.handler), base_url="http://admin.test")
    return AdminClient(http, token="t0k3n")


@pytest.fixture
def flash():
    return FlashBag()


def _dispatcher(admin_client, flash, page="pending", answer=True):
    prompts = []

    def confirm(message):
        prompts.append(message)
        return answer

    return StatusTransitionDispatcher(admin_client, page, flash, confirm), prompts


# -------- Flash messages --------


def test_flash_bag_is_one_shot():
    bag = FlashBag()
    bag.success("Tersimpan")
    bag.push("shout", "?")
    assert len(bag) == 2
    messages = bag.consume()
    assert [(m.level, m.message) for m in messages] == [("success", "Tersimpan"), ("info", "?")]
    assert bag.consume() == []


# -------- Client --------


def test_client_sends_token_and_flashes_message(api, admin_client, flash):
    api.queue(200, {"success": True, "level": "success", "message": "Pesanan berhasil dihapus."})
    admin_client.delete_order(7, flash=flash)

    request = api.requests[0]
    assert request.method == "DELETE"
    assert request.url.path == "/admin/orders/7"
    assert request.headers["authorization"] == "Bearer t0k3n"
    assert [m.message for m in flash.consume()] == ["Pesanan berhasil dihapus."]


def test_client_validation_errors(api, admin_client):
    api.queue(422, {"detail": [{"loc": ["body", "email"], "msg": "value is not a valid email address"}]})
    with pytest.raises(ValidationFailed) as exc:
        admin_client.create_user({"email": "nope"})
    assert exc.value.errors == {"email": ["value is not a valid email address"]}


def test_client_operation_errors(api, admin_client):
    api.queue(400, {"detail": {"message": "Some orders cannot move to delivered", "orders": ["ORD1", "ORD2"]}})
    with pytest.raises(OperationFailed) as exc:
        admin_client.bulk_action("orders", {"action": "complete_all", "order_ids": [1, 2]})
    assert exc.value.status_code == 400
    assert exc.value.message == "Some orders cannot move to delivered: ORD1, ORD2"


def test_client_transport_errors():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = AdminClient(httpx.Client(transport=httpx.MockTransport(boom), base_url="http://admin.test"))
    with pytest.raises(OperationFailed):
        client.get("/admin/orders")


def test_client_get_drops_empty_params(api, admin_client):
    admin_client.get("/admin/orders", search="", status=None, page=2)
    assert dict(api.requests[0].url.params) == {"page": "2"}


def test_client_returns_csv_text(api, admin_client):
    api.queue(200, "Order Number\r\nORD1\r\n")
    assert admin_client.export_orders(status="delivered").startswith("Order Number")


def test_client_resource_endpoints(api, admin_client, flash):
    api.queue(201, {"success": True, "level": "success", "message": "Pesanan berhasil dibuat."})
    admin_client.create_order({"user_id": 3, "items": [{"product_id": 5, "quantity": 2}]}, flash=flash)
    admin_client.reorder(4)
    admin_client.update_user(3, {"name": "Budi"})
    admin_client.delete_user(3)
    api.queue(200, "Tanggal,Total\r\n")
    csv_text = admin_client.export_report("sales", start_date="2025-03-01", end_date="")

    sent = [(r.method, r.url.path) for r in api.requests]
    assert sent == [
        ("POST", "/admin/orders"),
        ("POST", "/admin/orders/4/reorder"),
        ("PUT", "/admin/users/3"),
        ("DELETE", "/admin/users/3"),
        ("GET", "/admin/reports/export/sales"),
    ]
    assert api.body(0)["items"] == [{"product_id": 5, "quantity": 2}]
    assert api.body(2) == {"name": "Budi"}
    assert dict(api.requests[-1].url.params) == {"start_date": "2025-03-01"}
    assert csv_text.startswith("Tanggal")
    assert [m.message for m in flash.consume()] == ["Pesanan berhasil dibuat."]


# -------- Quick actions --------


def test_approve_sends_processing_with_note(api, admin_client, flash):
    dispatcher, prompts = _dispatcher(admin_client, flash)
    api.queue(200, {"message": "Status pesanan berhasil diperbarui.", "order": {}})

    dispatcher.dispatch(ORDER_1001, "approve")

    assert prompts == ["Konfirmasi pesanan #1001?"]
    assert len(api.requests) == 1
    assert api.requests[0].method == "PATCH"
    assert api.requests[0].url.path == "/admin/orders/1/status"
    assert api.body() == {"status": "processing", "notes": "Pesanan dikonfirmasi"}
    assert flash.consume()[0].message == "Status pesanan berhasil diperbarui."


def test_reject_sends_cancelled_with_note(api, admin_client, flash):
    dispatcher, prompts = _dispatcher(admin_client, flash)
    dispatcher.dispatch(ORDER_1001, "reject")
    assert prompts == ["Tolak pesanan #1001?"]
    assert api.body() == {"status": "cancelled", "notes": "Pesanan ditolak"}


def test_declined_confirmation_sends_nothing(api, admin_client, flash):
    dispatcher, _ = _dispatcher(admin_client, flash, answer=False)
    assert dispatcher.dispatch(ORDER_1001, "approve") is None
    assert api.requests == []


def test_illegal_transition_is_not_sent(api, admin_client, flash):
    dispatcher, prompts = _dispatcher(admin_client, flash, page="shipped")
    # pending orders must be processed and shipped first
    assert dispatcher.dispatch(ORDER_1001, "complete") is None
    assert prompts == []
    assert api.requests == []
    assert flash.consume()[0].level == "warning"


def test_failed_action_flashes_error(api, admin_client, flash):
    dispatcher, _ = _dispatcher(admin_client, flash)
    api.queue(400, {"detail": "Invalid status transition: cancelled -> processing"})
    assert dispatcher.dispatch(ORDER_1001, "approve") is None
    message = flash.consume()[0]
    assert (message.level, message.message) == ("error", "Invalid status transition: cancelled -> processing")


def test_navigation_and_reorder(api, admin_client, flash):
    shipped, _ = _dispatcher(admin_client, flash, page="shipped")
    shipped.dispatch({**ORDER_1001, "status": "shipped"}, "track")
    assert (api.requests[-1].method, api.requests[-1].url.path) == ("GET", "/admin/orders/1/tracking")

    completed, prompts = _dispatcher(admin_client, flash, page="completed")
    completed.dispatch({**ORDER_1001, "status": "delivered"}, "reorder")
    assert prompts == ["Buat pesanan ulang untuk pelanggan Budi?"]
    assert (api.requests[-1].method, api.requests[-1].url.path) == ("POST", "/admin/orders/1/reorder")


def test_unknown_quick_action(admin_client, flash):
    dispatcher, _ = _dispatcher(admin_client, flash)
    with pytest.raises(ValueError):
        dispatcher.dispatch(ORDER_1001, "ship")


def test_delete_is_only_offered_for_cancelled(api, admin_client, flash):
    dispatcher, prompts = _dispatcher(admin_client, flash)
    assert "delete" not in dispatcher.available_actions(ORDER_1001)
    assert dispatcher.delete(ORDER_1001) is None
    assert api.requests == []

    cancelled = {**ORDER_1001, "status": "cancelled"}
    assert dispatcher.available_actions(cancelled) == ["delete"]
    dispatcher.delete(cancelled)
    assert prompts == ["Hapus pesanan #1001?"]
    assert api.requests[0].method == "DELETE"


def test_guard_blocks_reentrant_mutations():
    guard = PendingMutation()
    calls = []

    def mutate():
        calls.append("outer")
        assert guard.run(lambda: calls.append("inner")) is None
        return "done"

    assert guard.run(mutate) == "done"
    assert calls == ["outer"]
    assert guard.busy is False

    def explode():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        guard.run(explode)
    assert guard.busy is False


def test_one_guard_per_page(api, admin_client, flash):
    guard = PendingMutation()
    dispatcher = StatusTransitionDispatcher(admin_client, "pending", flash, lambda _: True, guard=guard)
    bulk = BulkActionCoordinator(admin_client, "pending", flash, guard=guard)
    bulk.toggle(1)
    bulk.choose("approve_all")

    guard.busy = True
    assert not bulk.can_execute
    assert bulk.execute() is None
    assert dispatcher.dispatch(ORDER_1001, "approve") is None
    assert api.requests == []


# -------- Bulk actions --------


def test_complete_all_sends_one_request(api, admin_client, flash):
    bulk = BulkActionCoordinator(admin_client, "shipped", flash)
    for order_id in (3, 1, 2):
        bulk.toggle(order_id)
    bulk.choose("complete_all")
    assert bulk.open_modal()
    assert bulk.modal_message == "Selesaikan Semua untuk 3 pesanan terpilih?"

    api.queue(200, {"message": "Status 3 pesanan berhasil diperbarui.", "affected": 3})
    bulk.execute()

    assert len(api.requests) == 1
    assert api.requests[0].url.path == "/admin/orders/bulk-action"
    assert api.body() == {"action": "complete_all", "order_ids": [1, 2, 3]}
    assert bulk.selected == set()
    assert bulk.action is None
    assert bulk.modal_open is False
    assert flash.consume()[0].message == "Status 3 pesanan berhasil diperbarui."


def test_bulk_failure_keeps_selection(api, admin_client, flash):
    bulk = BulkActionCoordinator(admin_client, "pending", flash)
    bulk.toggle_all([1, 2])
    bulk.choose("approve_all")
    api.queue(400, {"detail": {"message": "Some orders cannot move to processing", "orders": ["ORD2"]}})

    assert bulk.execute() is None
    assert bulk.selected == {1, 2}
    assert bulk.last_error == "Some orders cannot move to processing: ORD2"
    assert flash.consume()[0].level == "error"


def test_toggle_all_clears_when_everything_is_selected(admin_client, flash):
    bulk = BulkActionCoordinator(admin_client, "index", flash)
    bulk.toggle_all([1, 2, 3])
    assert bulk.selected == {1, 2, 3}
    bulk.toggle_all([1, 2, 3])
    assert bulk.selected == set()
    bulk.toggle(2)
    bulk.toggle_all([1, 2, 3])
    assert bulk.selected == {1, 2, 3}


def test_cannot_execute_without_selection_or_action(api, admin_client, flash):
    bulk = BulkActionCoordinator(admin_client, "index", flash)
    bulk.choose("export")
    assert not bulk.can_execute
    assert bulk.execute() is None

    bulk.choose(None)
    bulk.toggle(1)
    assert not bulk.can_execute
    assert not bulk.open_modal()
    assert api.requests == []


def test_update_status_entries_on_index_page(api, admin_client, flash):
    assert "update_status_shipped" in order_bulk_menu("index")
    bulk = BulkActionCoordinator(admin_client, "index", flash)
    bulk.toggle(5)
    bulk.choose("update_status_shipped")
    assert bulk.modal_message == "Ubah status ke Dikirim untuk 1 pesanan terpilih?"
    bulk.execute()
    assert api.body() == {"status": "shipped", "action": "update_status", "order_ids": [5]}

    with pytest.raises(ValueError):
        bulk.choose("ship_all")


def test_user_bulk_options_are_sent(api, admin_client, flash):
    bulk = BulkActionCoordinator(admin_client, "index", flash, resource="users")
    bulk.toggle(4)
    bulk.choose("send_notification", subject="Promo", message="Diskon 10%")
    assert bulk.modal_message == "Kirim Notifikasi untuk 1 user terpilih?"
    bulk.execute()
    assert api.requests[0].url.path == "/admin/users/bulk-action"
    assert api.body() == {"action": "send_notification", "user_ids": [4], "subject": "Promo", "message": "Diskon 10%"}


def test_bulk_export_flashes_success(api, admin_client, flash):
    bulk = BulkActionCoordinator(admin_client, "index", flash)
    bulk.toggle_all([1, 2])
    bulk.choose("export")
    api.queue(200, "Order Number\r\n")
    assert bulk.execute().startswith("Order Number")
    assert flash.consume()[0].message == "2 data berhasil diexport."


# -------- Listings --------


def test_empty_listing(api, admin_client, flash):
    view = FilterView(admin_client, "/admin/orders", flash)
    api.queue(200, {"orders": {"data": [], "current_page": 1, "last_page": 1, "per_page": 15, "total": 0}, "filters": {}})
    view.load()
    assert view.is_empty
    assert view.empty_message == "Tidak ada pesanan"
    assert view.visible_ids == []


def test_submit_resets_to_first_page(api, admin_client, flash):
    view = FilterView(admin_client, "/admin/orders", flash)
    page = {"orders": {"data": [ORDER_1001], "current_page": 3, "last_page": 4, "per_page": 15, "total": 50}, "filters": {}}
    api.queue(200, page)
    view.go_to(3)
    assert view.last_page == 4

    api.queue(200, {**page, "filters": {"status": "pending"}})
    view.submit(status="pending", search="")
    params = dict(api.requests[-1].url.params)
    assert params == {"status": "pending", "page": "1"}
    assert view.filters == {"status": "pending"}
    assert view.visible_ids == [1]


def test_failed_load_keeps_previous_rows(api, admin_client, flash):
    view = FilterView(admin_client, "/admin/orders", flash)
    api.queue(200, {"orders": {"data": [ORDER_1001]}, "filters": {}})
    view.load()

    api.queue(422, {"detail": [{"loc": ["query", "date_from"], "msg": "Input should be a valid date"}]})
    view.submit(date_from="kemarin")
    assert view.rows == [ORDER_1001]
    assert view.errors == {"date_from": ["Input should be a valid date"]}
    assert flash.consume()[0].level == "error"


def test_formatting_helpers():
    assert format_rupiah(150000) == "Rp 150.000"
    assert format_rupiah(None) == "Rp 0"
    assert percentage(1, 3) == 33.3
    assert percentage(5, 0) == 0.0
    rows = [ORDER_1001, {"id": 2, "total_amount": 50000}]
    assert selection_total(rows, [1, 2]) == 200000


# -------- Against the real API --------


def test_console_against_api(client, admin, buyer, make_order):
    console = AdminClient(client)
    console.login(admin.email, "password")
    order = make_order(buyer, status="pending", total_amount=150000)

    flash = FlashBag()
    view = FilterView(console, "/admin/orders/pending", flash)
    view.load()
    assert view.visible_ids == [order.id]

    dispatcher = StatusTransitionDispatcher(console, "pending", flash, confirm=lambda _: True)
    result = dispatcher.dispatch(view.rows[0], "approve")
    assert result["order"]["status"] == "processing"
    assert result["order"]["notes"] == "Pesanan dikonfirmasi"

    view.load()
    assert view.is_empty

    today = datetime.now(timezone.utc).date().isoformat()
    orders = FilterView(console, "/admin/orders", flash)
    orders.submit(search="", date_from=today, date_to=today)
    assert orders.errors == {}
    assert orders.visible_ids == [order.id]

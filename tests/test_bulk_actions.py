import csv
import io

from sqlmodel import select

from grocery_admin.models.order import Order

URL = "/admin/orders/bulk-action"


def _statuses(session, orders):
    session.expire_all()
    return [session.get(Order, o.id).status for o in orders]


def test_complete_all_moves_every_shipped_order(client, admin_headers, session, buyer, make_order):
    orders = [make_order(buyer, status="shipped", total_amount=10000) for _ in range(3)]

    r = client.post(
        URL,
        headers=admin_headers,
        json={"action": "complete_all", "order_ids": [o.id for o in orders]},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["action"] == "complete_all"
    assert body["affected"] == 3
    assert body["message"] == "Status 3 pesanan berhasil diperbarui."
    assert _statuses(session, orders) == ["delivered"] * 3
    assert all(session.get(Order, o.id).delivered_at is not None for o in orders)


def test_status_change_is_all_or_nothing(client, admin_headers, session, buyer, make_order):
    ok = make_order(buyer, status="pending", total_amount=10000)
    done = make_order(buyer, status="delivered", total_amount=10000, order_number="ORD202501019999")

    r = client.post(
        URL,
        headers=admin_headers,
        json={"action": "update_status", "status": "processing", "order_ids": [ok.id, done.id]},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["orders"] == ["ORD202501019999"]
    assert _statuses(session, [ok, done]) == ["pending", "delivered"]


def test_unknown_ids_are_rejected(client, admin_headers, session, buyer, make_order):
    order = make_order(buyer, status="pending", total_amount=10000)

    r = client.post(URL, headers=admin_headers, json={"action": "approve_all", "order_ids": [order.id, 404]})
    assert r.status_code == 422
    assert r.json()["detail"]["order_ids"] == [404]
    assert _statuses(session, [order]) == ["pending"]


def test_payload_validation(client, admin_headers, buyer, make_order):
    order = make_order(buyer, total_amount=10000)

    def post(payload):
        return client.post(URL, headers=admin_headers, json=payload).status_code

    assert post({"action": "approve_all", "order_ids": []}) == 422
    assert post({"action": "archive", "order_ids": [order.id]}) == 422
    assert post({"action": "update_status", "order_ids": [order.id]}) == 422
    assert post({"action": "update_tracking", "order_ids": [order.id], "tracking_number": "  "}) == 422


def test_bulk_delete_only_cancelled(client, admin_headers, session, buyer, make_order):
    cancelled = [make_order(buyer, status="cancelled", total_amount=1000) for _ in range(2)]
    pending = make_order(buyer, status="pending", total_amount=1000)

    r = client.post(URL, headers=admin_headers, json={"action": "delete", "order_ids": [o.id for o in cancelled + [pending]]})
    assert r.status_code == 400
    session.expire_all()
    assert len(session.exec(select(Order)).all()) == 3

    r = client.post(URL, headers=admin_headers, json={"action": "delete", "order_ids": [o.id for o in cancelled]})
    assert r.status_code == 200
    assert r.json()["affected"] == 2
    session.expire_all()
    assert [o.id for o in session.exec(select(Order)).all()] == [pending.id]


def test_update_tracking(client, admin_headers, session, buyer, make_order):
    shipped = make_order(buyer, status="shipped", total_amount=1000)
    processing = make_order(buyer, status="processing", total_amount=1000)
    pending = make_order(buyer, status="pending", total_amount=1000)

    r = client.post(
        URL,
        headers=admin_headers,
        json={"action": "update_tracking", "tracking_number": "JNE777", "order_ids": [shipped.id, processing.id]},
    )
    assert r.status_code == 200
    session.expire_all()
    assert session.get(Order, shipped.id).tracking_number == "JNE777"
    assert session.get(Order, processing.id).tracking_number == "JNE777"

    r = client.post(
        URL,
        headers=admin_headers,
        json={"action": "update_tracking", "tracking_number": "JNE888", "order_ids": [pending.id]},
    )
    assert r.status_code == 400


def test_generate_invoices(client, admin_headers, buyer, make_product, make_order):
    rice = make_product()
    delivered = make_order(buyer, status="delivered", items=[(rice, 2)])
    pending = make_order(buyer, status="pending", items=[(rice, 1)])

    r = client.post(URL, headers=admin_headers, json={"action": "generate_invoices", "order_ids": [delivered.id]})
    assert r.status_code == 200
    invoice = r.json()["invoices"][0]
    assert invoice["order_number"] == delivered.order_number
    assert invoice["customer_name"] == "Budi Santoso"
    assert invoice["subtotal"] == 100000
    assert invoice["items"][0]["product_name"] == "Beras Premium 5kg"

    r = client.post(URL, headers=admin_headers, json={"action": "generate_invoices", "order_ids": [pending.id]})
    assert r.status_code == 400


def test_send_feedback_without_smtp(client, admin_headers, buyer, make_order):
    order = make_order(buyer, status="delivered", total_amount=1000)
    r = client.post(URL, headers=admin_headers, json={"action": "send_feedback", "order_ids": [order.id]})
    assert r.status_code == 503


def test_send_feedback_groups_orders_per_customer(client, admin_headers, monkeypatch, make_user, make_order):
    from grocery_admin.core import email_client

    siti = make_user(name="Siti Aminah")
    joko = make_user(name="Joko Widodo")
    orders = [
        make_order(siti, status="delivered", total_amount=1000),
        make_order(siti, status="delivered", total_amount=1000),
        make_order(joko, status="delivered", total_amount=1000),
    ]
    sent = []
    monkeypatch.setattr(email_client, "is_configured", lambda: True)
    monkeypatch.setattr(email_client, "send_email", lambda **kwargs: sent.append(kwargs["to_email"]))

    r = client.post(URL, headers=admin_headers, json={"action": "send_feedback", "order_ids": [o.id for o in orders]})
    assert r.status_code == 200
    assert r.json()["affected"] == 2
    assert sorted(sent) == sorted([siti.email, joko.email])


def test_export_selection(client, admin_headers, buyer, make_order):
    first = make_order(buyer, total_amount=12500)
    make_order(buyer, total_amount=99000)

    r = client.post(URL, headers=admin_headers, json={"action": "export", "order_ids": [first.id]})
    assert r.status_code == 200
    rows = list(csv.reader(io.StringIO(r.text)))
    assert len(rows) == 2
    assert rows[1][0] == first.order_number
    assert rows[1][3] == "12500.00"

import csv
import io
from datetime import datetime, timezone

import pytest

URL = "/admin/reports"
MARCH = {"start_date": "2025-03-01", "end_date": "2025-03-31"}


@pytest.fixture
def dataset(buyer, make_user, make_product, make_order):
    """
    March 2025: one delivered (150k), one cancelled (20k), one pending (25k).
    February 2025: one delivered (100k).
    """
    rice = make_product(name="Beras Premium 5kg", price=50000, stock=100, category="Beras")
    oil = make_product(name="Minyak Goreng 2L", price=25000, stock=5, category="Minyak")
    make_user(name="Siti Aminah")

    orders = {
        "delivered": make_order(
            buyer, status="delivered", items=[(rice, 3)],
            created_at=datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc),
        ),
        "cancelled": make_order(
            buyer, status="cancelled", total_amount=20000,
            created_at=datetime(2025, 3, 12, 9, 0, tzinfo=timezone.utc),
        ),
        "pending": make_order(
            buyer, status="pending", items=[(oil, 1)],
            created_at=datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc),
        ),
        "previous": make_order(
            buyer, status="delivered", items=[(oil, 4)],
            created_at=datetime(2025, 2, 15, 9, 0, tzinfo=timezone.utc),
        ),
    }
    return {"rice": rice, "oil": oil, "orders": orders}


def test_reports_require_admin(client):
    assert client.get(URL).status_code == 401


@pytest.mark.parametrize("path", ["", "/sales", "/products", "/customers", "/financial"])
def test_reports_on_empty_database(client, admin_headers, path):
    assert client.get(f"{URL}{path}", headers=admin_headers).status_code == 200


def test_overview(client, admin_headers, dataset):
    body = client.get(URL, headers=admin_headers).json()
    stats = body["statistics"]
    assert stats["total_sales"] == 250000
    assert stats["total_orders"] == 2
    assert stats["total_customers"] == 2
    assert stats["active_products"] == 2

    trend = body["sales_trend"]
    assert len(trend) == 6
    assert trend[-1]["month"] == f"{datetime.now(timezone.utc):%Y-%m}"

    top = body["top_products"]
    assert [p["name"] for p in top] == ["Minyak Goreng 2L", "Beras Premium 5kg"]
    assert top[0]["total_sold"] == 4
    assert top[1]["total_revenue"] == 150000


def test_sales_report(client, admin_headers, dataset):
    body = client.get(f"{URL}/sales", headers=admin_headers, params=MARCH).json()
    assert body["orders"]["total"] == 3
    summary = body["summary"]
    assert summary["total_orders"] == 3
    assert summary["total_revenue"] == 150000
    assert summary["completed_orders"] == 1
    assert summary["average_order_value"] == 150000
    assert summary["pending_orders"] == 1
    assert summary["cancelled_orders"] == 1
    assert body["daily_sales"] == [{"date": "2025-03-10", "total": 150000.0, "orders": 1}]
    assert body["filters"] == {"start_date": "2025-03-01", "end_date": "2025-03-31", "status": "all"}

    pending = client.get(f"{URL}/sales", headers=admin_headers, params={**MARCH, "status": "pending"}).json()
    assert [o["order_number"] for o in pending["orders"]["data"]] == [
        dataset["orders"]["pending"].order_number
    ]


def test_sales_report_rejects_bad_input(client, admin_headers):
    r = client.get(f"{URL}/sales", headers=admin_headers, params={**MARCH, "status": "lost"})
    assert r.status_code == 400
    r = client.get(f"{URL}/sales", headers=admin_headers, params={"start_date": "2025-03-31", "end_date": "2025-03-01"})
    assert r.status_code == 400


def test_sales_report_defaults_to_current_month(client, admin_headers):
    body = client.get(f"{URL}/sales", headers=admin_headers).json()
    today = datetime.now(timezone.utc).date()
    assert body["filters"]["start_date"] == today.replace(day=1).isoformat()
    assert body["orders"]["data"] == []


def test_products_report(client, admin_headers, dataset):
    body = client.get(f"{URL}/products", headers=admin_headers).json()
    by_name = {p["name"]: p for p in body["products"]}
    # cancelled orders are left out, pending ones count
    assert by_name["Minyak Goreng 2L"]["total_sold"] == 5
    assert by_name["Beras Premium 5kg"]["revenue"] == 150000
    summary = body["summary"]
    assert summary["total_products"] == 2
    assert summary["total_sold_items"] == 8
    assert summary["total_revenue"] == 275000
    assert summary["low_stock_products"] == 1

    rice_category = dataset["rice"].category_id
    filtered = client.get(f"{URL}/products", headers=admin_headers, params={"category_id": rice_category}).json()
    assert [p["name"] for p in filtered["products"]] == ["Beras Premium 5kg"]
    assert filtered["products"][0]["category"] == "Beras"


def test_customers_report(client, admin_headers, buyer, dataset):
    body = client.get(f"{URL}/customers", headers=admin_headers).json()
    customers = body["customers"]
    assert [c["name"] for c in customers] == ["Budi Santoso", "Siti Aminah"]
    assert customers[0]["total_orders"] == 4
    assert customers[0]["total_spent"] == 295000
    assert customers[1]["total_orders"] == 0

    assert body["segments"] == {"new": 0, "repeat": 1, "inactive": 1}
    summary = body["summary"]
    assert summary["total_customers"] == 2
    assert summary["active_customers"] == 0
    assert summary["new_customers"] == 2
    assert summary["repeat_customers"] == 1
    assert sum(p["new_customers"] for p in body["acquisition_trend"]) == 2


def test_financial_report(client, admin_headers, dataset):
    body = client.get(f"{URL}/financial", headers=admin_headers, params=MARCH).json()
    revenue = body["revenue"]
    assert revenue["gross_revenue"] == 150000
    assert revenue["tax"] == 15000
    assert revenue["net_revenue"] == 135000
    assert revenue["total_orders"] == 1
    assert revenue["refunds"] == 20000
    # February (previous 31 days) had 100k
    assert revenue["growth_rate"] == 50.0
    assert body["revenue_by_category"] == [{"category": "Beras", "revenue": 150000.0}]
    assert body["daily_revenue"] == [{"date": "2025-03-10", "revenue": 150000.0, "orders": 1}]


def test_financial_growth_without_previous_period(client, admin_headers, dataset):
    body = client.get(
        f"{URL}/financial", headers=admin_headers, params={"start_date": "2025-01-01", "end_date": "2025-01-31"}
    ).json()
    assert body["revenue"]["gross_revenue"] == 0
    assert body["revenue"]["growth_rate"] == 0


def _csv(response):
    return list(csv.reader(io.StringIO(response.text)))


def test_export_sales(client, admin_headers, dataset):
    r = client.get(f"{URL}/export/sales", headers=admin_headers, params=MARCH)
    assert r.status_code == 200
    assert 'filename="sales_report_2025-03-01to2025-03-31.csv"' in r.headers["content-disposition"]
    rows = _csv(r)
    assert rows[0][5] == "Created Date"
    assert sorted(row[4] for row in rows[1:]) == ["Cancelled", "Delivered", "Pending"]


def test_export_financial(client, admin_headers, dataset):
    rows = _csv(client.get(f"{URL}/export/financial", headers=admin_headers, params=MARCH))
    assert rows[0] == ["Date", "Order Number", "Customer", "Gross Revenue", "Tax (10%)", "Net Revenue", "Status"]
    assert rows[1] == [
        "2025-03-10",
        dataset["orders"]["delivered"].order_number,
        "Budi Santoso",
        "150000.00",
        "15000.00",
        "135000.00",
        "Delivered",
    ]


def test_export_products_and_customers(client, admin_headers, dataset):
    products = _csv(client.get(f"{URL}/export/products", headers=admin_headers))
    assert products[0][0] == "Product Name"
    assert len(products) == 3

    customers = _csv(client.get(f"{URL}/export/customers", headers=admin_headers))
    assert customers[1][:2] == ["Budi Santoso", "budi.santoso@mail.com"]
    assert customers[1][7] == "Active"


def test_export_unknown_report(client, admin_headers):
    assert client.get(f"{URL}/export/inventory", headers=admin_headers).status_code == 404

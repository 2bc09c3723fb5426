from io import BytesIO

from openpyxl import load_workbook

from excel import XLSX_MEDIA_TYPE
from security import MALL_ADMIN, SHOP_ADMIN, SUPER_ADMIN

from test_reviews import live_product


def sheet_rows(res):
    assert res.headers["content-type"] == XLSX_MEDIA_TYPE
    assert res.headers["content-disposition"].startswith("attachment; filename=")
    ws = load_workbook(BytesIO(res.content)).active
    return [list(row) for row in ws.iter_rows(values_only=True)]


def test_shops_report_json_and_excel(client, make_user, make_shop):
    _, admin = make_user(SUPER_ADMIN)
    make_shop(instagram="@hub")

    body = client.get("/api/reports/shops", headers=admin).json()
    assert body["total"] == 1
    assert body["shops"][0]["category"]["name"] == "Electronics"

    rows = sheet_rows(client.get("/api/reports/shops?format=excel", headers=admin))
    assert rows[0][:3] == ["Shop Name", "Email", "Mobile"]
    assert rows[1][0] == "Shop 1"
    assert rows[1][rows[0].index("Instagram")] == "@hub"


def test_empty_report_sheet(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    rows = sheet_rows(client.get("/api/reports/shares?format=excel", headers=admin))
    assert rows == [["No data available"]]


def test_orders_report_has_one_row_per_item(client, make_user, make_shop, category_id):
    _, admin = make_user(SUPER_ADMIN)
    shop_id = make_shop()
    first = live_product(shop_id, category_id)
    second = live_product(shop_id, category_id, name="Chair")
    client.post("/api/orders/log", json={"shop_id": shop_id, "items": [
        {"product_id": first, "quantity": 2, "price": 40, "shipping_fees": 5},
        {"product_id": second, "quantity": 1, "price": 10},
    ]}, headers=admin)

    assert client.get("/api/reports/orders", headers=admin).json()["total"] == 1
    rows = sheet_rows(client.get("/api/reports/orders?format=excel", headers=admin))
    header = rows[0]
    assert len(rows) == 3
    items = {row[header.index("Product Name")]: row for row in rows[1:]}
    assert items["Lamp"][header.index("Item Total")] == 90
    assert items["Chair"][header.index("Order Total")] == 100


def test_products_report_is_scoped(client, make_user, make_shop, category_id):
    own = make_shop()
    other = make_shop()
    live_product(own, category_id)
    live_product(other, category_id)
    _, shop_admin = make_user(SHOP_ADMIN, shop_id=own)

    body = client.get("/api/reports/products", headers=shop_admin).json()
    assert body["total"] == 1
    assert body["products"][0]["shop"]["name"] == "Shop 1"
    assert body["products"][0]["average_rating"] == 2.5

    assert client.get("/api/reports/shops", headers=shop_admin).status_code == 403


def test_mall_admin_reports_cover_allowed_categories(client, make_user, make_shop, category_id):
    _, mall_admin = make_user(MALL_ADMIN, allowed_categories=[category_id])
    make_shop()
    body = client.get("/api/reports/shops", headers=mall_admin).json()
    assert body["total"] == 1


def test_subscription_log_report(client, make_user, make_shop):
    _, admin = make_user(SUPER_ADMIN)
    plan = client.post("/api/subscriptions/admin/plans", json={"display_name": "Silver"}, headers=admin).json()
    cycle = client.post("/api/subscriptions/admin/billing-cycles", json={
        "name": "yearly", "display_name": "Yearly", "duration_in_days": 365,
    }, headers=admin).json()
    client.post("/api/subscriptions/admin/shop-subscriptions", json={
        "shop_id": make_shop(), "subscription_plan_id": plan["id"], "billing_cycle_id": cycle["id"],
    }, headers=admin)

    rows = sheet_rows(client.get("/api/reports/subscription-logs?format=excel", headers=admin))
    header = rows[0]
    assert rows[1][header.index("Action")] == "created"
    assert rows[1][header.index("Duration (Days)")] == 365
    assert rows[1][header.index("Billing Cycle")] == "Yearly"


def test_report_format_is_validated(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    assert client.get("/api/reports/shops?format=pdf", headers=admin).status_code == 400

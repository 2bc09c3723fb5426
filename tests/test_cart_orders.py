from database import db
from security import GUEST

from test_reviews import live_product


def test_cart_add_update_remove(client, make_user, make_shop, category_id):
    shop_id = make_shop()
    product_id = live_product(shop_id, category_id)
    _, headers = make_user(GUEST)

    empty = client.get("/api/cart", headers=headers).json()
    assert empty["items"] == []
    assert empty["totals"]["total"] == 0

    client.post("/api/cart/add", json={"product_id": product_id}, headers=headers)
    cart = client.post("/api/cart/add", json={"product_id": product_id, "quantity": 2}, headers=headers).json()
    assert len(cart["items"]) == 1
    item = cart["items"][0]
    assert item["quantity"] == 3
    assert item["product"]["shop"]["name"] == "Shop 1"
    assert cart["totals"] == {"items": 3, "subtotal": 120.0, "shipping": 15.0, "total": 135.0}

    cart = client.put(f"/api/cart/items/{item['id']}", json={"quantity": 1}, headers=headers).json()
    assert cart["items"][0]["quantity"] == 1

    cart = client.put(f"/api/cart/items/{item['id']}", json={"quantity": 0}, headers=headers).json()
    assert cart["items"] == []

    missing = client.delete(f"/api/cart/items/{item['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Item not found in cart"


def test_cart_hides_inactive_products(client, make_user, make_shop, category_id):
    shop_id = make_shop()
    product_id = live_product(shop_id, category_id)
    _, headers = make_user(GUEST)
    client.post("/api/cart/add", json={"product_id": product_id}, headers=headers)

    db["product"].update_one({"name": "Lamp"}, {"$set": {"is_active": False}})
    cart = client.get("/api/cart", headers=headers).json()
    assert cart["items"] == []

    res = client.post("/api/cart/add", json={"product_id": product_id}, headers=headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Product not found or inactive"


def test_clear_cart(client, make_user, make_shop, category_id):
    product_id = live_product(make_shop(), category_id)
    _, headers = make_user(GUEST)
    client.post("/api/cart/add", json={"product_id": product_id}, headers=headers)

    res = client.delete("/api/cart", headers=headers)
    assert res.json()["message"] == "Cart cleared successfully"
    assert res.json()["cart"]["items"] == []


def test_cart_requires_login(client):
    assert client.get("/api/cart").status_code == 401


def test_log_order_and_summary(client, make_user, make_shop, category_id):
    shop_id = make_shop()
    product_id = live_product(shop_id, category_id)
    _, headers = make_user(GUEST)

    res = client.post("/api/orders/log", json={
        "shop_id": shop_id,
        "items": [{"product_id": product_id, "product_name": "Old name", "quantity": 2, "price": 40, "shipping_fees": 5}],
    }, headers={**headers, "X-Forwarded-For": "10.0.0.1, 10.0.0.2"})
    assert res.status_code == 201
    order = res.json()
    assert order["total_amount"] == 90
    assert order["items"][0]["product_name"] == "Lamp"
    assert order["ip"] == "10.0.0.1"
    assert order["channel"] == "whatsapp"

    summary = client.get(f"/api/orders/summary/{order['order_number']}").json()
    assert summary["shopName"] == "Shop 1"
    assert summary["shopWhatsApp"] == "+201000000000"
    assert summary["userEmail"] == "guest1@example.com"
    assert summary["items"][0]["productName"] == "Lamp"
    assert summary["items"][0]["shippingFees"] == 5

    assert client.get("/api/orders/summary/0").status_code == 404


def test_log_order_validation(client, make_user, make_shop):
    _, headers = make_user(GUEST)
    res = client.post("/api/orders/log", json={"shop_id": make_shop(), "items": []}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "shop_id and items array are required"

    missing = client.post("/api/orders/log", json={
        "shop_id": "64b7f0000000000000000000", "items": [{"product_id": "x", "price": 1}],
    }, headers=headers)
    assert missing.status_code == 404


def test_requested_order_number_is_kept_unless_taken(client, make_user, make_shop):
    shop_id = make_shop()
    _, headers = make_user(GUEST)
    body = {"shop_id": shop_id, "items": [{"product_id": "x", "price": 1}], "order_number": "1000"}
    first = client.post("/api/orders/log", json=body, headers=headers).json()
    second = client.post("/api/orders/log", json=body, headers=headers).json()
    assert first["order_number"] == "1000"
    assert second["order_number"] != "1000"


def test_log_share(client, make_user, make_shop):
    shop_id = make_shop()
    res = client.post("/api/shares", json={"type": "shop", "shop_id": shop_id})
    assert res.status_code == 201
    assert res.json()["item_name"] == "Shop 1"
    assert res.json()["channel"] == "unknown"
    assert res.json()["user_id"] is None

    _, headers = make_user(GUEST)
    res = client.post("/api/shares", json={"type": "product", "channel": "facebook"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "product_id is required"

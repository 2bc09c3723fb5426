from database import db
from security import SHOP_ADMIN, SUPER_ADMIN


def setup_catalogue(client, headers):
    plan = client.post("/api/subscriptions/admin/plans", json={"display_name": "Gold", "sort_order": 1}, headers=headers).json()
    monthly = client.post("/api/subscriptions/admin/billing-cycles", json={
        "name": "monthly", "display_name": "Monthly", "duration_in_days": 30,
    }, headers=headers).json()
    client.post(f"/api/subscriptions/admin/plans/{plan['id']}/features",
                json={"title": "Priority listing", "is_highlighted": True}, headers=headers)
    client.post(f"/api/subscriptions/admin/plans/{plan['id']}/limits",
                json={"limit_key": "max_products", "limit_value": 20}, headers=headers)
    client.post(f"/api/subscriptions/admin/plans/{plan['id']}/pricing",
                json={"billing_cycle_id": monthly["id"], "price": 99, "currency": "egp"}, headers=headers)
    return plan, monthly


def test_public_plans(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    plan, monthly = setup_catalogue(client, admin)
    client.post("/api/subscriptions/admin/plans", json={"display_name": "Hidden", "is_active": False}, headers=admin)

    body = client.get("/api/subscriptions/plans").json()
    assert [p["displayName"] for p in body["plans"]] == ["Gold"]
    gold = body["plans"][0]
    assert gold["features"] == [{"title": "Priority listing", "isHighlighted": True}]
    assert gold["limits"] == {"max_products": 20}
    assert gold["pricing"]["monthly"]["price"] == 99
    assert gold["pricing"]["monthly"]["currency"] == "EGP"
    assert [c["name"] for c in body["billingCycles"]] == ["monthly"]


def test_limit_upsert_replaces_value(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    plan, _ = setup_catalogue(client, admin)
    res = client.post(f"/api/subscriptions/admin/plans/{plan['id']}/limits",
                      json={"limit_key": "max_products", "limit_value": -1}, headers=admin)
    assert res.status_code == 200
    assert res.json()["limit_value"] == -1
    assert db["subscriptionplanlimit"].count_documents({"subscription_plan_id": plan["id"]}) == 1

    bad = client.post(f"/api/subscriptions/admin/plans/{plan['id']}/limits",
                      json={"limit_key": "max_products", "limit_value": -2}, headers=admin)
    assert bad.status_code == 400


def test_assign_subscription_conflict_and_overwrite(client, make_user, make_shop):
    _, admin = make_user(SUPER_ADMIN)
    plan, monthly = setup_catalogue(client, admin)
    shop_id = make_shop()
    body = {"shop_id": shop_id, "subscription_plan_id": plan["id"], "billing_cycle_id": monthly["id"]}

    created = client.post("/api/subscriptions/admin/shop-subscriptions", json=body, headers=admin)
    assert created.status_code == 200
    assert created.json()["status"] == "active"
    assert created.json()["shop"]["name"] == "Shop 1"

    conflict = client.post("/api/subscriptions/admin/shop-subscriptions", json=body, headers=admin)
    assert conflict.status_code == 409
    assert conflict.json()["conflict"] is True
    assert conflict.json()["existingSubscription"]["subscription_plan"]["display_name"] == "Gold"

    replaced = client.post("/api/subscriptions/admin/shop-subscriptions", json={**body, "overwrite": True}, headers=admin)
    assert replaced.status_code == 200
    assert db["shopsubscription"].count_documents({"shop_id": shop_id}) == 1

    logs = client.get(f"/api/subscriptions/admin/subscription-logs/shop/{shop_id}", headers=admin).json()
    assert logs["total"] == 2
    assert sorted(log["action"] for log in logs["logs"]) == ["created", "updated"]
    updated = next(log for log in logs["logs"] if log["action"] == "updated")
    assert updated["previous_subscription_plan_name"] == "Gold"
    assert updated["created_by_email"] == "superadmin1@example.com"


def test_plan_with_active_subscription_cannot_be_deleted(client, make_user, make_shop):
    _, admin = make_user(SUPER_ADMIN)
    plan, monthly = setup_catalogue(client, admin)
    client.post("/api/subscriptions/admin/shop-subscriptions", json={
        "shop_id": make_shop(), "subscription_plan_id": plan["id"], "billing_cycle_id": monthly["id"],
    }, headers=admin)

    res = client.delete(f"/api/subscriptions/admin/plans/{plan['id']}", headers=admin)
    assert res.status_code == 400
    assert res.json()["detail"] == "Cannot delete plan with active subscriptions. Deactivate it instead."


def test_plan_delete_cascades(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    plan, _ = setup_catalogue(client, admin)
    res = client.delete(f"/api/subscriptions/admin/plans/{plan['id']}", headers=admin)
    assert res.status_code == 200
    for name in ("subscriptionplanfeature", "subscriptionplanlimit", "subscriptionpricing"):
        assert db[name].count_documents({"subscription_plan_id": plan["id"]}) == 0


def test_shop_subscription_view(client, make_user, make_shop):
    _, admin = make_user(SUPER_ADMIN)
    plan, monthly = setup_catalogue(client, admin)
    shop_id = make_shop()
    _, shop_admin = make_user(SHOP_ADMIN, shop_id=shop_id)

    missing = client.get("/api/subscriptions/shop", headers=shop_admin)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "No active subscription found"
    assert client.get("/api/subscriptions/shop", headers=admin).status_code == 400

    client.post("/api/subscriptions/admin/shop-subscriptions", json={
        "shop_id": shop_id, "subscription_plan_id": plan["id"], "billing_cycle_id": monthly["id"],
    }, headers=admin)
    body = client.get("/api/subscriptions/shop", headers=shop_admin).json()
    assert body["subscription"]["subscription_plan"]["display_name"] == "Gold"
    assert body["limits"] == {"max_products": 20}
    assert body["usage"] == {"max_products": 0}


def test_partner_subscription_activates_with_shop(client, make_user, category_id):
    _, admin = make_user(SUPER_ADMIN)
    plan, monthly = setup_catalogue(client, admin)
    registered = client.post("/api/auth/register-partner", json={
        "name": "Gadget Hub", "email": "hub@example.com", "phone": "+201111111111", "password": "pass1234",
        "address": "Cairo", "category_id": category_id,
        "subscription_plan_id": plan["id"], "billing_cycle_id": monthly["id"],
    }).json()
    shop_id = registered["shopId"]
    assert db["shopsubscription"].find_one({"shop_id": shop_id})["status"] == "pending"

    res = client.patch(f"/api/shops/{shop_id}/activate", headers=admin)
    assert res.status_code == 200
    assert db["shopsubscription"].find_one({"shop_id": shop_id})["status"] == "active"
    assert db["user"].find_one({"email": "hub@example.com"})["is_active"] is True

    logs = client.get("/api/subscriptions/admin/subscription-logs?action=activated", headers=admin).json()
    assert logs["total"] == 1
    assert logs["logs"][0]["shop"]["name"] == "Gadget Hub"


def test_logs_pagination(client, make_user, make_shop):
    _, admin = make_user(SUPER_ADMIN)
    plan, monthly = setup_catalogue(client, admin)
    for _ in range(3):
        client.post("/api/subscriptions/admin/shop-subscriptions", json={
            "shop_id": make_shop(), "subscription_plan_id": plan["id"], "billing_cycle_id": monthly["id"],
        }, headers=admin)

    page = client.get("/api/subscriptions/admin/subscription-logs?limit=2&offset=1", headers=admin).json()
    assert page["total"] == 3
    assert len(page["logs"]) == 2
    assert (page["limit"], page["offset"]) == (2, 1)


def test_admin_endpoints_need_super_admin(client, make_user):
    _, shop_admin = make_user(SHOP_ADMIN)
    assert client.get("/api/subscriptions/admin/plans", headers=shop_admin).status_code == 403

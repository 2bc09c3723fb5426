import pytest
from fastapi import HTTPException

from database import db
from security import GUEST, MALL_ADMIN, SHOP_ADMIN, SUPER_ADMIN, ensure_permission, ensure_role, load_user


def test_ensure_permission_without_user():
    with pytest.raises(HTTPException) as exc:
        ensure_permission(None, "product", "create")
    assert exc.value.status_code == 401


def test_ensure_permission_without_role():
    with pytest.raises(HTTPException) as exc:
        ensure_permission({"id": "x", "role": None}, "product", "create")
    assert exc.value.status_code == 403
    assert exc.value.detail == "Access denied. No role assigned"


def test_ensure_permission_checks_active_permissions():
    user = {"id": "x", "role": {"name": "custom", "permissions": [
        {"name": "product.create", "is_active": True},
        {"name": "product.delete", "is_active": False},
    ]}}
    assert ensure_permission(user, "product", "create") is user
    with pytest.raises(HTTPException) as exc:
        ensure_permission(user, "product", "delete")
    assert exc.value.detail == "Access denied. Insufficient permissions"


def test_ensure_role():
    user = {"id": "x", "role": {"name": SHOP_ADMIN, "permissions": []}}
    assert ensure_role(user, SUPER_ADMIN, SHOP_ADMIN) is user
    with pytest.raises(HTTPException) as exc:
        ensure_role(user, SUPER_ADMIN)
    assert exc.value.status_code == 403


def test_seeded_roles_and_permissions(client):
    assert db["permission"].count_documents({}) == 13 * 7
    super_admin = db["role"].find_one({"name": SUPER_ADMIN})
    assert len(super_admin["permission_ids"]) == 13 * 7
    for name in (MALL_ADMIN, SHOP_ADMIN, GUEST, "Sales"):
        assert db["role"].find_one({"name": name})


def test_loaded_user_carries_permissions(client, make_user):
    user_id, _ = make_user(SHOP_ADMIN)
    user = load_user(user_id)
    names = {p["name"] for p in user["role"]["permissions"]}
    assert "product.create" in names
    assert "shop.delete" not in names


def test_permission_gate_on_users_endpoint(client, make_user):
    _, guest = make_user(GUEST)
    _, admin = make_user(SUPER_ADMIN)
    assert client.get("/api/users").status_code == 401
    assert client.get("/api/users", headers=guest).status_code == 403
    res = client.get("/api/users", headers=admin)
    assert res.status_code == 200
    assert all("password" not in u for u in res.json())


def test_role_delete_blocked_while_assigned(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    make_user(SHOP_ADMIN)
    make_user(SHOP_ADMIN)
    role = db["role"].find_one({"name": SHOP_ADMIN})

    res = client.delete(f"/api/roles/{role['_id']}", headers=admin)
    assert res.status_code == 400
    assert res.json()["detail"] == (
        "Cannot delete role. 2 user(s) are currently assigned to this role. "
        "Please reassign users to another role first."
    )
    assert db["role"].find_one({"_id": role["_id"]})


def test_permission_name_defaults_and_duplicates(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    db["permission"].delete_many({"name": "video.export"})

    res = client.post("/api/permissions", json={"resource": "video", "action": "export"}, headers=admin)
    assert res.status_code == 201
    assert res.json()["name"] == "video.export"

    again = client.post("/api/permissions", json={"resource": "video", "action": "export"}, headers=admin)
    assert again.status_code == 400


def test_validation_errors_are_400(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    res = client.post("/api/permissions", json={"resource": "spaceship", "action": "fly"}, headers=admin)
    assert res.status_code == 400
    assert "resource" in res.json()["detail"]


def test_invalid_object_id(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    res = client.get("/api/roles/not-an-id", headers=admin)
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid id"

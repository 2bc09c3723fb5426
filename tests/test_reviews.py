from bson import ObjectId

from database import db
from security import GUEST, SHOP_ADMIN, SUPER_ADMIN


def live_product(shop_id, category_id, **fields):
    data = {
        "name": "Lamp", "description": "Desk lamp", "image": "lamp.png", "price": 40.0, "shipping_fees": 5.0,
        "shop_id": shop_id, "category_id": category_id, "is_active": True, "is_approved": True,
        "is_hot_offer": False, "priority": 0, "average_rating": 0, "total_reviews": 0,
    }
    data.update(fields)
    return str(db["product"].insert_one(data).inserted_id)


def test_review_lifecycle_updates_rating(client, make_user, make_shop, category_id):
    product_id = live_product(make_shop(), category_id)
    _, first = make_user(GUEST)
    _, second = make_user(SUPER_ADMIN)

    res = client.post(f"/api/reviews/product/{product_id}", json={"rating": 5, "comment": "Great"}, headers=first)
    assert res.status_code == 201
    review_id = res.json()["id"]
    assert res.json()["user"]["email"] == "guest1@example.com"
    client.post(f"/api/reviews/product/{product_id}", json={"rating": 2}, headers=second)

    listing = client.get(f"/api/reviews/product/{product_id}").json()
    assert listing["averageRating"] == 3.5
    assert listing["totalReviews"] == 2
    stored = db["product"].find_one({"_id": ObjectId(product_id)})
    assert (stored["average_rating"], stored["total_reviews"]) == (3.5, 2)

    update = client.put(f"/api/reviews/{review_id}", json={"rating": 4}, headers=first)
    assert update.status_code == 200
    assert client.get(f"/api/products/{product_id}").json()["average_rating"] == 3.0


def test_deleting_last_review_resets_rating(client, make_user, make_shop, category_id):
    product_id = live_product(make_shop(), category_id)
    _, headers = make_user(GUEST)
    review_id = client.post(f"/api/reviews/product/{product_id}", json={"rating": 4}, headers=headers).json()["id"]

    res = client.delete(f"/api/reviews/{review_id}", headers=headers)
    assert res.status_code == 200
    stored = db["product"].find_one({"_id": ObjectId(product_id)})
    assert (stored["average_rating"], stored["total_reviews"]) == (2.5, 0)


def test_one_review_per_user(client, make_user, make_shop, category_id):
    product_id = live_product(make_shop(), category_id)
    _, headers = make_user(GUEST)
    client.post(f"/api/reviews/product/{product_id}", json={"rating": 4}, headers=headers)

    res = client.post(f"/api/reviews/product/{product_id}", json={"rating": 1}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == (
        "You have already reviewed this product. You can only submit one review per product."
    )


def test_review_permissions(client, make_user, make_shop, category_id):
    shop_id = make_shop()
    product_id = live_product(shop_id, category_id)
    hidden_id = live_product(shop_id, category_id, is_active=False)
    _, shop_admin = make_user(SHOP_ADMIN, shop_id=shop_id)
    _, guest = make_user(GUEST)
    _, other_guest = make_user(GUEST)

    anonymous = client.post(f"/api/reviews/product/{product_id}", json={"rating": 3})
    assert anonymous.status_code == 401
    assert anonymous.json()["detail"] == "Authentication required"

    forbidden = client.post(f"/api/reviews/product/{product_id}", json={"rating": 3}, headers=shop_admin)
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "Only guest users and SuperAdmin can create reviews"

    inactive = client.post(f"/api/reviews/product/{hidden_id}", json={"rating": 3}, headers=guest)
    assert inactive.status_code == 404

    out_of_range = client.post(f"/api/reviews/product/{product_id}", json={"rating": 6}, headers=guest)
    assert out_of_range.status_code == 400

    review_id = client.post(f"/api/reviews/product/{product_id}", json={"rating": 3}, headers=guest).json()["id"]
    res = client.delete(f"/api/reviews/{review_id}", headers=other_guest)
    assert res.status_code == 404
    assert res.json()["detail"] == "Review not found"


def test_product_without_reviews_shows_default(client, make_shop, category_id):
    product_id = live_product(make_shop(), category_id)
    listing = client.get(f"/api/reviews/product/{product_id}").json()
    assert listing == {"reviews": [], "averageRating": 2.5, "totalReviews": 0}

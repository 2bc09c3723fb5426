from database import db, utcnow
from subscription_limits import (MAX_HOT_OFFERS, MAX_PRODUCTS, check_limit, check_product_slot, decrement_usage,
                                 get_usage, increment_usage, limits_status, reserve_usage)


def subscribe(shop_id, **limits):
    plan_id = str(db["subscriptionplan"].insert_one({"name": "starter", "display_name": "Starter", "is_active": True}).inserted_id)
    for key, value in limits.items():
        db["subscriptionplanlimit"].insert_one({"subscription_plan_id": plan_id, "limit_key": key, "limit_value": value})
    db["shopsubscription"].insert_one({
        "shop_id": shop_id,
        "subscription_plan_id": plan_id,
        "billing_cycle_id": "cycle",
        "start_date": utcnow(),
        "end_date": utcnow(),
        "status": "active",
    })
    return plan_id


def add_product(shop_id, **fields):
    data = {"name": "Item", "shop_id": shop_id, "is_active": True, "is_approved": True, "is_hot_offer": False}
    data.update(fields)
    return db["product"].insert_one(data).inserted_id


def test_no_subscription_is_unlimited(client, make_shop):
    shop_id = make_shop()
    assert check_limit(shop_id, MAX_PRODUCTS, increment=1000).allowed
    assert reserve_usage(shop_id, MAX_PRODUCTS).allowed
    assert get_usage(shop_id, MAX_PRODUCTS) == 1


def test_missing_limit_row_and_minus_one_are_unlimited(client, make_shop):
    shop_id = make_shop()
    subscribe(shop_id, max_products=-1)
    assert check_limit(shop_id, MAX_PRODUCTS, increment=50).allowed
    assert check_limit(shop_id, MAX_HOT_OFFERS, increment=50).allowed


def test_reserve_usage_refuses_past_limit(client, make_shop):
    shop_id = make_shop()
    subscribe(shop_id, max_products=2)
    assert reserve_usage(shop_id, MAX_PRODUCTS).allowed
    assert reserve_usage(shop_id, MAX_PRODUCTS).allowed

    refused = reserve_usage(shop_id, MAX_PRODUCTS)
    assert not refused.allowed
    assert refused.current == 2
    assert refused.limit == 2
    assert get_usage(shop_id, MAX_PRODUCTS) == 2


def test_zero_limit_blocks_everything(client, make_shop):
    shop_id = make_shop()
    subscribe(shop_id, max_products=0)
    assert not reserve_usage(shop_id, MAX_PRODUCTS).allowed
    assert get_usage(shop_id, MAX_PRODUCTS) == 0


def test_decrement_never_goes_below_zero(client, make_shop):
    shop_id = make_shop()
    decrement_usage(shop_id, MAX_PRODUCTS)
    assert get_usage(shop_id, MAX_PRODUCTS) == 0

    increment_usage(shop_id, MAX_PRODUCTS, 2)
    decrement_usage(shop_id, MAX_PRODUCTS, 5)
    assert get_usage(shop_id, MAX_PRODUCTS) == 0


def test_product_slot_counts_live_products(client, make_shop):
    shop_id = make_shop()
    subscribe(shop_id, max_products=2, max_hot_offers=1)
    add_product(shop_id)
    add_product(shop_id, is_active=False)
    assert check_product_slot(shop_id).allowed

    add_product(shop_id, is_hot_offer=True)
    assert not check_product_slot(shop_id).allowed

    status = limits_status(shop_id)
    assert status == {
        "canCreateProduct": False,
        "canSetHotOffer": False,
        "maxProducts": 2,
        "maxHotOffers": 1,
        "currentProducts": 2,
        "currentHotOffers": 1,
    }

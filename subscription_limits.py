"""
Per-shop subscription limits.

A shop without an active subscription, or whose plan has no row for a limit
key, is unlimited. A limit value of -1 is also unlimited.

Usage counters live in ``subscriptionusage``. ``reserve_usage`` takes a slot
with a single conditional update so concurrent callers cannot push a counter
past its limit.
"""
import logging
from typing import Dict, Optional

from pydantic import BaseModel
from pymongo import ReturnDocument

from database import db, utcnow
from schemas import SubscriptionUsage as SubscriptionUsageSchema

logger = logging.getLogger(__name__)

MAX_PRODUCTS = "max_products"
MAX_HOT_OFFERS = "max_hot_offers"
UNLIMITED = -1

PRODUCTS_LIMIT_MESSAGE = "You reach max number of products to be active based on shop subscription plan"
HOT_OFFERS_LIMIT_MESSAGE = "You reach max number of hot offers for this shop subscription plan"


class LimitCheck(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    current: Optional[int] = None
    limit: Optional[int] = None


def get_active_subscription(shop_id: Optional[str]) -> Optional[Dict]:
    if not shop_id:
        return None
    return db["shopsubscription"].find_one({"shop_id": str(shop_id), "status": "active"})


def get_limit_value(shop_id: Optional[str], limit_key: str) -> Optional[int]:
    """The plan's limit for ``limit_key``; None when nothing restricts the shop."""
    subscription = get_active_subscription(shop_id)
    if not subscription:
        return None
    row = db["subscriptionplanlimit"].find_one({
        "subscription_plan_id": subscription["subscription_plan_id"],
        "limit_key": limit_key,
    })
    if not row:
        return None
    return int(row["limit_value"])


def get_usage(shop_id: str, limit_key: str) -> int:
    row = db["subscriptionusage"].find_one({"shop_id": str(shop_id), "limit_key": limit_key})
    return int(row["current_usage"]) if row else 0


def check_limit(shop_id: Optional[str], limit_key: str, increment: int = 0,
                current_usage: Optional[int] = None) -> LimitCheck:
    """Would ``current + increment`` stay within the plan limit?

    ``current_usage`` overrides the tracked counter, for callers that count
    documents directly.
    """
    limit = get_limit_value(shop_id, limit_key)
    if limit is None or limit == UNLIMITED:
        return LimitCheck(allowed=True, limit=limit)
    current = get_usage(shop_id, limit_key) if current_usage is None else current_usage
    if current + increment > limit:
        return LimitCheck(allowed=False, reason=f"Limit exceeded for {limit_key}", current=current, limit=limit)
    return LimitCheck(allowed=True, current=current, limit=limit)


def increment_usage(shop_id: str, limit_key: str, amount: int = 1) -> None:
    db["subscriptionusage"].update_one(
        {"shop_id": str(shop_id), "limit_key": limit_key},
        {"$inc": {"current_usage": amount}, "$set": {"last_updated": utcnow()}},
        upsert=True,
    )


def decrement_usage(shop_id: str, limit_key: str, amount: int = 1) -> None:
    """Lower a counter, never below zero."""
    result = db["subscriptionusage"].update_one(
        {"shop_id": str(shop_id), "limit_key": limit_key, "current_usage": {"$gte": amount}},
        {"$inc": {"current_usage": -amount}, "$set": {"last_updated": utcnow()}},
    )
    if result.matched_count == 0:
        db["subscriptionusage"].update_one(
            {"shop_id": str(shop_id), "limit_key": limit_key},
            {"$set": {"current_usage": 0, "last_updated": utcnow()}},
            upsert=True,
        )


def reserve_usage(shop_id: str, limit_key: str, amount: int = 1) -> LimitCheck:
    """Atomically take ``amount`` units of a limit, or refuse without changes."""
    limit = get_limit_value(shop_id, limit_key)
    if limit is None or limit == UNLIMITED:
        increment_usage(shop_id, limit_key, amount)
        return LimitCheck(allowed=True, current=get_usage(shop_id, limit_key), limit=limit)

    fresh = SubscriptionUsageSchema(shop_id=str(shop_id), limit_key=limit_key, last_updated=utcnow())
    db["subscriptionusage"].update_one(
        {"shop_id": fresh.shop_id, "limit_key": limit_key},
        {"$setOnInsert": fresh.model_dump(exclude={"shop_id", "limit_key"})},
        upsert=True,
    )
    row = db["subscriptionusage"].find_one_and_update(
        {"shop_id": str(shop_id), "limit_key": limit_key, "current_usage": {"$lte": limit - amount}},
        {"$inc": {"current_usage": amount}, "$set": {"last_updated": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if row is None:
        current = get_usage(shop_id, limit_key)
        logger.info("Shop %s refused %s: %s/%s", shop_id, limit_key, current, limit)
        return LimitCheck(allowed=False, reason=f"Limit exceeded for {limit_key}", current=current, limit=limit)
    return LimitCheck(allowed=True, current=int(row["current_usage"]), limit=limit)


release_usage = decrement_usage


def count_live_products(shop_id: str, hot_offers_only: bool = False, exclude_id=None) -> int:
    """Active and approved products of a shop, the quantity plan limits cap."""
    query = {"shop_id": str(shop_id), "is_active": True, "is_approved": True}
    if hot_offers_only:
        query["is_hot_offer"] = True
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db["product"].count_documents(query)


def check_product_slot(shop_id: str) -> LimitCheck:
    return check_limit(shop_id, MAX_PRODUCTS, increment=1, current_usage=count_live_products(shop_id))


def check_hot_offer_slot(shop_id: str, exclude_id=None) -> LimitCheck:
    current = count_live_products(shop_id, hot_offers_only=True, exclude_id=exclude_id)
    return check_limit(shop_id, MAX_HOT_OFFERS, increment=1, current_usage=current)


def limits_status(shop_id: str) -> Dict:
    max_products = get_limit_value(shop_id, MAX_PRODUCTS)
    max_hot_offers = get_limit_value(shop_id, MAX_HOT_OFFERS)
    current_products = count_live_products(shop_id)
    current_hot_offers = count_live_products(shop_id, hot_offers_only=True)
    return {
        "canCreateProduct": check_product_slot(shop_id).allowed,
        "canSetHotOffer": check_hot_offer_slot(shop_id).allowed,
        "maxProducts": None if max_products in (None, UNLIMITED) else max_products,
        "maxHotOffers": None if max_hot_offers in (None, UNLIMITED) else max_hot_offers,
        "currentProducts": current_products,
        "currentHotOffers": current_hot_offers,
    }

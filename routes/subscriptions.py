import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

from database import create_document, db, get_documents, update_document, utcnow
from helpers import as_utc, date_range_filter, find_by_ref, get_or_404, populate, populate_many, serialize, to_obj_id
from routes.billing_cycles import BillingCyclePayload, BillingCycleUpdate, create_cycle, list_cycles, update_cycle
from schemas import (SubscriptionLog as SubscriptionLogSchema, SubscriptionPlan as SubscriptionPlanSchema,
                     SubscriptionPlanFeature as FeatureSchema, SubscriptionPlanLimit as LimitSchema,
                     SubscriptionPricing as PricingSchema)
from security import SUPER_ADMIN, authorize, get_current_user
from subscription_limits import get_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])

admin_only = authorize(SUPER_ADMIN)


class PlanPayload(BaseModel):
    display_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class PlanUpdate(BaseModel):
    display_name: Optional[str] = None
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class FeaturePayload(BaseModel):
    title: str = Field(..., min_length=1)
    is_highlighted: bool = False
    sort_order: int = 0


class FeatureUpdate(BaseModel):
    title: Optional[str] = None
    is_highlighted: Optional[bool] = None
    sort_order: Optional[int] = None


class LimitPayload(BaseModel):
    limit_key: str = Field(..., min_length=1)
    limit_value: int = Field(..., ge=-1)


class PricingPayload(BaseModel):
    billing_cycle_id: str
    price: float = Field(..., ge=0)
    currency: str = "USD"
    discount: float = Field(0, ge=0, le=100)
    is_active: bool = True


class PricingUpdate(BaseModel):
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class ShopSubscriptionPayload(BaseModel):
    shop_id: str
    subscription_plan_id: str
    billing_cycle_id: str
    start_date: Optional[datetime] = None
    overwrite: bool = False


def plan_limits(plan_id: str) -> Dict[str, int]:
    return {row["limit_key"]: row["limit_value"] for row in db["subscriptionplanlimit"].find({"subscription_plan_id": plan_id})}


def log_subscription_change(action: str, subscription: dict, actor: Optional[dict], previous: Optional[dict] = None) -> str:
    """Append a subscription log entry; entries are never modified."""
    shop = db["shop"].find_one({"_id": to_obj_id(subscription["shop_id"])}) or {}
    plan = find_by_ref("subscriptionplan", subscription["subscription_plan_id"]) or {}
    cycle = find_by_ref("billingcycle", subscription["billing_cycle_id"]) or {}
    entry = SubscriptionLogSchema(
        shop_id=subscription["shop_id"],
        shop_name=shop.get("name", ""),
        action=action,
        subscription_plan_id=subscription["subscription_plan_id"],
        subscription_plan_name=plan.get("display_name", ""),
        billing_cycle_id=subscription["billing_cycle_id"],
        billing_cycle_name=cycle.get("display_name") or cycle.get("name", ""),
        start_date=subscription["start_date"],
        end_date=subscription["end_date"],
        status=subscription["status"],
        created_by=actor["id"] if actor else None,
        created_by_email=actor.get("email", "") if actor else "",
    )
    if previous:
        previous_plan = find_by_ref("subscriptionplan", previous["subscription_plan_id"]) or {}
        previous_cycle = find_by_ref("billingcycle", previous["billing_cycle_id"]) or {}
        entry.previous_subscription_plan_id = previous["subscription_plan_id"]
        entry.previous_subscription_plan_name = previous_plan.get("display_name", "")
        entry.previous_billing_cycle_id = previous["billing_cycle_id"]
        entry.previous_billing_cycle_name = previous_cycle.get("display_name") or previous_cycle.get("name", "")
    logger.info("Subscription %s for shop %s", action, subscription["shop_id"])
    return create_document("subscriptionlog", entry)


def present_logs(query: dict, limit: int, offset: int) -> dict:
    logs = [serialize(l) for l in db["subscriptionlog"].find(query).sort("created_at", -1).skip(offset).limit(limit)]
    populate_many(logs, "shop_id", "shop", "shop", ("name", "email"))
    populate_many(logs, "created_by", "user", "created_by_user", ("email",))
    return {"logs": logs, "total": db["subscriptionlog"].count_documents(query), "limit": limit, "offset": offset}


# Public
@router.get("/plans")
def get_plans():
    cycles = list_cycles(active_only=True)
    plans = []
    for plan in db["subscriptionplan"].find({"is_active": True}).sort("sort_order", 1):
        plan_id = str(plan["_id"])
        features = db["subscriptionplanfeature"].find({"subscription_plan_id": plan_id}).sort("sort_order", 1)
        pricing = {}
        for row in db["subscriptionpricing"].find({"subscription_plan_id": plan_id, "is_active": True}):
            cycle = find_by_ref("billingcycle", row["billing_cycle_id"], ("name", "display_name", "duration_in_days"))
            if cycle:
                pricing[cycle["name"]] = {
                    "price": row["price"],
                    "currency": row["currency"],
                    "discount": row.get("discount", 0),
                    "billingCycle": cycle,
                }
        plans.append({
            "id": plan_id,
            "displayName": plan["display_name"],
            "description": plan.get("description"),
            "features": [{"title": f["title"], "isHighlighted": f.get("is_highlighted", False)} for f in features],
            "limits": plan_limits(plan_id),
            "pricing": pricing,
            "billingCycles": cycles,
        })
    return {"plans": plans, "billingCycles": cycles}


@router.get("/shop")
def get_shop_subscription(shop_id: Optional[str] = None, current_user: dict = Depends(get_current_user)):
    shop_id = current_user.get("shop_id") or shop_id
    if not shop_id:
        raise HTTPException(status_code=400, detail="Shop ID is required")
    subscription = db["shopsubscription"].find_one({"shop_id": shop_id, "status": "active"})
    if not subscription:
        raise HTTPException(status_code=404, detail="No active subscription found")
    subscription = serialize(subscription)
    populate(subscription, "subscription_plan_id", "subscriptionplan", "subscription_plan", ("display_name", "description"))
    populate(subscription, "billing_cycle_id", "billingcycle", "billing_cycle", ("name", "display_name", "duration_in_days"))
    limits = plan_limits(subscription["subscription_plan_id"])
    usage = {row["limit_key"]: row["current_usage"] for row in db["subscriptionusage"].find({"shop_id": shop_id})}
    for key in limits:
        usage.setdefault(key, get_usage(shop_id, key))
    return {"subscription": subscription, "limits": limits, "usage": usage}


# Plans
@router.get("/admin/plans")
def get_all_plans(current_user: dict = Depends(admin_only)):
    return [serialize(p) for p in get_documents("subscriptionplan", sort=[("sort_order", 1)])]


@router.post("/admin/plans", status_code=201)
def create_plan(payload: PlanPayload, current_user: dict = Depends(admin_only)):
    plan_id = create_document("subscriptionplan", SubscriptionPlanSchema(**payload.model_dump(), created_by=current_user["id"]))
    return serialize(db["subscriptionplan"].find_one({"_id": to_obj_id(plan_id)}))


@router.put("/admin/plans/{plan_id}")
def update_plan(plan_id: str, payload: PlanUpdate, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionplan", plan_id, "Plan not found")
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_by"] = current_user["id"]
    return serialize(update_document("subscriptionplan", plan_id, changes))


@router.delete("/admin/plans/{plan_id}")
def delete_plan(plan_id: str, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionplan", plan_id, "Plan not found")
    if db["shopsubscription"].count_documents({"subscription_plan_id": plan_id, "status": "active"}):
        raise HTTPException(status_code=400, detail="Cannot delete plan with active subscriptions. Deactivate it instead.")
    for collection_name in ("subscriptionplanfeature", "subscriptionplanlimit", "subscriptionpricing"):
        db[collection_name].delete_many({"subscription_plan_id": plan_id})
    db["subscriptionplan"].delete_one({"_id": to_obj_id(plan_id)})
    return {"message": "Plan deleted successfully"}


# Features
@router.get("/admin/plans/{plan_id}/features")
def get_plan_features(plan_id: str, current_user: dict = Depends(admin_only)):
    return [serialize(f) for f in db["subscriptionplanfeature"].find({"subscription_plan_id": plan_id}).sort("sort_order", 1)]


@router.post("/admin/plans/{plan_id}/features", status_code=201)
def add_plan_feature(plan_id: str, payload: FeaturePayload, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionplan", plan_id, "Plan not found")
    feature_id = create_document("subscriptionplanfeature", FeatureSchema(subscription_plan_id=plan_id, **payload.model_dump()))
    return serialize(db["subscriptionplanfeature"].find_one({"_id": to_obj_id(feature_id)}))


@router.put("/admin/features/{feature_id}")
def update_plan_feature(feature_id: str, payload: FeatureUpdate, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionplanfeature", feature_id, "Feature not found")
    return serialize(update_document("subscriptionplanfeature", feature_id, payload.model_dump(exclude_unset=True)))


@router.delete("/admin/features/{feature_id}")
def delete_plan_feature(feature_id: str, current_user: dict = Depends(admin_only)):
    result = db["subscriptionplanfeature"].delete_one({"_id": to_obj_id(feature_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Feature not found")
    return {"message": "Feature deleted successfully"}


# Limits
@router.get("/admin/plans/{plan_id}/limits")
def get_plan_limits(plan_id: str, current_user: dict = Depends(admin_only)):
    return [serialize(l) for l in db["subscriptionplanlimit"].find({"subscription_plan_id": plan_id})]


@router.post("/admin/plans/{plan_id}/limits")
def set_plan_limit(plan_id: str, payload: LimitPayload, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionplan", plan_id, "Plan not found")
    limit = LimitSchema(subscription_plan_id=plan_id, **payload.model_dump())
    now = utcnow()
    row = db["subscriptionplanlimit"].find_one_and_update(
        {"subscription_plan_id": plan_id, "limit_key": limit.limit_key},
        {
            "$set": {"limit_value": limit.limit_value, "updated_by": current_user["id"], "updated_at": now},
            "$setOnInsert": {"created_by": current_user["id"], "created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return serialize(row)


@router.delete("/admin/limits/{limit_id}")
def delete_plan_limit(limit_id: str, current_user: dict = Depends(admin_only)):
    result = db["subscriptionplanlimit"].delete_one({"_id": to_obj_id(limit_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Limit not found")
    return {"message": "Limit deleted successfully"}


# Billing cycles
@router.get("/admin/billing-cycles")
def get_billing_cycles(current_user: dict = Depends(admin_only)):
    return list_cycles()


@router.post("/admin/billing-cycles", status_code=201)
def create_billing_cycle(payload: BillingCyclePayload, current_user: dict = Depends(admin_only)):
    return create_cycle(payload, current_user)


@router.put("/admin/billing-cycles/{cycle_id}")
def update_billing_cycle(cycle_id: str, payload: BillingCycleUpdate, current_user: dict = Depends(admin_only)):
    return update_cycle(cycle_id, payload, current_user)


# Pricing
@router.get("/admin/plans/{plan_id}/pricing")
def get_plan_pricing(plan_id: str, current_user: dict = Depends(admin_only)):
    rows = [serialize(p) for p in db["subscriptionpricing"].find({"subscription_plan_id": plan_id})]
    return populate_many(rows, "billing_cycle_id", "billingcycle", "billing_cycle", ("name", "display_name", "duration_in_days"))


@router.post("/admin/plans/{plan_id}/pricing")
def set_plan_pricing(plan_id: str, payload: PricingPayload, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionplan", plan_id, "Plan not found")
    get_or_404("billingcycle", payload.billing_cycle_id, "Billing cycle not found")
    pricing = PricingSchema(subscription_plan_id=plan_id, **{**payload.model_dump(), "currency": payload.currency.upper()})
    now = utcnow()
    row = db["subscriptionpricing"].find_one_and_update(
        {"subscription_plan_id": plan_id, "billing_cycle_id": pricing.billing_cycle_id},
        {
            "$set": {
                **pricing.model_dump(exclude={"subscription_plan_id", "billing_cycle_id"}),
                "updated_by": current_user["id"],
                "updated_at": now,
            },
            "$setOnInsert": {"created_by": current_user["id"], "created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return serialize(row)


@router.put("/admin/pricing/{pricing_id}")
def update_plan_pricing(pricing_id: str, payload: PricingUpdate, current_user: dict = Depends(admin_only)):
    get_or_404("subscriptionpricing", pricing_id, "Pricing not found")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("currency"):
        changes["currency"] = changes["currency"].upper()
    changes["updated_by"] = current_user["id"]
    return serialize(update_document("subscriptionpricing", pricing_id, changes))


# Shop subscriptions
@router.get("/admin/shop-subscriptions")
def get_shop_subscriptions(current_user: dict = Depends(admin_only)):
    rows = [serialize(s) for s in db["shopsubscription"].find().sort("created_at", -1)]
    populate_many(rows, "shop_id", "shop", "shop", ("name", "email"))
    populate_many(rows, "subscription_plan_id", "subscriptionplan", "subscription_plan", ("display_name",))
    return populate_many(rows, "billing_cycle_id", "billingcycle", "billing_cycle", ("name", "display_name"))


@router.post("/admin/shop-subscriptions")
def set_shop_subscription(payload: ShopSubscriptionPayload, current_user: dict = Depends(admin_only)):
    shop = get_or_404("shop", payload.shop_id, "Shop not found")
    plan = get_or_404("subscriptionplan", payload.subscription_plan_id, "Subscription plan not found")
    cycle = get_or_404("billingcycle", payload.billing_cycle_id, "Billing cycle not found")

    previous = db["shopsubscription"].find_one({"shop_id": payload.shop_id})
    start = as_utc(payload.start_date) if payload.start_date else utcnow()
    end = start + timedelta(days=cycle["duration_in_days"])

    if previous and previous.get("status") == "active" and not payload.overwrite:
        current_start, current_end = as_utc(previous["start_date"]), as_utc(previous["end_date"])
        if current_start <= start <= current_end:
            return JSONResponse(status_code=409, content=jsonable_encoder({
                "conflict": True,
                "detail": "The start date overlaps with an existing active subscription plan",
                "existingSubscription": {
                    "id": str(previous["_id"]),
                    "subscription_plan": find_by_ref("subscriptionplan", previous["subscription_plan_id"], ("display_name",)),
                    "billing_cycle": find_by_ref("billingcycle", previous["billing_cycle_id"], ("name", "display_name")),
                    "start_date": current_start,
                    "end_date": current_end,
                    "status": previous["status"],
                },
                "newSubscription": {
                    "subscription_plan": {"id": str(plan["_id"]), "display_name": plan["display_name"]},
                    "billing_cycle": {"id": str(cycle["_id"]), "display_name": cycle["display_name"]},
                    "start_date": start,
                    "end_date": end,
                },
            }))

    now = utcnow()
    subscription = db["shopsubscription"].find_one_and_update(
        {"shop_id": payload.shop_id},
        {
            "$set": {
                "subscription_plan_id": payload.subscription_plan_id,
                "billing_cycle_id": payload.billing_cycle_id,
                "start_date": start,
                "end_date": end,
                "status": "active",
                "updated_by": current_user["id"],
                "updated_at": now,
            },
            "$setOnInsert": {"created_by": current_user["id"], "created_at": now, "scheduled_downgrade": None},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    log_subscription_change("updated" if previous else "created", subscription, current_user, previous)
    subscription = serialize(subscription)
    subscription["shop"] = {"id": str(shop["_id"]), "name": shop["name"]}
    return subscription


# Logs
@router.get("/admin/subscription-logs")
def get_all_subscription_logs(shop_id: Optional[str] = None, action: Optional[str] = None,
                              from_date: Optional[str] = None, to_date: Optional[str] = None,
                              limit: int = 100, offset: int = 0, current_user: dict = Depends(admin_only)):
    query = date_range_filter(from_date, to_date, whole_day=True)
    if shop_id:
        query["shop_id"] = shop_id
    if action:
        query["action"] = action
    return present_logs(query, limit, offset)


@router.get("/admin/subscription-logs/shop/{shop_id}")
def get_shop_subscription_logs(shop_id: str, action: Optional[str] = None, from_date: Optional[str] = None,
                               to_date: Optional[str] = None, limit: int = 50, offset: int = 0,
                               current_user: dict = Depends(admin_only)):
    get_or_404("shop", shop_id, "Shop not found")
    query = date_range_filter(from_date, to_date, whole_day=True)
    query["shop_id"] = shop_id
    if action:
        query["action"] = action
    return present_logs(query, limit, offset)

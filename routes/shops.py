import logging
from datetime import timedelta
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from database import create_document, db, update_document, utcnow
from helpers import (get_or_404, ilike, is_egyptian_phone, parse_bool, parse_number, parse_string_list,
                     populate, populate_many, serialize, to_obj_id)
from ratings import attach_ratings
from routes.subscriptions import log_subscription_change
from schemas import Shop as ShopSchema
from scoping import Scope, get_scope
from security import SHOP_ADMIN, check_permission, role_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shops", tags=["shops"])

PHONE_FORMAT = "Phone number must be in format: +20XXXXXXXXXX (12 digits including country code)"


class ShopPayload(BaseModel):
    name: str
    email: EmailStr
    mobile: str
    whatsapp: str
    category_id: str
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None
    priority: Union[int, str, None] = None
    product_types: Union[List[str], str, None] = None


class ShopUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    mobile: Optional[str] = None
    whatsapp: Optional[str] = None
    category_id: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None
    priority: Union[int, str, None] = None
    product_types: Union[List[str], str, None] = None


def validate_phones(data: dict) -> None:
    for field, label in (("mobile", "Mobile"), ("whatsapp", "WhatsApp")):
        if field in data and not is_egyptian_phone(data[field]):
            raise HTTPException(status_code=400, detail=f"{label}: {PHONE_FORMAT}")


def coerce_shop_fields(data: dict) -> dict:
    if "priority" in data:
        data["priority"] = max(parse_number(data["priority"], int, 0), 0)
    if "product_types" in data:
        data["product_types"] = parse_string_list(data["product_types"])
    if data.get("email"):
        data["email"] = data["email"].lower()
    return data


def present(shop: dict) -> dict:
    shop = serialize(shop)
    populate(shop, "category_id", "category", "category", ("name",))
    return shop


def scoped_shop(shop_id: str, scope: Scope) -> dict:
    shop = get_or_404("shop", shop_id, "Shop not found")
    if not scope.allows_shop(shop):
        raise HTTPException(status_code=403, detail="Access denied")
    return shop


@router.get("")
def list_shops(category: Optional[str] = None, is_active: Optional[str] = None, search: Optional[str] = None,
               scope: Scope = Depends(get_scope)):
    query = dict(scope.shop_filter())
    if category:
        query["category_id"] = category
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    if search:
        query["$or"] = [{"name": ilike(search)}, {"email": ilike(search)}]
    shops = [serialize(s) for s in db["shop"].find(query).sort([("priority", -1), ("created_at", -1)])]
    return populate_many(shops, "category_id", "category", "category", ("name",))


@router.get("/share/{share_link}")
def get_shop_by_share_link(share_link: str):
    shop = db["shop"].find_one({"share_link": share_link, "is_active": True})
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")
    shop = present(shop)
    products = [serialize(p) for p in db["product"].find({"shop_id": shop["id"], "is_active": True})
                .sort([("priority", -1), ("created_at", -1)])]
    populate_many(products, "category_id", "category", "category", ("name",))
    return {"shop": shop, "products": attach_ratings(products)}


@router.get("/{shop_id}")
def get_shop(shop_id: str, scope: Scope = Depends(get_scope)):
    return present(scoped_shop(shop_id, scope))


@router.post("", status_code=201)
def create_shop(payload: ShopPayload, current_user: dict = Depends(check_permission("shop", "create"))):
    data = coerce_shop_fields(payload.model_dump(exclude_none=True))
    validate_phones(data)
    get_or_404("category", data["category_id"], "Category not found")
    if db["shop"].find_one({"email": data["email"]}):
        raise HTTPException(status_code=400, detail="Shop with this email already exists")
    shop_id = create_document("shop", ShopSchema(**data, created_by=current_user["id"]))
    update_document("shop", shop_id, {"share_link": f"shop-{shop_id}"})
    if role_name(current_user) == SHOP_ADMIN and not current_user.get("shop_id"):
        update_document("user", current_user["id"], {"shop_id": shop_id})
    return present(db["shop"].find_one({"_id": to_obj_id(shop_id)}))


@router.put("/{shop_id}")
def update_shop(shop_id: str, payload: ShopUpdate, current_user: dict = Depends(check_permission("shop", "update"))):
    scoped_shop(shop_id, Scope.for_user(current_user))
    changes = coerce_shop_fields(payload.model_dump(exclude_unset=True))
    validate_phones(changes)
    if changes.get("category_id"):
        get_or_404("category", changes["category_id"], "Category not found")
    changes["updated_by"] = current_user["id"]
    return present(update_document("shop", shop_id, changes))


@router.delete("/{shop_id}")
def delete_shop(shop_id: str, current_user: dict = Depends(check_permission("shop", "delete"))):
    shop = scoped_shop(shop_id, Scope.for_user(current_user))
    product_ids = [str(p["_id"]) for p in db["product"].find({"shop_id": shop_id}, {"_id": 1})]
    db["shop"].delete_one({"_id": shop["_id"]})
    db["product"].delete_many({"shop_id": shop_id})
    db["review"].delete_many({"product_id": {"$in": product_ids}})
    db["subscriptionusage"].delete_many({"shop_id": shop_id})
    logger.info("Deleted shop %s with %d products", shop_id, len(product_ids))
    return {"message": "Shop deleted successfully"}


@router.patch("/{shop_id}/activate")
def activate_shop(shop_id: str, current_user: dict = Depends(check_permission("shop", "activate"))):
    shop = scoped_shop(shop_id, Scope.for_user(current_user))
    now = utcnow()
    shop = update_document("shop", shop_id, {
        "is_active": True,
        "is_approved": True,
        "approved_by": current_user["id"],
        "approved_at": now,
        "updated_by": current_user["id"],
    })
    if shop.get("created_by"):
        owner = db["user"].find_one({"_id": to_obj_id(shop["created_by"])})
        if owner:
            update_document("user", owner["_id"], {"is_active": True})

    subscription = db["shopsubscription"].find_one({"shop_id": shop_id})
    if subscription and subscription.get("status") == "pending":
        cycle = db["billingcycle"].find_one({"_id": to_obj_id(subscription["billing_cycle_id"])})
        if cycle:
            subscription = update_document("shopsubscription", subscription["_id"], {
                "start_date": now,
                "end_date": now + timedelta(days=cycle["duration_in_days"]),
                "status": "active",
                "updated_by": current_user["id"],
            })
            log_subscription_change("activated", subscription, current_user)
    return present(shop)


@router.patch("/{shop_id}/deactivate")
def deactivate_shop(shop_id: str, current_user: dict = Depends(check_permission("shop", "deactivate"))):
    scoped_shop(shop_id, Scope.for_user(current_user))
    return present(update_document("shop", shop_id, {"is_active": False, "updated_by": current_user["id"]}))

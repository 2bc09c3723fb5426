import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from database import create_document, db, update_document, utcnow
from helpers import get_or_404, ilike, parse_bool, parse_number, parse_string_list, populate, populate_many, serialize, to_obj_id
from ratings import attach_ratings
from schemas import Product as ProductSchema
from scoping import Scope, get_scope
from security import MALL_ADMIN, SHOP_ADMIN, SUPER_ADMIN, authorize, check_permission, get_current_user, role_name
from subscription_limits import (HOT_OFFERS_LIMIT_MESSAGE, MAX_PRODUCTS, PRODUCTS_LIMIT_MESSAGE, check_hot_offer_slot,
                                 check_product_slot, limits_status, release_usage, reserve_usage)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

RATING_MESSAGE = "Rating must be a number between 0 and 5"


class ProductPayload(BaseModel):
    """Accepts form-style values ("true", "12.5", "a,b") as well as JSON types."""
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    price: Union[float, str, None] = None
    shop_id: Optional[str] = None
    category_id: Optional[str] = None
    is_hot_offer: Union[bool, str, None] = None
    priority: Union[int, str, None] = None
    shipping_title: Optional[str] = None
    shipping_description: Optional[str] = None
    shipping_fees: Union[float, str, None] = None
    warranty_title: Optional[str] = None
    warranty_description: Optional[str] = None
    average_rating: Union[float, str, None] = None
    total_reviews: Optional[int] = None
    product_type: Union[List[str], str, None] = None


class ActivatePayload(BaseModel):
    image_quality_comment: Optional[str] = None


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def validate_product(data: dict, creating: bool) -> None:
    errors = []
    if (creating or "name" in data) and _blank(data.get("name")):
        errors.append("Product name is required")
    if (creating or "description" in data) and _blank(data.get("description")):
        errors.append("Product description is required")
    if creating and _blank(data.get("image")):
        errors.append("Product image is required")
    if creating or "price" in data:
        price = parse_number(data.get("price"))
        if price is None or price <= 0:
            errors.append("Product price is required and must be greater than 0" if creating
                          else "Product price must be greater than 0")
    if (creating or "shop_id" in data) and not data.get("shop_id"):
        errors.append("Shop is required")
    if (creating or "category_id" in data) and not data.get("category_id"):
        errors.append("Category is required")
    if errors:
        raise HTTPException(status_code=400, detail=". ".join(errors))


def coerce_product_fields(data: dict) -> dict:
    if "priority" in data:
        data["priority"] = max(parse_number(data["priority"], int, 0), 0)
    if "price" in data:
        data["price"] = parse_number(data["price"], float, 0)
    if "shipping_fees" in data:
        data["shipping_fees"] = max(parse_number(data["shipping_fees"], float, 0), 0)
    if "is_hot_offer" in data:
        data["is_hot_offer"] = parse_bool(data["is_hot_offer"], False)
    if "product_type" in data:
        data["product_type"] = parse_string_list(data["product_type"])
    if data.get("total_reviews") is None:
        data.pop("total_reviews", None)

    # an explicit rating from an admin counts as one review
    if _blank(data.get("average_rating")):
        data.pop("average_rating", None)
    else:
        rating = parse_number(data["average_rating"])
        if rating is None or not 0 <= rating <= 5:
            raise HTTPException(status_code=400, detail=RATING_MESSAGE)
        data["average_rating"] = rating
        if not data.get("total_reviews"):
            data["total_reviews"] = 1
    return data


def present(product: dict) -> dict:
    product = serialize(product)
    populate(product, "shop_id", "shop", "shop", ("name", "image"))
    populate(product, "category_id", "category", "category", ("name",))
    return attach_ratings([product])[0]


def present_many(products: List[dict]) -> List[dict]:
    products = [serialize(p) for p in products]
    populate_many(products, "shop_id", "shop", "shop", ("name", "image"))
    populate_many(products, "category_id", "category", "category", ("name",))
    return attach_ratings(products)


def scoped_product(product_id: str, scope: Scope, detail: str) -> dict:
    product = get_or_404("product", product_id, "Product not found")
    scope.require_shop(product.get("shop_id"), detail)
    return product


@router.get("")
def list_products(category: Optional[str] = None, shop: Optional[str] = None, is_hot_offer: Optional[str] = None,
                  is_active: Optional[str] = None, search: Optional[str] = None, sort_by: str = "priority",
                  scope: Scope = Depends(get_scope)):
    query = dict(scope.product_filter())
    if shop:
        if not scope.allows_shop_id(shop):
            return []
        query["shop_id"] = shop
    if category:
        query["category_id"] = category
    if is_hot_offer is not None:
        query["is_hot_offer"] = parse_bool(is_hot_offer)
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    if search:
        query["$or"] = [{"name": ilike(search)}, {"description": ilike(search)}]

    if sort_by == "priority":
        sort = [("priority", -1), ("created_at", -1)]
    elif sort_by == "price":
        sort = [("price", 1)]
    else:
        sort = [("created_at", -1)]
    return present_many(db["product"].find(query).sort(sort))


@router.get("/hot-offers")
def get_hot_offers(category: Optional[str] = None, limit: int = 10):
    query = {"is_hot_offer": True, "is_active": True}
    if category:
        query["category_id"] = category
    cursor = db["product"].find(query).sort([("priority", -1), ("created_at", -1)]).limit(max(limit, 1))
    return present_many(cursor)


@router.get("/limits/status")
def get_limits_status(shop_id: Optional[str] = None, current_user: dict = Depends(get_current_user)):
    if role_name(current_user) == SHOP_ADMIN and current_user.get("shop_id"):
        shop_id = current_user["shop_id"]
    if not shop_id:
        raise HTTPException(status_code=400, detail="Shop ID is required")
    Scope.for_user(current_user).require_shop(shop_id)
    return limits_status(shop_id)


@router.get("/{product_id}")
def get_product(product_id: str, scope: Scope = Depends(get_scope)):
    return present(scoped_product(product_id, scope, "Access denied. You can only access products from your shop."))


@router.post("", status_code=201)
def create_product(payload: ProductPayload, current_user: dict = Depends(check_permission("product", "create"))):
    data = payload.model_dump(exclude_unset=True)
    if role_name(current_user) == SHOP_ADMIN:
        data["shop_id"] = current_user.get("shop_id")
    else:
        data["shop_id"] = data.get("shop_id") or current_user.get("shop_id")
    validate_product(data, creating=True)
    data = coerce_product_fields(data)

    shop_id = data["shop_id"]
    get_or_404("shop", shop_id, "Shop not found")
    get_or_404("category", data["category_id"], "Category not found")
    Scope.for_user(current_user).require_shop(shop_id, "Access denied. You cannot add products to this shop.")

    if not check_product_slot(shop_id).allowed:
        raise HTTPException(status_code=400, detail=PRODUCTS_LIMIT_MESSAGE)
    if data.get("is_hot_offer") and not check_hot_offer_slot(shop_id).allowed:
        raise HTTPException(status_code=400, detail=HOT_OFFERS_LIMIT_MESSAGE)

    product_id = create_document("product", ProductSchema(**data, created_by=current_user["id"]))
    return present(db["product"].find_one({"_id": to_obj_id(product_id)}))


@router.put("/{product_id}")
def update_product(product_id: str, payload: ProductPayload,
                   current_user: dict = Depends(check_permission("product", "update"))):
    scope = Scope.for_user(current_user)
    product = scoped_product(product_id, scope, "Access denied. You can only update products from your shop.")
    data = payload.model_dump(exclude_unset=True)

    new_shop = data.get("shop_id")
    if new_shop and new_shop != product["shop_id"]:
        if role_name(current_user) == SHOP_ADMIN:
            raise HTTPException(status_code=403, detail="Access denied. You cannot change the shop for this product.")
        get_or_404("shop", new_shop, "Shop not found")
        scope.require_shop(new_shop, "Access denied. You cannot move this product to that shop.")

    if "image" in data and _blank(data["image"]):
        if not product.get("image"):
            raise HTTPException(status_code=400, detail="Product image is required")
        data.pop("image")
    validate_product(data, creating=False)
    data = coerce_product_fields(data)
    if data.get("category_id"):
        get_or_404("category", data["category_id"], "Category not found")

    shop_id = data.get("shop_id") or product["shop_id"]
    moving = shop_id != product["shop_id"]
    hot_offer = data.get("is_hot_offer", product.get("is_hot_offer"))
    if hot_offer and (moving or not product.get("is_hot_offer")):
        if not check_hot_offer_slot(shop_id, exclude_id=product["_id"]).allowed:
            raise HTTPException(status_code=400, detail=HOT_OFFERS_LIMIT_MESSAGE)

    if moving and product.get("is_active"):
        if not reserve_usage(shop_id, MAX_PRODUCTS).allowed:
            raise HTTPException(status_code=400, detail=PRODUCTS_LIMIT_MESSAGE)
        release_usage(product["shop_id"], MAX_PRODUCTS)

    data["updated_by"] = current_user["id"]
    return present(update_document("product", product["_id"], data))


@router.delete("/{product_id}")
def delete_product(product_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN, MALL_ADMIN, SHOP_ADMIN))):
    product = scoped_product(product_id, Scope.for_user(current_user),
                             "Access denied. You can only delete products from your shop.")
    db["product"].delete_one({"_id": product["_id"]})
    db["review"].delete_many({"product_id": product_id})
    db["cart"].update_many({}, {"$pull": {"items": {"product_id": product_id}}})
    if product.get("is_active"):
        release_usage(product["shop_id"], MAX_PRODUCTS)
    return {"message": "Product deleted successfully"}


@router.patch("/{product_id}/activate")
def activate_product(product_id: str, payload: Optional[ActivatePayload] = None,
                     current_user: dict = Depends(check_permission("product", "activate"))):
    product = scoped_product(product_id, Scope.for_user(current_user), "Access denied")
    if not product.get("is_active"):
        slot = reserve_usage(product["shop_id"], MAX_PRODUCTS)
        if not slot.allowed:
            raise HTTPException(status_code=400, detail=PRODUCTS_LIMIT_MESSAGE)
    changes = {
        "is_active": True,
        "is_approved": True,
        "approved_by": current_user["id"],
        "approved_at": utcnow(),
        "updated_by": current_user["id"],
    }
    if payload and payload.image_quality_comment:
        changes["image_quality_comment"] = payload.image_quality_comment
    logger.info("Product %s activated by %s", product_id, current_user["id"])
    return present(update_document("product", product["_id"], changes))


@router.patch("/{product_id}/deactivate")
def deactivate_product(product_id: str, current_user: dict = Depends(check_permission("product", "deactivate"))):
    product = scoped_product(product_id, Scope.for_user(current_user), "Access denied")
    if product.get("is_active"):
        release_usage(product["shop_id"], MAX_PRODUCTS)
    return present(update_document("product", product["_id"], {"is_active": False, "updated_by": current_user["id"]}))

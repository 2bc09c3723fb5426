from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, update_document
from helpers import get_or_404, parse_bool, populate_many, serialize, to_obj_id
from ratings import attach_ratings
from schemas import Category as CategorySchema
from security import SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryPayload(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    icon: Optional[str] = None
    order: Optional[int] = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    icon: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class OrderEntry(BaseModel):
    id: str
    order: int


class OrderUpdate(BaseModel):
    categories: List[OrderEntry]


def sorted_categories(query: Optional[dict] = None):
    return [serialize(c) for c in db["category"].find(query or {}).sort([("order", 1), ("name", 1)])]


@router.get("")
def list_categories(is_active: Optional[str] = None):
    query = {}
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    return sorted_categories(query)


@router.get("/{category_id}")
def get_category(category_id: str):
    category = serialize(get_or_404("category", category_id, "Category not found"))
    hot_offers = [
        serialize(p) for p in db["product"].find(
            {"category_id": category["id"], "is_hot_offer": True, "is_active": True}
        ).sort("priority", -1).limit(10)
    ]
    populate_many(hot_offers, "shop_id", "shop", "shop", ("name", "image"))
    shops = [serialize(s) for s in db["shop"].find({"category_id": category["id"], "is_active": True}).sort("name", 1)]
    return {"category": category, "hotOffers": attach_ratings(hot_offers), "shops": shops}


@router.post("", status_code=201)
def create_category(payload: CategoryPayload, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    data = payload.model_dump()
    if data["order"] is None:
        last = db["category"].find_one(sort=[("order", -1)])
        data["order"] = last["order"] + 1 if last else 0
    category = CategorySchema(**data, created_by=current_user["id"])
    category_id = create_document("category", category)
    return serialize(db["category"].find_one({"_id": to_obj_id(category_id)}))


@router.patch("/order/update")
def update_order(payload: OrderUpdate, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    for entry in payload.categories:
        update_document("category", to_obj_id(entry.id), {"order": entry.order, "updated_by": current_user["id"]})
    return sorted_categories()


@router.put("/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    get_or_404("category", category_id, "Category not found")
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_by"] = current_user["id"]
    return serialize(update_document("category", category_id, changes))


@router.delete("/{category_id}")
def delete_category(category_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    result = db["category"].delete_one({"_id": to_obj_id(category_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully"}


@router.patch("/{category_id}/toggle")
def toggle_category(category_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    category = get_or_404("category", category_id, "Category not found")
    return serialize(update_document("category", category_id, {
        "is_active": not category.get("is_active", True),
        "updated_by": current_user["id"],
    }))

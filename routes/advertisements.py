from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, update_document, utcnow
from helpers import get_or_404, ilike, parse_bool, populate, serialize, to_obj_id
from schemas import Advertisement as AdvertisementSchema
from security import SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/advertisements", tags=["advertisements"])

admin_only = authorize(SUPER_ADMIN)


class AdvertisementPayload(BaseModel):
    image: Optional[str] = None
    category_ids: List[str] = Field(default_factory=list)
    side: Literal["left", "right"]
    is_active: bool = True
    show_in_home: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    redirect_url: Optional[str] = None
    priority: int = Field(0, ge=0)


class AdvertisementUpdate(BaseModel):
    image: Optional[str] = None
    category_ids: Optional[List[str]] = None
    side: Optional[Literal["left", "right"]] = None
    is_active: Optional[bool] = None
    show_in_home: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    redirect_url: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0)


def present(ad: dict) -> dict:
    ad = serialize(ad)
    ad["categories"] = [
        serialize(c) for c in db["category"].find(
            {"_id": {"$in": [to_obj_id(c) for c in ad.get("category_ids", [])]}}, {"name": 1}
        )
    ]
    return populate(ad, "created_by", "user", "created_by_user", ("email",))


def validate_categories(category_ids: List[str]) -> None:
    if not category_ids:
        raise HTTPException(status_code=400, detail="At least one category is required")


def live_window(now: datetime) -> dict:
    """Ads without dates are always live; dated ads only inside their window."""
    return {"$and": [
        {"$or": [{"start_date": None}, {"start_date": {"$lte": now}}]},
        {"$or": [{"end_date": None}, {"end_date": {"$gte": now}}]},
    ]}


@router.get("")
def list_advertisements(category: Optional[str] = None, side: Optional[str] = None, is_active: Optional[str] = None,
                        search: Optional[str] = None, current_user: dict = Depends(admin_only)):
    query = {}
    if category:
        query["category_ids"] = category
    if side:
        query["side"] = side
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    if search:
        query["redirect_url"] = ilike(search)
    return [present(a) for a in db["advertisement"].find(query).sort([("priority", -1), ("created_at", -1)])]


@router.get("/active")
def get_active_advertisements(category: Optional[str] = None, side: Optional[str] = None, home: Optional[str] = None):
    query = {"is_active": True, **live_window(utcnow())}
    if parse_bool(home):
        query["show_in_home"] = True
    if category:
        query["category_ids"] = category
    if side:
        query["side"] = side
    ads = [present(a) for a in db["advertisement"].find(query).sort([("priority", -1), ("created_at", -1)])]
    return [ad for ad in ads if ad.get("image")]


@router.get("/{ad_id}")
def get_advertisement(ad_id: str, current_user: dict = Depends(admin_only)):
    return present(get_or_404("advertisement", ad_id, "Advertisement not found"))


@router.post("", status_code=201)
def create_advertisement(payload: AdvertisementPayload, current_user: dict = Depends(admin_only)):
    validate_categories(payload.category_ids)
    if not payload.image:
        raise HTTPException(status_code=400, detail="Image file or image URL is required")
    ad_id = create_document("advertisement", AdvertisementSchema(**payload.model_dump(), created_by=current_user["id"]))
    return present(db["advertisement"].find_one({"_id": to_obj_id(ad_id)}))


@router.put("/{ad_id}")
def update_advertisement(ad_id: str, payload: AdvertisementUpdate, current_user: dict = Depends(admin_only)):
    get_or_404("advertisement", ad_id, "Advertisement not found")
    changes = payload.model_dump(exclude_unset=True)
    if "category_ids" in changes:
        validate_categories(changes["category_ids"])
    if "image" in changes and not changes["image"]:
        changes.pop("image")
    changes["updated_by"] = current_user["id"]
    return present(update_document("advertisement", ad_id, changes))


@router.delete("/{ad_id}")
def delete_advertisement(ad_id: str, current_user: dict = Depends(admin_only)):
    result = db["advertisement"].delete_one({"_id": to_obj_id(ad_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Advertisement not found")
    return {"message": "Advertisement deleted successfully"}


@router.patch("/{ad_id}/toggle-status")
def toggle_advertisement(ad_id: str, current_user: dict = Depends(admin_only)):
    ad = get_or_404("advertisement", ad_id, "Advertisement not found")
    return present(update_document("advertisement", ad_id, {
        "is_active": not ad.get("is_active", True),
        "updated_by": current_user["id"],
    }))

import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, update_document
from helpers import get_or_404, parse_bool, serialize, to_obj_id
from schemas import LocalizedText, Page as PageSchema
from security import SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/pages", tags=["pages"])

admin_only = authorize(SUPER_ADMIN)

SLUG_RE = re.compile(r"[^a-z0-9]+")


class PagePayload(BaseModel):
    slug: str = Field(..., min_length=1)
    title: LocalizedText
    content: LocalizedText = Field(default_factory=LocalizedText)
    is_active: bool = True
    order: int = 0


class PageUpdate(BaseModel):
    slug: Optional[str] = None
    title: Optional[LocalizedText] = None
    content: Optional[LocalizedText] = None
    is_active: Optional[bool] = None
    order: Optional[int] = None


class OrderEntry(BaseModel):
    id: str
    order: int


class OrderUpdate(BaseModel):
    pages: List[OrderEntry]


def normalize_slug(slug: str) -> str:
    return SLUG_RE.sub("-", slug.strip().lower()).strip("-")


def ensure_unique_slug(slug: str, exclude=None) -> None:
    query = {"slug": slug}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    if db["page"].find_one(query):
        raise HTTPException(status_code=400, detail="Page with this slug already exists")


def sorted_pages(query: Optional[dict] = None):
    return [serialize(p) for p in db["page"].find(query or {}).sort([("order", 1), ("title.en", 1)])]


@router.get("")
def list_pages(is_active: Optional[str] = None):
    query = {}
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    return sorted_pages(query)


@router.get("/slug/{slug}")
def get_page_by_slug(slug: str):
    page = db["page"].find_one({"slug": slug, "is_active": True})
    if not page:
        raise HTTPException(status_code=404, detail="Page not found")
    return serialize(page)


@router.get("/{page_id}")
def get_page(page_id: str, current_user: dict = Depends(admin_only)):
    return serialize(get_or_404("page", page_id, "Page not found"))


@router.post("", status_code=201)
def create_page(payload: PagePayload, current_user: dict = Depends(admin_only)):
    data = payload.model_dump()
    data["slug"] = normalize_slug(data["slug"])
    if not data["slug"]:
        raise HTTPException(status_code=400, detail="Slug is required")
    ensure_unique_slug(data["slug"])
    page_id = create_document("page", PageSchema(**data, created_by=current_user["id"]))
    return serialize(db["page"].find_one({"_id": to_obj_id(page_id)}))


@router.patch("/order/update")
def update_order(payload: OrderUpdate, current_user: dict = Depends(admin_only)):
    for entry in payload.pages:
        update_document("page", to_obj_id(entry.id), {"order": entry.order, "updated_by": current_user["id"]})
    return sorted_pages()


@router.put("/{page_id}")
def update_page(page_id: str, payload: PageUpdate, current_user: dict = Depends(admin_only)):
    page = get_or_404("page", page_id, "Page not found")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "slug" in changes:
        changes["slug"] = normalize_slug(changes["slug"])
        ensure_unique_slug(changes["slug"], exclude=page["_id"])
    changes["updated_by"] = current_user["id"]
    return serialize(update_document("page", page_id, changes))


@router.delete("/{page_id}")
def delete_page(page_id: str, current_user: dict = Depends(admin_only)):
    result = db["page"].delete_one({"_id": to_obj_id(page_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Page not found")
    return {"message": "Page deleted successfully"}


@router.patch("/{page_id}/toggle")
def toggle_page(page_id: str, current_user: dict = Depends(admin_only)):
    page = get_or_404("page", page_id, "Page not found")
    return serialize(update_document("page", page_id, {
        "is_active": not page.get("is_active", True),
        "updated_by": current_user["id"],
    }))

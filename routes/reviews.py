from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, update_document
from helpers import populate_many, serialize, to_obj_id
from ratings import recalculate_product_rating, summarize_reviews
from schemas import Review as ReviewSchema
from security import GUEST, SUPER_ADMIN, get_current_user, get_optional_user, role_name

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewPayload(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None


def owned_review(review_id: str, current_user: dict) -> dict:
    review = db["review"].find_one({"_id": to_obj_id(review_id), "user_id": current_user["id"]})
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


@router.get("/product/{product_id}")
def get_product_reviews(product_id: str):
    reviews = [serialize(r) for r in db["review"].find({"product_id": product_id, "is_active": True}).sort("created_at", -1)]
    populate_many(reviews, "user_id", "user", "user", ("email",))
    average, total = summarize_reviews(product_id)
    return {"reviews": reviews, "averageRating": average, "totalReviews": total}


@router.post("/product/{product_id}", status_code=201)
def create_review(product_id: str, payload: ReviewPayload, current_user: Optional[dict] = Depends(get_optional_user)):
    if not current_user:
        raise HTTPException(status_code=401, detail="Authentication required")
    if role_name(current_user) not in (GUEST, SUPER_ADMIN):
        raise HTTPException(status_code=403, detail="Only guest users and SuperAdmin can create reviews")
    product = db["product"].find_one({"_id": to_obj_id(product_id), "is_active": True})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found or inactive")
    if db["review"].find_one({"product_id": product_id, "user_id": current_user["id"]}):
        raise HTTPException(
            status_code=400,
            detail="You have already reviewed this product. You can only submit one review per product.",
        )
    review_id = create_document("review", ReviewSchema(product_id=product_id, user_id=current_user["id"], **payload.model_dump()))
    recalculate_product_rating(product_id)
    review = serialize(db["review"].find_one({"_id": to_obj_id(review_id)}))
    review["user"] = {"id": current_user["id"], "email": current_user["email"]}
    return review


@router.put("/{review_id}")
def update_review(review_id: str, payload: ReviewUpdate, current_user: dict = Depends(get_current_user)):
    review = owned_review(review_id, current_user)
    review = update_document("review", review["_id"], payload.model_dump(exclude_unset=True, exclude_none=True))
    recalculate_product_rating(review["product_id"])
    return serialize(review)


@router.delete("/{review_id}")
def delete_review(review_id: str, current_user: dict = Depends(get_current_user)):
    review = owned_review(review_id, current_user)
    db["review"].delete_one({"_id": review["_id"]})
    recalculate_product_rating(review["product_id"])
    return {"message": "Review deleted successfully"}

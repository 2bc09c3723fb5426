"""
Product rating cache.

``average_rating``/``total_reviews`` on a product are a cache of its active
reviews. Every review mutation calls ``recalculate_product_rating``; reads go
through ``attach_ratings`` which recomputes from the review collection, so a
stale cache never reaches a client.

A product without active reviews is shown at DEFAULT_RATING with zero
reviews, unless an admin stored an explicit rating (total_reviews > 0 and no
review documents), in which case the stored values are kept.
"""
from typing import Dict, List, Tuple

from bson import ObjectId

from database import db, utcnow

DEFAULT_RATING = 2.5


def _aggregate(product_ids: List[str]) -> Dict[str, Tuple[float, int]]:
    pipeline = [
        {"$match": {"product_id": {"$in": product_ids}, "is_active": True}},
        {"$group": {"_id": "$product_id", "average": {"$avg": "$rating"}, "count": {"$sum": 1}}},
    ]
    return {row["_id"]: (round(float(row["average"]), 2), int(row["count"])) for row in db["review"].aggregate(pipeline)}


def summarize_reviews(product_id: str) -> Tuple[float, int]:
    return _aggregate([str(product_id)]).get(str(product_id), (DEFAULT_RATING, 0))


def recalculate_product_rating(product_id: str) -> Dict:
    average, total = summarize_reviews(product_id)
    db["product"].update_one(
        {"_id": ObjectId(str(product_id))},
        {"$set": {"average_rating": average, "total_reviews": total, "updated_at": utcnow()}},
    )
    return {"averageRating": average, "totalReviews": total}


def attach_ratings(products: List[Dict]) -> List[Dict]:
    """Overwrite the cached rating fields of serialized products in place."""
    if not products:
        return products
    summary = _aggregate([p["id"] for p in products])
    for product in products:
        if product["id"] in summary:
            product["average_rating"], product["total_reviews"] = summary[product["id"]]
        elif product.get("total_reviews", 0) > 0:
            product["average_rating"] = round(float(product.get("average_rating") or 0), 2)
        else:
            product["average_rating"], product["total_reviews"] = DEFAULT_RATING, 0
    return products

"""
Row-level visibility of shops and products for the acting user.

A Scope is resolved once per request and every shop/product query builder
merges its filter, so the shopAdmin and mallAdmin rules live only here.
"""
from typing import Dict, List, Literal, Optional

from bson import ObjectId
from fastapi import Depends, HTTPException
from pydantic import BaseModel, Field

from database import db
from security import MALL_ADMIN, SALES, SHOP_ADMIN, get_optional_user, role_name


class Scope(BaseModel):
    kind: Literal["all", "shop", "categories", "creator"] = "all"
    user_id: Optional[str] = None
    shop_id: Optional[str] = None
    category_ids: List[str] = Field(default_factory=list)

    @classmethod
    def for_user(cls, user: Optional[Dict]) -> "Scope":
        name = role_name(user)
        if name == SHOP_ADMIN:
            return cls(kind="shop", user_id=user["id"], shop_id=user.get("shop_id"))
        if name in (MALL_ADMIN, SALES):
            categories = [str(c) for c in user.get("allowed_categories") or []]
            if categories:
                return cls(kind="categories", user_id=user["id"], category_ids=categories)
            return cls(kind="creator", user_id=user["id"])
        return cls(user_id=user.get("id") if user else None)

    @property
    def unrestricted(self) -> bool:
        return self.kind == "all"

    def shop_filter(self) -> Dict:
        if self.kind == "shop":
            if not self.shop_id or not ObjectId.is_valid(self.shop_id):
                return {"_id": {"$in": []}}
            return {"_id": ObjectId(self.shop_id)}
        if self.kind == "categories":
            return {"category_id": {"$in": self.category_ids}}
        if self.kind == "creator":
            return {"created_by": self.user_id}
        return {}

    def shop_ids(self) -> Optional[List[str]]:
        """Visible shop ids, or None when every shop is visible."""
        if self.unrestricted:
            return None
        if self.kind == "shop":
            return [self.shop_id] if self.shop_id else []
        return [str(s["_id"]) for s in db["shop"].find(self.shop_filter(), {"_id": 1})]

    def product_filter(self) -> Dict:
        ids = self.shop_ids()
        if ids is None:
            return {}
        if self.kind == "shop":
            return {"shop_id": self.shop_id} if self.shop_id else {"shop_id": {"$in": []}}
        return {"shop_id": {"$in": ids}}

    def allows_shop(self, shop: Optional[Dict]) -> bool:
        if self.unrestricted:
            return True
        if not shop:
            return False
        shop_id = str(shop.get("_id") or shop.get("id"))
        if self.kind == "shop":
            return shop_id == self.shop_id
        if self.kind == "categories":
            return str(shop.get("category_id")) in self.category_ids
        return shop.get("created_by") == self.user_id

    def allows_shop_id(self, shop_id: Optional[str]) -> bool:
        if self.unrestricted:
            return True
        if self.kind == "shop":
            return bool(shop_id) and shop_id == self.shop_id
        if not shop_id or not ObjectId.is_valid(str(shop_id)):
            return False
        return self.allows_shop(db["shop"].find_one({"_id": ObjectId(str(shop_id))}))

    def require_shop(self, shop_id: Optional[str], detail: str = "Access denied") -> None:
        if not self.allows_shop_id(shop_id):
            raise HTTPException(status_code=403, detail=detail)


def get_scope(current_user=Depends(get_optional_user)) -> Scope:
    return Scope.for_user(current_user)

from typing import Dict, List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, utcnow
from helpers import populate_many, serialize, to_obj_id
from schemas import Cart as CartSchema, CartItem as CartItemSchema
from security import get_current_user

router = APIRouter(prefix="/api/cart", tags=["cart"])

PRODUCT_FIELDS = ("name", "price", "shipping_fees", "image", "is_active", "shop_id")


class AddItemPayload(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateItemPayload(BaseModel):
    quantity: int


def get_or_create_cart(user_id: str) -> Dict:
    cart = db["cart"].find_one({"user_id": user_id})
    if cart is None:
        create_document("cart", CartSchema(user_id=user_id))
        cart = db["cart"].find_one({"user_id": user_id})
    return cart


def save_items(cart: Dict, items: List[Dict]) -> Dict:
    db["cart"].update_one({"_id": cart["_id"]}, {"$set": {"items": items, "updated_at": utcnow()}})
    return db["cart"].find_one({"_id": cart["_id"]})


def present(cart: Dict) -> Dict:
    """Populate products (with shop name and WhatsApp) and compute totals.

    Items whose product was deleted or deactivated are left out.
    """
    cart = serialize(cart)
    items = [dict(item) for item in cart.get("items", [])]
    populate_many(items, "product_id", "product", "product", PRODUCT_FIELDS)
    items = [item for item in items if item["product"] and item["product"].get("is_active")]
    products = [item["product"] for item in items]
    populate_many(products, "shop_id", "shop", "shop", ("name", "whatsapp"))

    subtotal = sum(item["product"]["price"] * item["quantity"] for item in items)
    shipping = sum(item["product"].get("shipping_fees", 0) * item["quantity"] for item in items)
    cart["items"] = items
    cart["totals"] = {
        "items": sum(item["quantity"] for item in items),
        "subtotal": round(subtotal, 2),
        "shipping": round(shipping, 2),
        "total": round(subtotal + shipping, 2),
    }
    return cart


def find_item(cart: Dict, item_id: str) -> int:
    for index, item in enumerate(cart.get("items", [])):
        if item["id"] == item_id:
            return index
    raise HTTPException(status_code=404, detail="Item not found in cart")


@router.get("")
def get_cart(current_user: dict = Depends(get_current_user)):
    return present(get_or_create_cart(current_user["id"]))


@router.post("/add")
def add_to_cart(payload: AddItemPayload, current_user: dict = Depends(get_current_user)):
    product = db["product"].find_one({"_id": to_obj_id(payload.product_id), "is_active": True})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found or inactive")
    cart = get_or_create_cart(current_user["id"])
    items = cart.get("items", [])
    for item in items:
        if item["product_id"] == payload.product_id:
            item["quantity"] += payload.quantity
            break
    else:
        item = CartItemSchema(id=str(ObjectId()), product_id=payload.product_id, quantity=payload.quantity)
        items.append(item.model_dump())
    return present(save_items(cart, items))


@router.put("/items/{item_id}")
def update_cart_item(item_id: str, payload: UpdateItemPayload, current_user: dict = Depends(get_current_user)):
    cart = db["cart"].find_one({"user_id": current_user["id"]})
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    items = cart.get("items", [])
    index = find_item(cart, item_id)
    if payload.quantity <= 0:
        items.pop(index)
    else:
        items[index]["quantity"] = payload.quantity
    return present(save_items(cart, items))


@router.delete("/items/{item_id}")
def remove_from_cart(item_id: str, current_user: dict = Depends(get_current_user)):
    cart = db["cart"].find_one({"user_id": current_user["id"]})
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    items = cart.get("items", [])
    items.pop(find_item(cart, item_id))
    return present(save_items(cart, items))


@router.delete("")
def clear_cart(current_user: dict = Depends(get_current_user)):
    cart = db["cart"].find_one({"user_id": current_user["id"]})
    if not cart:
        return {"message": "Cart cleared successfully", "cart": {"user_id": current_user["id"], "items": []}}
    return {"message": "Cart cleared successfully", "cart": present(save_items(cart, []))}

import logging
import random
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from database import create_document, db
from helpers import find_by_ref, serialize, to_obj_id
from schemas import OrderItem, OrderLog as OrderLogSchema
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItemPayload(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(0, ge=0)
    shipping_fees: float = Field(0, ge=0)


class OrderLogPayload(BaseModel):
    shop_id: Optional[str] = None
    items: List[OrderItemPayload] = Field(default_factory=list)
    total_amount: Optional[float] = None
    order_number: Optional[str] = None


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def new_order_number(requested: Optional[str] = None) -> str:
    """A numeric order number not used by any logged order."""
    number = requested or str(int(time.time() * 1000) + random.randint(0, 999))
    while db["orderlog"].find_one({"order_number": number}):
        number = str(int(time.time() * 1000) + random.randint(0, 9999))
    return number


@router.post("/log", status_code=201)
def log_order(payload: OrderLogPayload, request: Request, current_user: dict = Depends(get_current_user)):
    if not payload.shop_id or not payload.items:
        raise HTTPException(status_code=400, detail="shop_id and items array are required")
    shop = db["shop"].find_one({"_id": to_obj_id(payload.shop_id)}, {"name": 1})
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")

    items = []
    for item in payload.items:
        product = find_by_ref("product", item.product_id, ("name",))
        items.append(OrderItem(
            product_id=item.product_id,
            product_name=product["name"] if product else item.product_name or "",
            quantity=item.quantity,
            price=item.price,
            shipping_fees=item.shipping_fees,
        ))
    total = payload.total_amount
    if not total:
        total = sum((item.price + item.shipping_fees) * item.quantity for item in items)

    order = OrderLogSchema(
        order_number=new_order_number(payload.order_number),
        user_id=current_user["id"],
        user_email=current_user.get("email", ""),
        shop_id=payload.shop_id,
        shop_name=shop["name"],
        items=items,
        total_amount=total,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
    order_id = create_document("orderlog", order)
    logger.info("Order %s logged for shop %s", order.order_number, payload.shop_id)
    return serialize(db["orderlog"].find_one({"_id": to_obj_id(order_id)}))


@router.get("/summary/{order_number}")
def get_order_summary(order_number: str):
    order = db["orderlog"].find_one({"order_number": order_number})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    shop = find_by_ref("shop", order["shop_id"], ("name", "email", "whatsapp")) or {}
    user = find_by_ref("user", order["user_id"], ("email", "phone")) or {}

    items = []
    for item in order["items"]:
        product = find_by_ref("product", item["product_id"], ("name", "image", "price"))
        items.append({
            "product": product,
            "productName": product["name"] if product else item.get("product_name", ""),
            "productImage": product.get("image", "") if product else "",
            "quantity": item["quantity"],
            "price": item["price"],
            "shippingFees": item.get("shipping_fees", 0),
        })
    return {
        "orderNumber": order["order_number"],
        "shopName": shop.get("name") or order.get("shop_name", ""),
        "shopEmail": shop.get("email", ""),
        "shopWhatsApp": shop.get("whatsapp", ""),
        "userEmail": user.get("email") or order.get("user_email", ""),
        "totalAmount": order["total_amount"],
        "createdAt": order["created_at"],
        "items": items,
    }

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from database import create_document, db
from helpers import find_by_ref, serialize, to_obj_id
from routes.orders import client_ip
from schemas import ShareLog as ShareLogSchema
from security import get_optional_user

router = APIRouter(prefix="/api/shares", tags=["shares"])


class SharePayload(BaseModel):
    type: Literal["product", "shop"]
    product_id: Optional[str] = None
    shop_id: Optional[str] = None
    item_name: Optional[str] = None
    channel: Optional[str] = None


@router.post("", status_code=201)
def log_share(payload: SharePayload, request: Request, current_user: Optional[dict] = Depends(get_optional_user)):
    item_id = payload.product_id if payload.type == "product" else payload.shop_id
    if not item_id:
        raise HTTPException(status_code=400, detail=f"{payload.type}_id is required")
    item = find_by_ref(payload.type, item_id, ("name",))

    entry = ShareLogSchema(
        type=payload.type,
        product_id=payload.product_id if payload.type == "product" else None,
        shop_id=payload.shop_id if payload.type == "shop" else None,
        item_name=payload.item_name or (item["name"] if item else ""),
        user_id=current_user["id"] if current_user else None,
        user_email=current_user.get("email", "") if current_user else "",
        channel=payload.channel or "unknown",
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
    share_id = create_document("sharelog", entry)
    return serialize(db["sharelog"].find_one({"_id": to_obj_id(share_id)}))

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, get_documents, update_document
from helpers import get_or_404, serialize, to_obj_id
from schemas import BillingCycle as BillingCycleSchema
from security import SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/billingcycles", tags=["billing cycles"])


class BillingCyclePayload(BaseModel):
    name: Literal["monthly", "yearly"]
    display_name: str
    duration_in_days: int = Field(..., ge=1)
    is_active: bool = True


class BillingCycleUpdate(BaseModel):
    display_name: Optional[str] = None
    duration_in_days: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


def list_cycles(active_only: bool = False):
    query = {"is_active": True} if active_only else {}
    return [serialize(c) for c in get_documents("billingcycle", query, sort=[("duration_in_days", 1)])]


def create_cycle(payload: BillingCyclePayload, actor: dict) -> dict:
    if db["billingcycle"].find_one({"name": payload.name}):
        raise HTTPException(status_code=400, detail="Billing cycle with this name already exists")
    cycle_id = create_document("billingcycle", {
        **BillingCycleSchema(**payload.model_dump()).model_dump(),
        "created_by": actor["id"],
    })
    return serialize(db["billingcycle"].find_one({"_id": to_obj_id(cycle_id)}))


def update_cycle(cycle_id: str, payload: BillingCycleUpdate, actor: dict) -> dict:
    get_or_404("billingcycle", cycle_id, "Billing cycle not found")
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_by"] = actor["id"]
    return serialize(update_document("billingcycle", cycle_id, changes))


@router.get("")
def get_billing_cycles(current_user: dict = Depends(authorize(SUPER_ADMIN))):
    return list_cycles()


@router.get("/{cycle_id}")
def get_billing_cycle(cycle_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    return serialize(get_or_404("billingcycle", cycle_id, "Billing cycle not found"))


@router.post("", status_code=201)
def create_billing_cycle(payload: BillingCyclePayload, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    return create_cycle(payload, current_user)


@router.put("/{cycle_id}")
def update_billing_cycle(cycle_id: str, payload: BillingCycleUpdate,
                         current_user: dict = Depends(authorize(SUPER_ADMIN))):
    return update_cycle(cycle_id, payload, current_user)


@router.delete("/{cycle_id}")
def delete_billing_cycle(cycle_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    get_or_404("billingcycle", cycle_id, "Billing cycle not found")
    if db["shopsubscription"].count_documents({"billing_cycle_id": cycle_id, "status": "active"}):
        raise HTTPException(status_code=400, detail="Cannot delete billing cycle with active subscriptions")
    db["billingcycle"].delete_one({"_id": to_obj_id(cycle_id)})
    db["subscriptionpricing"].delete_many({"billing_cycle_id": cycle_id})
    return {"message": "Billing cycle deleted successfully"}


@router.patch("/{cycle_id}/toggle")
def toggle_billing_cycle(cycle_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    cycle = get_or_404("billingcycle", cycle_id, "Billing cycle not found")
    return serialize(update_document("billingcycle", cycle_id, {
        "is_active": not cycle.get("is_active", True),
        "updated_by": current_user["id"],
    }))

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, update_document
from helpers import get_or_404, serialize, to_obj_id
from schemas import Role as RoleSchema
from security import SUPER_ADMIN, authorize, load_role

router = APIRouter(prefix="/api/roles", tags=["roles"])


class RolePayload(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    permission_ids: List[str] = Field(default_factory=list)
    is_active: bool = True


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    permission_ids: Optional[List[str]] = None
    is_active: Optional[bool] = None


def check_permission_ids(ids: List[str]) -> None:
    found = db["permission"].count_documents({"_id": {"$in": [to_obj_id(i) for i in ids]}}) if ids else 0
    if found != len(set(ids)):
        raise HTTPException(status_code=400, detail="One or more permissions do not exist")


@router.get("")
def list_roles(current_user: dict = Depends(authorize(SUPER_ADMIN))):
    return [load_role(str(r["_id"])) for r in db["role"].find().sort("name", 1)]


@router.get("/{role_id}")
def get_role(role_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    get_or_404("role", role_id, "Role not found")
    return load_role(role_id)


@router.post("", status_code=201)
def create_role(payload: RolePayload, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    if db["role"].find_one({"name": payload.name}):
        raise HTTPException(status_code=400, detail="Role already exists")
    check_permission_ids(payload.permission_ids)
    role_id = create_document("role", {**RoleSchema(**payload.model_dump()).model_dump(), "created_by": current_user["id"]})
    return load_role(role_id)


@router.put("/{role_id}")
def update_role(role_id: str, payload: RoleUpdate, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    get_or_404("role", role_id, "Role not found")
    changes = payload.model_dump(exclude_unset=True)
    if "permission_ids" in changes:
        check_permission_ids(changes["permission_ids"] or [])
    changes["updated_by"] = current_user["id"]
    update_document("role", role_id, changes)
    return load_role(role_id)


@router.delete("/{role_id}")
def delete_role(role_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    get_or_404("role", role_id, "Role not found")
    assigned = db["user"].count_documents({"role_id": role_id})
    if assigned > 0:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete role. {assigned} user(s) are currently assigned to this role. "
                   "Please reassign users to another role first.",
        )
    db["role"].delete_one({"_id": to_obj_id(role_id)})
    return {"message": "Role deleted successfully"}


@router.patch("/{role_id}/toggle")
def toggle_role(role_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    role = get_or_404("role", role_id, "Role not found")
    update_document("role", role_id, {"is_active": not role.get("is_active", True), "updated_by": current_user["id"]})
    return serialize(db["role"].find_one({"_id": role["_id"]}))

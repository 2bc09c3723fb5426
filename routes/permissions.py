from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from database import create_document, db, update_document
from helpers import get_or_404, serialize, to_obj_id
from schemas import PERMISSION_ACTIONS, PERMISSION_RESOURCES, Permission as PermissionSchema
from security import SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/permissions", tags=["permissions"])

Resource = Literal[tuple(PERMISSION_RESOURCES)]
Action = Literal[tuple(PERMISSION_ACTIONS)]


class PermissionPayload(BaseModel):
    resource: Resource
    action: Action
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


class PermissionUpdate(BaseModel):
    resource: Optional[Resource] = None
    action: Optional[Action] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("")
def list_permissions(resource: Optional[str] = None, action: Optional[str] = None,
                     current_user: dict = Depends(authorize(SUPER_ADMIN))):
    query = {}
    if resource:
        query["resource"] = resource
    if action:
        query["action"] = action
    return [serialize(p) for p in db["permission"].find(query).sort([("resource", 1), ("action", 1)])]


@router.get("/{permission_id}")
def get_permission(permission_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    return serialize(get_or_404("permission", permission_id, "Permission not found"))


@router.post("", status_code=201)
def create_permission(payload: PermissionPayload, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    name = payload.name or f"{payload.resource}.{payload.action}"
    if db["permission"].find_one({"name": name}):
        raise HTTPException(status_code=400, detail="Permission already exists")
    permission = PermissionSchema(**{**payload.model_dump(), "name": name})
    permission_id = create_document("permission", permission)
    return serialize(db["permission"].find_one({"_id": to_obj_id(permission_id)}))


@router.put("/{permission_id}")
def update_permission(permission_id: str, payload: PermissionUpdate,
                      current_user: dict = Depends(authorize(SUPER_ADMIN))):
    permission = get_or_404("permission", permission_id, "Permission not found")
    changes = payload.model_dump(exclude_unset=True)
    if "resource" in changes or "action" in changes:
        name = f"{changes.get('resource', permission['resource'])}.{changes.get('action', permission['action'])}"
        clash = db["permission"].find_one({"name": name, "_id": {"$ne": permission["_id"]}})
        if clash:
            raise HTTPException(status_code=400, detail="Permission already exists")
        changes["name"] = name
    return serialize(update_document("permission", permission_id, changes))


@router.delete("/{permission_id}")
def delete_permission(permission_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    get_or_404("permission", permission_id, "Permission not found")
    db["permission"].delete_one({"_id": to_obj_id(permission_id)})
    db["role"].update_many({}, {"$pull": {"permission_ids": permission_id}})
    return {"message": "Permission deleted successfully"}


@router.patch("/{permission_id}/toggle")
def toggle_permission(permission_id: str, current_user: dict = Depends(authorize(SUPER_ADMIN))):
    permission = get_or_404("permission", permission_id, "Permission not found")
    return serialize(update_document("permission", permission_id, {"is_active": not permission.get("is_active", True)}))

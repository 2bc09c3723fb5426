from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from database import create_document, db, update_document
from helpers import get_or_404, ilike, parse_bool, populate, populate_many, serialize_user, to_obj_id
from schemas import User as UserSchema
from security import GUEST, SHOP_ADMIN, check_permission, get_password_hash

router = APIRouter(prefix="/api/users", tags=["users"])


class UserCreate(BaseModel):
    email: EmailStr
    phone: str
    password: str
    role_id: str
    shop_id: Optional[str] = None
    allowed_categories: Union[List[str], str, None] = None
    is_active: bool = True


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    role_id: Optional[str] = None
    shop_id: Optional[str] = None
    allowed_categories: Union[List[str], str, None] = None
    is_active: Optional[bool] = None


def normalize_categories(value) -> List[str]:
    if value is None or value == "":
        return []
    return value if isinstance(value, list) else [value]


def present(user: dict) -> dict:
    user = serialize_user(user)
    populate(user, "role_id", "role", "role", ("name",))
    populate(user, "shop_id", "shop", "shop", ("name",))
    return user


@router.get("")
def list_users(role: Optional[str] = None, is_active: Optional[str] = None, search: Optional[str] = None,
               current_user: dict = Depends(check_permission("user", "read"))):
    query = {}
    if role:
        query["role_id"] = role
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    if search:
        query["$or"] = [{"email": ilike(search)}, {"phone": ilike(search)}]
    users = [serialize_user(u) for u in db["user"].find(query).sort("created_at", -1)]
    populate_many(users, "role_id", "role", "role", ("name",))
    populate_many(users, "shop_id", "shop", "shop", ("name",))
    return users


@router.get("/{user_id}")
def get_user(user_id: str, current_user: dict = Depends(check_permission("user", "read"))):
    user = present(get_or_404("user", user_id, "User not found"))
    user["allowed_categories"] = [
        {"id": str(c["_id"]), "name": c["name"]}
        for c in db["category"].find({"_id": {"$in": [to_obj_id(c) for c in user.get("allowed_categories", [])]}})
    ]
    return user


@router.post("", status_code=201)
def create_user(payload: UserCreate, current_user: dict = Depends(check_permission("user", "create"))):
    role = get_or_404("role", payload.role_id, "Role not found")
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    is_active = payload.is_active
    # accounts of these roles wait for an explicit activation
    if role["name"] in (GUEST, SHOP_ADMIN):
        is_active = False
    user_id = create_document("user", UserSchema(
        email=email,
        phone=payload.phone,
        password=get_password_hash(payload.password),
        role_id=payload.role_id,
        shop_id=payload.shop_id or None,
        allowed_categories=normalize_categories(payload.allowed_categories),
        is_active=is_active,
        is_email_verified=True,
        created_by=current_user["id"],
    ))
    return present(db["user"].find_one({"_id": to_obj_id(user_id)}))


@router.put("/{user_id}")
def update_user(user_id: str, payload: UserUpdate, current_user: dict = Depends(check_permission("user", "update"))):
    get_or_404("user", user_id, "User not found")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("password"):
        changes["password"] = get_password_hash(changes["password"])
    else:
        changes.pop("password", None)
    if "email" in changes and changes["email"]:
        changes["email"] = changes["email"].lower()
    if "shop_id" in changes:
        changes["shop_id"] = changes["shop_id"] or None
    if "allowed_categories" in changes:
        changes["allowed_categories"] = normalize_categories(changes["allowed_categories"])
    if "role_id" in changes:
        get_or_404("role", changes["role_id"], "Role not found")
    changes["updated_by"] = current_user["id"]
    return present(update_document("user", user_id, changes))


@router.delete("/{user_id}")
def delete_user(user_id: str, current_user: dict = Depends(check_permission("user", "delete"))):
    result = db["user"].delete_one({"_id": to_obj_id(user_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}


@router.patch("/{user_id}/toggle")
def toggle_user(user_id: str, current_user: dict = Depends(check_permission("user", "update"))):
    user = get_or_404("user", user_id, "User not found")
    return present(update_document("user", user_id, {
        "is_active": not user.get("is_active", False),
        "updated_by": current_user["id"],
    }))

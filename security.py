"""
Identity and authorization.

Tokens are HS256 JWTs carrying ``{"id": <user id>}``. The current user is
loaded with its role and the role's permissions populated, so route guards
never touch the database again.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from bson import ObjectId
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from database import db
from helpers import serialize, serialize_user

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

SUPER_ADMIN = "superAdmin"
MALL_ADMIN = "mallAdmin"
SHOP_ADMIN = "shopAdmin"
GUEST = "guest"
SALES = "Sales"


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or config.ACCESS_TOKEN_EXPIRE)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def load_role(role_id: Optional[str]) -> Optional[Dict]:
    if not role_id or not ObjectId.is_valid(str(role_id)):
        return None
    role = serialize(db["role"].find_one({"_id": ObjectId(str(role_id))}))
    if not role:
        return None
    ids = [ObjectId(p) for p in role.get("permission_ids", []) if ObjectId.is_valid(str(p))]
    role["permissions"] = [serialize(p) for p in db["permission"].find({"_id": {"$in": ids}})] if ids else []
    return role


def load_user(user_id: str) -> Optional[Dict]:
    """Fetch a user with role and permissions populated, private fields removed."""
    if not ObjectId.is_valid(str(user_id)):
        return None
    user = serialize_user(db["user"].find_one({"_id": ObjectId(str(user_id))}))
    if user:
        user["role"] = load_role(user.get("role_id"))
    return user


def role_name(user: Optional[Dict]) -> Optional[str]:
    if not user or not user.get("role"):
        return None
    return user["role"].get("name")


def has_permission(user: Optional[Dict], resource: str, action: str) -> bool:
    role = (user or {}).get("role") or {}
    wanted = f"{resource}.{action}"
    return any(p.get("is_active") and p.get("name") == wanted for p in role.get("permissions", []))


def decode_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    return payload.get("id")


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)):
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token, authorization denied",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_token(token)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = load_user(user_id)
    if not user or not user.get("is_active"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def get_optional_user(token: Optional[str] = Depends(oauth2_scheme)):
    """Like get_current_user but anonymous or invalid callers yield None."""
    if not token:
        return None
    user_id = decode_token(token)
    if not user_id:
        return None
    user = load_user(user_id)
    if not user or not user.get("is_active"):
        return None
    return user


def ensure_permission(user: Optional[Dict], resource: str, action: str) -> Dict:
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not user.get("role"):
        raise HTTPException(status_code=403, detail="Access denied. No role assigned")
    if not has_permission(user, resource, action):
        logger.info("Denied %s.%s to user %s", resource, action, user.get("id"))
        raise HTTPException(status_code=403, detail="Access denied. Insufficient permissions")
    return user


def ensure_role(user: Optional[Dict], *roles: str) -> Dict:
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if role_name(user) not in roles:
        raise HTTPException(status_code=403, detail="Access denied. Insufficient permissions")
    return user


def check_permission(resource: str, action: str):
    def permission_dep(current_user=Depends(get_current_user)):
        return ensure_permission(current_user, resource, action)
    return permission_dep


def authorize(*roles: str):
    def role_dep(current_user=Depends(get_current_user)):
        return ensure_role(current_user, *roles)
    return role_dep

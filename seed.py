"""Default permissions, roles and the bootstrap super admin."""
import logging
from typing import Iterable, Optional

from bson import ObjectId

import config
from database import create_document, db
from helpers import serialize
from schemas import PERMISSION_ACTIONS, PERMISSION_RESOURCES, Permission as PermissionSchema, Role as RoleSchema, User as UserSchema
from security import GUEST, MALL_ADMIN, SALES, SHOP_ADMIN, SUPER_ADMIN, get_password_hash

logger = logging.getLogger(__name__)

GUEST_PERMISSIONS = ["product.read", "shop.read", "category.read"]
SHOP_ADMIN_PERMISSIONS = ["product.create", "product.read", "product.update", "product.delete", "report.read"]
MALL_ADMIN_PERMISSIONS = [
    "shop.create", "shop.read", "shop.update", "shop.delete", "shop.activate", "shop.deactivate",
    "product.create", "product.read", "product.update", "product.delete", "product.activate",
    "product.deactivate", "category.read", "report.read", "report.export", "user.read",
]
SALES_PERMISSIONS = ["shop.create", "shop.read", "shop.update", "product.read", "category.read"]

DEFAULT_ROLES = [
    (SUPER_ADMIN, "Full access to every resource", None),
    (MALL_ADMIN, "Manages the shops of assigned categories", MALL_ADMIN_PERMISSIONS),
    (SHOP_ADMIN, "Shop Administrator - can manage own products", SHOP_ADMIN_PERMISSIONS),
    (GUEST, "Guest user - can browse and purchase", GUEST_PERMISSIONS),
    (SALES, "Onboards new shops", SALES_PERMISSIONS),
]


def permission_ids(names: Optional[Iterable[str]] = None):
    query = {"name": {"$in": list(names)}} if names is not None else {}
    return [str(p["_id"]) for p in db["permission"].find(query, {"_id": 1})]


def seed_permissions() -> int:
    created = 0
    for resource in PERMISSION_RESOURCES:
        for action in PERMISSION_ACTIONS:
            name = f"{resource}.{action}"
            if db["permission"].find_one({"name": name}):
                continue
            create_document("permission", PermissionSchema(
                name=name, resource=resource, action=action, description=f"{action.title()} {resource}",
            ))
            created += 1
    return created


def ensure_role(name: str, description: str, permission_names: Optional[Iterable[str]]) -> dict:
    """Return the named role, creating it with its default permissions when missing.

    An existing role is returned as stored; admin edits to its permissions stand.
    """
    role = db["role"].find_one({"name": name})
    if role is not None:
        return serialize(role)
    role_id = create_document("role", RoleSchema(
        name=name, description=description, permission_ids=permission_ids(permission_names),
    ))
    logger.info("Created role %s", name)
    return serialize(db["role"].find_one({"_id": ObjectId(role_id)}))


def ensure_default_role(name: str) -> dict:
    for role_name, description, names in DEFAULT_ROLES:
        if role_name == name:
            return ensure_role(role_name, description, names)
    raise KeyError(name)


def seed_super_admin():
    if not config.SUPERADMIN_EMAIL or not config.SUPERADMIN_PASSWORD:
        return
    email = config.SUPERADMIN_EMAIL.lower()
    if db["user"].find_one({"email": email}):
        return
    role = ensure_default_role(SUPER_ADMIN)
    create_document("user", UserSchema(
        email=email,
        password=get_password_hash(config.SUPERADMIN_PASSWORD),
        phone=config.SUPERADMIN_PHONE,
        role_id=role["id"],
        is_active=True,
        is_email_verified=True,
    ))
    logger.info("Created super admin %s", email)


def seed_defaults():
    created = seed_permissions()
    if created:
        logger.info("Seeded %d permissions", created)
    for name, description, names in DEFAULT_ROLES:
        ensure_role(name, description, names)
    seed_super_admin()

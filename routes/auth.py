import logging
import secrets
from datetime import timedelta
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

import config
from database import create_document, db, update_document, utcnow
from helpers import as_utc, is_egyptian_phone, serialize
from schemas import Shop as ShopSchema, ShopSubscription as ShopSubscriptionSchema, User as UserSchema
from security import GUEST, SHOP_ADMIN, create_access_token, get_current_user, get_password_hash, verify_password
from seed import ensure_default_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterPayload(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None


class PartnerPayload(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    address: Optional[str] = None
    whatsapp: Optional[str] = None
    category_id: Optional[str] = None
    subscription_plan_id: Optional[str] = None
    billing_cycle_id: Optional[str] = None


class OtpPayload(BaseModel):
    email: EmailStr
    otp: str


class ResendOtpPayload(BaseModel):
    email: EmailStr


class LoginPayload(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


def issue_otp(user_id) -> str:
    otp = f"{secrets.randbelow(900000) + 100000}"
    db["user"].update_one(
        {"_id": user_id},
        {"$set": {"otp": otp, "otp_expires_at": utcnow() + timedelta(minutes=config.OTP_EXPIRE_MINUTES)}},
    )
    # Delivery happens outside this service
    logger.info("Issued verification code for user %s", user_id)
    return otp


def login_response(user: dict) -> dict:
    role = db["role"].find_one({"_id": ObjectId(user["role_id"])}) if user.get("role_id") else None
    return {
        "token": create_access_token({"id": str(user["_id"])}),
        "token_type": "bearer",
        "user": {
            "id": str(user["_id"]),
            "email": user["email"],
            "phone": user.get("phone"),
            "role": role["name"] if role else None,
            "shop": user.get("shop_id"),
        },
    }


@router.post("/register", status_code=201)
def register(payload: RegisterPayload):
    if not payload.email or not payload.phone or not payload.password:
        raise HTTPException(status_code=400, detail="Email, phone, and password are required")
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")

    guest_role = ensure_default_role(GUEST)
    if not guest_role.get("is_active", True):
        raise HTTPException(status_code=500, detail="Guest role is not active")

    user_id = create_document("user", UserSchema(
        email=email,
        phone=payload.phone.strip(),
        password=get_password_hash(payload.password),
        role_id=guest_role["id"],
        is_active=True,
        is_email_verified=False,
    ))
    issue_otp(ObjectId(user_id))
    return {"message": "Registration successful. Please verify your email.", "userId": user_id}


@router.post("/register-partner", status_code=201)
def register_partner(payload: PartnerPayload):
    if not all([payload.name, payload.email, payload.phone, payload.password, payload.address]):
        raise HTTPException(status_code=400, detail="Name, email, phone, password, and address are required")
    phone = payload.phone.strip()
    whatsapp = (payload.whatsapp or phone).strip()
    if not is_egyptian_phone(phone):
        raise HTTPException(status_code=400, detail="Phone: Phone number must be in format: +20XXXXXXXXXX")
    if not is_egyptian_phone(whatsapp):
        raise HTTPException(status_code=400, detail="WhatsApp: Phone number must be in format: +20XXXXXXXXXX")
    email = payload.email.lower()
    if db["user"].find_one({"$or": [{"email": email}, {"phone": phone}]}):
        raise HTTPException(status_code=400, detail="User already exists with this email or phone number")
    if db["shop"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Shop with this email already exists")

    if payload.category_id:
        category = db["category"].find_one({"_id": ObjectId(payload.category_id)}) if ObjectId.is_valid(payload.category_id) else None
        if not category:
            raise HTTPException(status_code=400, detail="Invalid category selected")
    else:
        category = db["category"].find_one({"is_active": True}, sort=[("order", 1), ("created_at", 1)])
        if not category:
            raise HTTPException(status_code=400, detail="No active category found. Please contact administrator.")

    plan = cycle = None
    if payload.subscription_plan_id or payload.billing_cycle_id:
        plan = db["subscriptionplan"].find_one({"_id": ObjectId(payload.subscription_plan_id)}) \
            if ObjectId.is_valid(payload.subscription_plan_id or "") else None
        if not plan or not plan.get("is_active"):
            raise HTTPException(status_code=400, detail="Invalid or inactive subscription plan selected")
        cycle = db["billingcycle"].find_one({"_id": ObjectId(payload.billing_cycle_id)}) \
            if ObjectId.is_valid(payload.billing_cycle_id or "") else None
        if not cycle or not cycle.get("is_active"):
            raise HTTPException(status_code=400, detail="Invalid or inactive billing cycle selected")

    role = ensure_default_role(SHOP_ADMIN)
    user_id = create_document("user", UserSchema(
        email=email,
        phone=phone,
        password=get_password_hash(payload.password),
        role_id=role["id"],
        is_active=False,
        is_email_verified=True,
    ))
    shop_id = create_document("shop", ShopSchema(
        name=payload.name.strip(),
        email=email,
        mobile=phone,
        whatsapp=whatsapp,
        address=payload.address,
        category_id=str(category["_id"]),
        created_by=user_id,
    ))
    update_document("shop", shop_id, {"share_link": f"shop-{shop_id}"})
    update_document("user", user_id, {"shop_id": shop_id})

    if plan and cycle:
        start = utcnow()
        create_document("shopsubscription", ShopSubscriptionSchema(
            shop_id=shop_id,
            subscription_plan_id=str(plan["_id"]),
            billing_cycle_id=str(cycle["_id"]),
            start_date=start,
            end_date=start + timedelta(days=cycle["duration_in_days"]),
            status="pending",
            created_by=user_id,
        ))

    logger.info("Partner %s registered shop %s", email, shop_id)
    return {
        "message": "Partner registration successful. Your account is pending approval.",
        "userId": user_id,
        "shopId": shop_id,
    }


@router.post("/verify-otp")
def verify_otp(payload: OtpPayload):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.get("is_email_verified"):
        raise HTTPException(status_code=400, detail="Email already verified")
    if not user.get("otp") or user["otp"] != payload.otp.strip():
        raise HTTPException(status_code=400, detail="Invalid OTP")
    if not user.get("otp_expires_at") or as_utc(user["otp_expires_at"]) < utcnow():
        raise HTTPException(status_code=400, detail="OTP expired")

    user = update_document("user", user["_id"], {"is_email_verified": True, "otp": None, "otp_expires_at": None})
    return {"message": "Email verified successfully", **login_response(user)}


@router.post("/resend-otp")
def resend_otp(payload: ResendOtpPayload):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.get("is_email_verified"):
        raise HTTPException(status_code=400, detail="Email already verified")
    issue_otp(user["_id"])
    return {"message": "OTP sent successfully"}


@router.post("/login")
def login(payload: LoginPayload):
    if (not payload.email and not payload.phone) or not payload.password:
        raise HTTPException(status_code=400, detail="Email or phone number and password are required")
    if payload.email:
        user = db["user"].find_one({"email": payload.email.strip().lower()})
    else:
        user = db["user"].find_one({"phone": payload.phone.strip()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.get("is_active"):
        raise HTTPException(status_code=401, detail="Account is deactivated")
    return login_response(user)


@router.get("/me")
def me(current_user: dict = Depends(get_current_user)):
    user = dict(current_user)
    user["shop"] = None
    if user.get("shop_id") and ObjectId.is_valid(user["shop_id"]):
        shop = db["shop"].find_one({"_id": ObjectId(user["shop_id"])})
        user["shop"] = serialize(shop)
    return user

"""
Database Schemas for the iDream marketplace

Collections (lowercase class name):
- User, Role, Permission: identity and authorization
- Category, Shop, Product, Review: catalogue
- Cart, OrderLog, ShareLog: shopping activity
- SubscriptionPlan, SubscriptionPlanFeature, SubscriptionPlanLimit, BillingCycle,
  SubscriptionPricing, ShopSubscription, SubscriptionUsage, SubscriptionLog: plans and limits
- Advertisement, Video, Page, Request, ContactRequest: content and inbound requests

References to other documents are stored as string ids.
"""

from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal
from datetime import datetime

PERMISSION_RESOURCES = [
    "user", "role", "permission", "category", "shop", "product", "cart", "review",
    "report", "advertisement", "video", "page", "subscription",
]
PERMISSION_ACTIONS = ["create", "read", "update", "delete", "activate", "deactivate", "export"]

SubscriptionStatus = Literal["active", "expired", "cancelled", "pending"]
InboxStatus = Literal["new", "read", "replied", "archived"]


# Identity
class User(BaseModel):
    email: EmailStr = Field(..., description="Login email, lowercased")
    password: str = Field(..., description="Password hash")
    phone: str = Field(..., description="Phone number")
    role_id: Optional[str] = Field(None, description="Role id")
    shop_id: Optional[str] = Field(None, description="Shop managed by this user")
    allowed_categories: List[str] = Field(default_factory=list, description="Category ids a mall admin may manage")
    is_active: bool = Field(True, description="Is account active")
    is_email_verified: bool = Field(False, description="Email ownership confirmed")
    otp: Optional[str] = Field(None, description="Pending verification code")
    otp_expires_at: Optional[datetime] = Field(None, description="Verification code expiry")
    created_by: Optional[str] = None


class Role(BaseModel):
    name: str = Field(..., description="Role name, free form")
    description: Optional[str] = None
    permission_ids: List[str] = Field(default_factory=list, description="Permission ids")
    is_active: bool = True


class Permission(BaseModel):
    name: str = Field(..., description="resource.action")
    resource: Literal[tuple(PERMISSION_RESOURCES)]
    action: Literal[tuple(PERMISSION_ACTIONS)]
    description: Optional[str] = None
    is_active: bool = True


# Catalogue
class Category(BaseModel):
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    icon: Optional[str] = None
    order: int = Field(0, description="Display order")
    is_active: bool = True
    created_by: Optional[str] = None


class Shop(BaseModel):
    name: str
    email: EmailStr
    mobile: str = Field(..., description="Egyptian mobile, +20XXXXXXXXXX")
    whatsapp: str = Field(..., description="Egyptian WhatsApp number")
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None
    category_id: str
    priority: int = Field(0, ge=0)
    product_types: List[str] = Field(default_factory=list)
    share_link: Optional[str] = Field(None, description="Public slug, shop-<id>")
    is_active: bool = False
    is_approved: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


class Product(BaseModel):
    name: str
    description: str
    image: str
    price: float = Field(..., gt=0)
    is_hot_offer: bool = False
    priority: int = Field(0, ge=0)
    shipping_title: Optional[str] = None
    shipping_description: Optional[str] = None
    shipping_fees: float = Field(0, ge=0)
    warranty_title: Optional[str] = None
    warranty_description: Optional[str] = None
    average_rating: float = Field(0, ge=0, le=5, description="Cached from reviews")
    total_reviews: int = Field(0, ge=0, description="Cached from reviews")
    shop_id: str
    category_id: str
    product_type: List[str] = Field(default_factory=list)
    is_active: bool = False
    is_approved: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    image_quality_comment: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


class Review(BaseModel):
    product_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    is_active: bool = True


# Shopping activity
class CartItem(BaseModel):
    id: str
    product_id: str
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = Field(default_factory=list)


class OrderItem(BaseModel):
    product_id: str
    product_name: str = ""
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0)
    shipping_fees: float = Field(0, ge=0)


class OrderLog(BaseModel):
    order_number: str
    user_id: str
    user_email: str = ""
    shop_id: str
    shop_name: str = ""
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    channel: Literal["whatsapp"] = "whatsapp"
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class ShareLog(BaseModel):
    type: Literal["product", "shop"]
    product_id: Optional[str] = None
    shop_id: Optional[str] = None
    item_name: str = ""
    user_id: Optional[str] = None
    user_email: str = ""
    channel: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


# Subscriptions
class SubscriptionPlan(BaseModel):
    display_name: str
    description: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    created_by: Optional[str] = None


class SubscriptionPlanFeature(BaseModel):
    subscription_plan_id: str
    title: str
    is_highlighted: bool = False
    sort_order: int = 0


class SubscriptionPlanLimit(BaseModel):
    subscription_plan_id: str
    limit_key: str = Field(..., description="e.g. max_products, max_hot_offers")
    limit_value: int = Field(..., ge=-1, description="-1 means unlimited")


class BillingCycle(BaseModel):
    name: Literal["monthly", "yearly"]
    display_name: str
    duration_in_days: int = Field(..., ge=1)
    is_active: bool = True


class SubscriptionPricing(BaseModel):
    subscription_plan_id: str
    billing_cycle_id: str
    price: float = Field(..., ge=0)
    currency: str = "USD"
    discount: float = Field(0, ge=0, le=100)
    is_active: bool = True


class ShopSubscription(BaseModel):
    shop_id: str
    subscription_plan_id: str
    billing_cycle_id: str
    start_date: datetime
    end_date: datetime
    status: SubscriptionStatus = "pending"
    scheduled_downgrade: Optional[dict] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


class SubscriptionUsage(BaseModel):
    shop_id: str
    limit_key: str
    current_usage: int = Field(0, ge=0)
    last_updated: Optional[datetime] = None


class SubscriptionLog(BaseModel):
    shop_id: str
    shop_name: str = ""
    action: Literal["created", "updated", "activated", "cancelled", "expired", "renewed"]
    subscription_plan_id: str
    subscription_plan_name: str = ""
    billing_cycle_id: str
    billing_cycle_name: str = ""
    start_date: datetime
    end_date: datetime
    status: SubscriptionStatus
    previous_subscription_plan_id: Optional[str] = None
    previous_subscription_plan_name: str = ""
    previous_billing_cycle_id: Optional[str] = None
    previous_billing_cycle_name: str = ""
    created_by: Optional[str] = None
    created_by_email: str = ""
    notes: str = ""


# Content
class Advertisement(BaseModel):
    image: str
    category_ids: List[str] = Field(default_factory=list)
    side: Literal["left", "right"]
    is_active: bool = True
    show_in_home: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    redirect_url: Optional[str] = None
    priority: int = Field(0, ge=0)
    created_by: Optional[str] = None


class Video(BaseModel):
    title: str
    description: Optional[str] = None
    video_url: str
    thumbnail: Optional[str] = None
    priority: int = Field(0, ge=0)
    is_active: bool = True
    created_by: Optional[str] = None


class LocalizedText(BaseModel):
    en: str = ""
    ar: str = ""


class Page(BaseModel):
    slug: str
    title: LocalizedText
    content: LocalizedText
    is_active: bool = True
    order: int = 0
    created_by: Optional[str] = None


class Request(BaseModel):
    type: Literal["join-our-team", "new-ideas", "hire-expert"]
    full_name: str
    email: EmailStr
    position_of_interest: Optional[str] = None
    cover_letter: Optional[str] = None
    idea_title: Optional[str] = None
    brief_idea_description: Optional[str] = None
    company_name: Optional[str] = None
    service_needed: Optional[str] = None
    project_details: Optional[str] = None
    status: InboxStatus = "new"
    is_read: bool = False
    notes: Optional[str] = None


class ContactRequest(BaseModel):
    name: str
    email: EmailStr
    service: str
    message: str
    status: InboxStatus = "new"
    is_read: bool = False
    notes: Optional[str] = None

"""
Reports over shops, products, shares, orders and subscription logs.

Every report accepts ``from_date``/``to_date`` on the creation time and
``format=json|excel``. JSON answers ``{<rows>, total}``; Excel answers an
.xlsx attachment with one header row.
"""
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends

from database import db
from excel import excel_response
from helpers import date_range_filter, populate_many, serialize
from ratings import attach_ratings
from scoping import Scope
from security import MALL_ADMIN, SHOP_ADMIN, SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/reports", tags=["reports"])

ReportFormat = Literal["json", "excel"]


def _email(doc: Optional[Dict]) -> str:
    return doc.get("email", "") if doc else ""


def _name(doc: Optional[Dict]) -> str:
    return doc.get("name", "") if doc else ""


def shop_rows(shops: List[Dict]) -> List[Dict]:
    return [{
        "Shop Name": s["name"],
        "Email": s.get("email", ""),
        "Mobile": s.get("mobile", ""),
        "WhatsApp": s.get("whatsapp", ""),
        "Instagram": s.get("instagram", ""),
        "Facebook": s.get("facebook", ""),
        "Address": s.get("address", ""),
        "Category": _name(s.get("category")),
        "Is Active": "Yes" if s.get("is_active") else "No",
        "Is Approved": "Yes" if s.get("is_approved") else "No",
        "Approved By": _email(s.get("approved_by_user")),
        "Approved At": s.get("approved_at"),
        "Created By": _email(s.get("created_by_user")),
        "Created At": s.get("created_at"),
        "Updated By": _email(s.get("updated_by_user")),
        "Updated At": s.get("updated_at"),
    } for s in shops]


def product_rows(products: List[Dict]) -> List[Dict]:
    return [{
        "Product Name": p["name"],
        "Description": p.get("description", ""),
        "Price": p.get("price", 0),
        "Shipping Fees": p.get("shipping_fees", 0),
        "Is Hot Offer": "Yes" if p.get("is_hot_offer") else "No",
        "Priority": p.get("priority", 0),
        "Shop Name": _name(p.get("shop")),
        "Shop Email": _email(p.get("shop")),
        "Category": _name(p.get("category")),
        "Shipping Title": p.get("shipping_title", ""),
        "Shipping Description": p.get("shipping_description", ""),
        "Warranty Title": p.get("warranty_title", ""),
        "Warranty Description": p.get("warranty_description", ""),
        "Is Active": "Yes" if p.get("is_active") else "No",
        "Is Approved": "Yes" if p.get("is_approved") else "No",
        "Approved By": _email(p.get("approved_by_user")),
        "Approved At": p.get("approved_at"),
        "Image Quality Comment": p.get("image_quality_comment", ""),
        "Created By": _email(p.get("created_by_user")),
        "Created At": p.get("created_at"),
        "Updated By": _email(p.get("updated_by_user")),
        "Updated At": p.get("updated_at"),
    } for p in products]


def share_rows(logs: List[Dict]) -> List[Dict]:
    return [{
        "Type": log["type"],
        "Product Name": _name(log.get("product")),
        "Product Price": log["product"].get("price", "") if log.get("product") else "",
        "Shop Name": _name(log.get("shop")),
        "Item Name (snapshot)": log.get("item_name", ""),
        "User Email": _email(log.get("user")) or log.get("user_email", ""),
        "Channel": log.get("channel", ""),
        "IP": log.get("ip", ""),
        "User Agent": log.get("user_agent", ""),
        "Shared At": log.get("created_at"),
    } for log in logs]


def order_rows(orders: List[Dict]) -> List[Dict]:
    """One row per ordered item."""
    rows = []
    for order in orders:
        user, shop = order.get("user") or {}, order.get("shop") or {}
        for item in order.get("items", []):
            rows.append({
                "Order Number": order["order_number"],
                "Order Date": order.get("created_at"),
                "User Email": user.get("email") or order.get("user_email", ""),
                "User Phone": user.get("phone", ""),
                "Shop Name": shop.get("name") or order.get("shop_name", ""),
                "Shop Email": shop.get("email", ""),
                "Shop WhatsApp": shop.get("whatsapp", ""),
                "Product Name": item.get("product_name", ""),
                "Quantity": item["quantity"],
                "Unit Price": item["price"],
                "Shipping Fees": item.get("shipping_fees", 0),
                "Item Total": (item["price"] + item.get("shipping_fees", 0)) * item["quantity"],
                "Order Total": order["total_amount"],
                "Channel": order.get("channel", ""),
                "IP Address": order.get("ip", ""),
                "User Agent": order.get("user_agent", ""),
            })
    return rows


def subscription_log_rows(logs: List[Dict]) -> List[Dict]:
    rows = []
    for log in logs:
        days = (log["end_date"] - log["start_date"]).days if log.get("start_date") and log.get("end_date") else ""
        rows.append({
            "Date": log.get("created_at"),
            "Action": log["action"],
            "Shop Name": _name(log.get("shop")) or log.get("shop_name", ""),
            "Shop Email": _email(log.get("shop")),
            "Subscription Plan": log.get("subscription_plan_name", ""),
            "Billing Cycle": log.get("billing_cycle_name", ""),
            "Duration (Days)": days,
            "Start Date": log.get("start_date"),
            "End Date": log.get("end_date"),
            "Status": log.get("status", ""),
            "Previous Plan": log.get("previous_subscription_plan_name", ""),
            "Previous Billing Cycle": log.get("previous_billing_cycle_name", ""),
            "Created By": _email(log.get("created_by_user")) or log.get("created_by_email", ""),
            "Notes": log.get("notes", ""),
        })
    return rows


def populate_audit(docs: List[Dict], fields=("created_by", "updated_by", "approved_by")) -> List[Dict]:
    for field in fields:
        populate_many(docs, field, "user", f"{field}_user", ("email",))
    return docs


@router.get("/shops")
def shops_report(from_date: Optional[str] = None, to_date: Optional[str] = None, format: ReportFormat = "json",
                 current_user: dict = Depends(authorize(SUPER_ADMIN, MALL_ADMIN))):
    query = {**date_range_filter(from_date, to_date), **Scope.for_user(current_user).shop_filter()}
    shops = [serialize(s) for s in db["shop"].find(query).sort("created_at", -1)]
    populate_many(shops, "category_id", "category", "category", ("name",))
    populate_audit(shops)
    if format == "excel":
        return excel_response("shops", "Shops Report", shop_rows(shops))
    return {"shops": shops, "total": len(shops)}


@router.get("/products")
def products_report(from_date: Optional[str] = None, to_date: Optional[str] = None, format: ReportFormat = "json",
                    current_user: dict = Depends(authorize(SUPER_ADMIN, MALL_ADMIN, SHOP_ADMIN))):
    query = {**date_range_filter(from_date, to_date), **Scope.for_user(current_user).product_filter()}
    products = [serialize(p) for p in db["product"].find(query).sort("created_at", -1)]
    populate_many(products, "shop_id", "shop", "shop", ("name", "email"))
    populate_many(products, "category_id", "category", "category", ("name",))
    populate_audit(products)
    attach_ratings(products)
    if format == "excel":
        return excel_response("products", "Products Report", product_rows(products))
    return {"products": products, "total": len(products)}


@router.get("/shares")
def shares_report(from_date: Optional[str] = None, to_date: Optional[str] = None, format: ReportFormat = "json",
                  current_user: dict = Depends(authorize(SUPER_ADMIN, MALL_ADMIN))):
    query = date_range_filter(from_date, to_date)
    shop_ids = Scope.for_user(current_user).shop_ids()
    if shop_ids is not None:
        product_ids = [str(p["_id"]) for p in db["product"].find({"shop_id": {"$in": shop_ids}}, {"_id": 1})]
        query["$or"] = [{"shop_id": {"$in": shop_ids}}, {"product_id": {"$in": product_ids}}]
    logs = [serialize(s) for s in db["sharelog"].find(query).sort("created_at", -1)]
    populate_many(logs, "product_id", "product", "product", ("name", "price"))
    populate_many(logs, "shop_id", "shop", "shop", ("name",))
    populate_many(logs, "user_id", "user", "user", ("email",))
    if format == "excel":
        return excel_response("share", "Share Report", share_rows(logs))
    return {"shares": logs, "total": len(logs)}


@router.get("/orders")
def orders_report(from_date: Optional[str] = None, to_date: Optional[str] = None, format: ReportFormat = "json",
                  current_user: dict = Depends(authorize(SUPER_ADMIN, MALL_ADMIN))):
    query = date_range_filter(from_date, to_date)
    shop_ids = Scope.for_user(current_user).shop_ids()
    if shop_ids is not None:
        query["shop_id"] = {"$in": shop_ids}
    orders = [serialize(o) for o in db["orderlog"].find(query).sort("created_at", -1)]
    populate_many(orders, "user_id", "user", "user", ("email", "phone"))
    populate_many(orders, "shop_id", "shop", "shop", ("name", "email", "whatsapp"))
    if format == "excel":
        return excel_response("orders", "Orders Report", order_rows(orders))
    return {"orders": orders, "total": len(orders)}


@router.get("/subscription-logs")
def subscription_logs_report(from_date: Optional[str] = None, to_date: Optional[str] = None,
                             shop_id: Optional[str] = None, action: Optional[str] = None,
                             format: ReportFormat = "json", current_user: dict = Depends(authorize(SUPER_ADMIN))):
    query = date_range_filter(from_date, to_date, whole_day=True)
    if shop_id:
        query["shop_id"] = shop_id
    if action:
        query["action"] = action
    logs = [serialize(log) for log in db["subscriptionlog"].find(query).sort("created_at", -1)]
    populate_many(logs, "shop_id", "shop", "shop", ("name", "email"))
    populate_audit(logs, ("created_by",))
    if format == "excel":
        return excel_response("subscription-logs", "Subscription Logs", subscription_log_rows(logs))
    return {"logs": logs, "total": len(logs)}

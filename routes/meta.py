"""
Link previews for crawlers that do not run JavaScript.

``GET /api/meta/og/html?path=/product/<id>`` or ``/shop/<share link>`` answers
a small HTML page carrying Open Graph and Twitter meta tags.
"""
import html
import re
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter
from fastapi.responses import HTMLResponse

import config
from database import db
from helpers import find_by_ref

router = APIRouter(prefix="/api/meta", tags=["meta"])

SITE_TITLE = "iDream Portal"
SITE_DESCRIPTION = "iDream Portal - Your shopping destination"
SITE_IMAGE = f"{config.SITE_URL}/logo.svg"
TAG_RE = re.compile(r"<[^>]*>")


def absolute_image(path: Optional[str]) -> str:
    if not path:
        return SITE_IMAGE
    if path.startswith(("http://", "https://")):
        return path
    return f"{config.IMAGE_BASE_URL}/{path.lstrip('/')}"


def summarize(text: Optional[str], max_length: int = 160) -> str:
    plain = " ".join(TAG_RE.sub("", text or "").split())
    if len(plain) <= max_length:
        return plain
    return plain[:max_length - 3] + "..."


def _escape(value) -> str:
    return html.escape(str(value or ""), quote=True)


def render(title: str, description: str, image: str, url: str, og_type: str = "website",
           extra_meta: Optional[List[str]] = None, status_code: int = 200) -> HTMLResponse:
    lines = [
        "<!DOCTYPE html>",
        '<html lang="en"><head><meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1">',
        f"<title>{_escape(title)}</title>",
        f'<meta property="og:title" content="{_escape(title)}">',
        f'<meta property="og:description" content="{_escape(description)}">',
        f'<meta property="og:image" content="{_escape(image)}">',
        f'<meta property="og:url" content="{_escape(url)}">',
        f'<meta property="og:type" content="{og_type}">',
        '<meta property="og:site_name" content="iDream Mall">',
        '<meta name="twitter:card" content="summary_large_image">',
        f'<meta name="twitter:title" content="{_escape(title)}">',
        f'<meta name="twitter:description" content="{_escape(description)}">',
        f'<meta name="twitter:image" content="{_escape(image)}">',
        f'<meta name="description" content="{_escape(description)}">',
        *(extra_meta or []),
        "</head><body>",
        f'<p>Redirecting to <a href="{_escape(url)}">{_escape(url)}</a></p>',
        "</body></html>",
    ]
    return HTMLResponse("\n".join(lines), status_code=status_code)


def not_found(kind: str, url: str) -> HTMLResponse:
    return render("Not Found", f"{kind} not found", SITE_IMAGE, url, status_code=404)


@router.get("/og/html", response_class=HTMLResponse)
def og_html(path: str = ""):
    path = re.sub(r"/+", "/", path.split("?")[0].split("#")[0]).strip("/")
    if not path:
        return render(SITE_TITLE, SITE_DESCRIPTION, SITE_IMAGE, config.SITE_URL)

    match = re.match(r"^product/([^/]+)", path)
    if match:
        product_id = match.group(1)
        url = f"{config.SITE_URL}/product/{product_id}"
        product = db["product"].find_one({"_id": ObjectId(product_id)}) if ObjectId.is_valid(product_id) else None
        if not product:
            return not_found("Product", url)
        shop = find_by_ref("shop", product.get("shop_id"), ("name",)) or {}
        description = summarize(product.get("description")) or f"{product['name']} - {shop.get('name', '')} at iDream Mall"
        price = [
            f'<meta property="product:price:amount" content="{product.get("price") or 0}">',
            '<meta property="product:price:currency" content="EGP">',
        ]
        return render(product["name"], description, absolute_image(product.get("image")), url, "product", price)

    match = re.match(r"^shop/([^/]+)", path)
    if match:
        share_link = match.group(1)
        url = f"{config.SITE_URL}/shop/{share_link}"
        shop = db["shop"].find_one({"share_link": share_link})
        if not shop:
            return not_found("Shop", url)
        category = find_by_ref("category", shop.get("category_id"), ("name",))
        description = f"{shop['name']}{' - ' + category['name'] if category else ''} - Shop at iDream Mall"
        return render(shop["name"], description, absolute_image(shop.get("image")), url)

    return render(SITE_TITLE, SITE_DESCRIPTION, SITE_IMAGE, f"{config.SITE_URL}/{path}")

"""
Shopping assistant chat.

Searches the catalogue with the user's message, then asks the configured LLM
to answer with the results as context. When no provider is configured, or the
provider fails, a templated bilingual answer is built from the results.
"""
import json
import logging
import os
from typing import Dict, List, Optional

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import NotFoundError

import config
from database import db
from helpers import ilike, populate_many, serialize
from ratings import attach_ratings

logger = logging.getLogger(__name__)

HISTORY_TURNS = 5

SHOP_KEYWORDS = [
    "shop", "store", "vendor", "seller", "merchant", "retailer",
    "where to buy", "who sells", "find shop", "find store",
    "متجر", "بائع", "تاجر", "محل", "أين أشتري",
]

SYSTEM_PROMPTS = {
    "en": (
        "You are the shopping assistant of iDream, a multi-shop marketplace. Help users find "
        "products and shops through conversation.\n\n"
        "Use only the database results given to you as context. Never invent product names, "
        "prices or shop details; say so when you do not know.\n"
        "Always show prices in EGP, mention the shop and category of each product, show ratings "
        "as \"X.X stars (Y reviews)\" and highlight hot offers.\n"
        "For shops, share their contact details (mobile, WhatsApp, email, address, website).\n"
        "Number the items of a list. When nothing matches, suggest other search terms or one of "
        "the available categories."
    ),
    "ar": (
        "أنت مساعد التسوق في iDream، سوق إلكتروني متعدد المتاجر. ساعد المستخدمين في العثور على "
        "المنتجات والمتاجر من خلال المحادثة.\n\n"
        "استخدم فقط نتائج قاعدة البيانات المقدمة لك في السياق. لا تخترع أسماء منتجات أو أسعاراً أو "
        "معلومات متاجر، وقل ذلك بصراحة إذا لم تكن لديك المعلومة.\n"
        "اعرض الأسعار دائماً بالجنيه المصري، واذكر المتجر والفئة لكل منتج، واعرض التقييم بصيغة "
        "\"X.X نجوم (Y مراجعة)\" وسلط الضوء على العروض الساخنة.\n"
        "بالنسبة للمتاجر، شارك معلومات الاتصال (الهاتف، واتساب، البريد، العنوان، الموقع).\n"
        "رقّم عناصر القوائم. إذا لم توجد نتائج، اقترح كلمات بحث أخرى أو إحدى الفئات المتاحة."
    ),
}

_chat_models: Dict[str, ChatOpenAI] = {}


def get_system_prompt(language: str = "en") -> str:
    env_key = "AI_SYSTEM_PROMPT_AR" if language == "ar" else "AI_SYSTEM_PROMPT_EN"
    return os.getenv(env_key) or SYSTEM_PROMPTS.get(language, SYSTEM_PROMPTS["en"])


def get_chat_model(model: Optional[str] = None) -> Optional[ChatOpenAI]:
    """Process-wide chat client per model name, created on first use."""
    if config.AI_PROVIDER != "openai" or not config.OPENAI_API_KEY:
        return None
    name = model or config.OPENAI_MODEL
    if name not in _chat_models:
        _chat_models[name] = ChatOpenAI(
            model=name,
            api_key=config.OPENAI_API_KEY,
            temperature=config.OPENAI_TEMPERATURE,
            max_tokens=config.OPENAI_MAX_TOKENS,
            max_retries=2,
        )
        logger.info("OpenAI chat model %s initialized", name)
    return _chat_models[name]


def search_products(query: str, limit: Optional[int] = None) -> List[Dict]:
    pattern = ilike(query)
    cursor = db["product"].find({
        "$or": [{"name": pattern}, {"description": pattern}, {"product_type": pattern}],
        "is_active": True,
    }).sort([("priority", -1), ("created_at", -1)]).limit(limit or config.AI_MAX_PRODUCTS)
    products = attach_ratings([serialize(p) for p in cursor])
    populate_many(products, "shop_id", "shop", "shop", ("name", "image", "category_id"))
    populate_many(products, "category_id", "category", "category", ("name",))
    return [
        {
            "id": p["id"],
            "name": p.get("name"),
            "description": p.get("description"),
            "price": p.get("price"),
            "image": p.get("image"),
            "shop": {"name": p["shop"].get("name"), "image": p["shop"].get("image")} if p.get("shop") else None,
            "category": (p.get("category") or {}).get("name"),
            "isHotOffer": bool(p.get("is_hot_offer")),
            "averageRating": p.get("average_rating") or 0,
            "totalReviews": p.get("total_reviews") or 0,
        }
        for p in products
    ]


def search_shops(query: str, limit: Optional[int] = None) -> List[Dict]:
    pattern = ilike(query)
    cursor = db["shop"].find({
        "$or": [{"name": pattern}, {"email": pattern}],
        "is_active": True,
    }).sort([("priority", -1), ("created_at", -1)]).limit(limit or config.AI_MAX_SHOPS)
    shops = populate_many([serialize(s) for s in cursor], "category_id", "category", "category", ("name",))
    return [
        {
            "id": s["id"],
            "name": s.get("name"),
            "email": s.get("email"),
            "mobile": s.get("mobile"),
            "whatsapp": s.get("whatsapp"),
            "image": s.get("image"),
            "category": (s.get("category") or {}).get("name"),
            "address": s.get("address"),
            "website": s.get("website"),
            "shareLink": s.get("share_link"),
        }
        for s in shops
    ]


def active_categories() -> List[Dict]:
    cursor = db["category"].find({"is_active": True}, {"name": 1, "description": 1}).sort("order", 1)
    return [serialize(c) for c in cursor]


def is_shop_query(message: str) -> bool:
    text = message.lower()
    return any(keyword in text for keyword in SHOP_KEYWORDS)


def build_messages(system_prompt: str, message: str, context: str, history: List[Dict]) -> list:
    messages = [SystemMessage(content=system_prompt)]
    for turn in (history or [])[-HISTORY_TURNS:]:
        if turn.get("type") == "user":
            messages.append(HumanMessage(content=turn.get("text", "")))
        elif turn.get("type") == "bot":
            messages.append(AIMessage(content=turn.get("text", "")))
    if context:
        messages.append(SystemMessage(content=f"Context from database:\n{context}"))
    messages.append(HumanMessage(content=message))
    return messages


def ask_llm(messages: list) -> Optional[str]:
    llm = get_chat_model()
    if llm is None:
        return None
    try:
        try:
            reply = llm.invoke(messages)
        except NotFoundError:
            if config.OPENAI_MODEL == config.OPENAI_FALLBACK_MODEL:
                raise
            logger.warning("Model %s not available, falling back to %s", config.OPENAI_MODEL, config.OPENAI_FALLBACK_MODEL)
            reply = get_chat_model(config.OPENAI_FALLBACK_MODEL).invoke(messages)
    except Exception as exc:
        logger.warning("OpenAI request failed: %s", exc)
        return None
    return reply.content or None


def templated_response(search_results: List[Dict], language: str, message: str, categories: List[Dict]) -> str:
    arabic = language == "ar"
    if search_results and search_results[0]["data"]:
        kind, items = search_results[0]["type"], search_results[0]["data"]
        if kind == "products":
            lines = [f"وجدت {len(items)} منتج(ات) متعلق(ة) ببحثك:" if arabic
                     else f"I found {len(items)} product(s) related to your search:", ""]
            for index, product in enumerate(items, 1):
                lines.append(f"{index}. {product['name']} - {product['price']} {'جنيه' if arabic else 'EGP'}")
                if product.get("shop"):
                    lines.append(f"   {'من متجر' if arabic else 'From shop'}: {product['shop']['name']}")
                if product.get("category"):
                    lines.append(f"   {'الفئة' if arabic else 'Category'}: {product['category']}")
                if product.get("isHotOffer"):
                    lines.append("   🔥 عرض ساخن" if arabic else "   🔥 Hot Offer")
                if product.get("averageRating", 0) > 0:
                    stars, reviews = product["averageRating"], product["totalReviews"]
                    lines.append(f"   ⭐ {stars} نجوم ({reviews} مراجعة)" if arabic
                                 else f"   ⭐ {stars} stars ({reviews} reviews)")
                lines.append("")
        else:
            lines = [f"وجدت {len(items)} متجر(ات) متعلق(ة) ببحثك:" if arabic
                     else f"I found {len(items)} shop(s) related to your search:", ""]
            for index, shop in enumerate(items, 1):
                lines.append(f"{index}. {shop['name']}")
                if shop.get("category"):
                    lines.append(f"   {'الفئة' if arabic else 'Category'}: {shop['category']}")
                if shop.get("mobile"):
                    lines.append(f"   📞 {'الهاتف' if arabic else 'Phone'}: {shop['mobile']}")
                if shop.get("whatsapp"):
                    lines.append(f"   💬 {'واتساب' if arabic else 'WhatsApp'}: {shop['whatsapp']}")
                lines.append("")
        return "\n".join(lines)

    names = [c["name"] for c in categories[:5]]
    if arabic:
        lines = [f"لم أجد نتائج مطابقة لبحثك \"{message}\".", ""]
        if names:
            lines += [f"يمكنك البحث في الفئات التالية: {'، '.join(names)}.", ""]
        lines += ["جرب البحث بـ:", "- اسم المنتج أو نوعه (مثل: لابتوب، هاتف، ملابس)",
                  "- نطاق السعر (مثل: أقل من 1000 جنيه)", "- اسم الفئة", "- اسم المتجر"]
    else:
        lines = [f"I couldn't find results matching \"{message}\".", ""]
        if names:
            lines += [f"You can search in these categories: {', '.join(names)}.", ""]
        lines += ["Try searching by:", "- Product name or type (e.g., laptop, phone, clothing)",
                  "- Price range (e.g., under 1000 EGP)", "- Category name", "- Shop name"]
    return "\n".join(lines)


def chat(message: str, language: str = "en", history: Optional[List[Dict]] = None) -> Dict:
    message = message.strip()
    search_results, context = [], ""

    if config.AI_ENABLE_PRODUCT_SEARCH:
        products = search_products(message)
        if products:
            search_results.append({"type": "products", "data": products})
            context += f"\n\nAvailable Products:\n{json.dumps(products, ensure_ascii=False, indent=2)}"

    if config.AI_ENABLE_SHOP_SEARCH and (is_shop_query(message) or not search_results):
        shops = search_shops(message)
        if shops:
            search_results.append({"type": "shops", "data": shops})
            context += f"\n\nAvailable Shops:\n{json.dumps(shops, ensure_ascii=False, indent=2)}"

    categories = active_categories()
    if categories:
        context += f"\n\nAvailable Categories: {', '.join(c['name'] for c in categories)}"

    answer = ask_llm(build_messages(get_system_prompt(language), message, context, history or []))
    if not answer:
        answer = templated_response(search_results, language, message, categories)
    return {"response": answer, "searchResults": search_results}

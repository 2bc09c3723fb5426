"""
MongoDB access for the iDream API.

`db` is the shared database handle. Collection names are the lowercase
schema class names (see schemas.py).
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument

import config

logger = logging.getLogger(__name__)

_client = MongoClient(config.DATABASE_URL, tz_aware=True)
db = _client[config.DATABASE_NAME]

# (collection, keys) pairs that must stay unique
UNIQUE_INDEXES = [
    ("user", [("email", ASCENDING)]),
    ("role", [("name", ASCENDING)]),
    ("permission", [("name", ASCENDING)]),
    ("shop", [("email", ASCENDING)]),
    ("page", [("slug", ASCENDING)]),
    ("billingcycle", [("name", ASCENDING)]),
    ("subscriptionplanlimit", [("subscription_plan_id", ASCENDING), ("limit_key", ASCENDING)]),
    ("subscriptionpricing", [("subscription_plan_id", ASCENDING), ("billing_cycle_id", ASCENDING)]),
    ("shopsubscription", [("shop_id", ASCENDING)]),
    ("subscriptionusage", [("shop_id", ASCENDING), ("limit_key", ASCENDING)]),
    ("orderlog", [("order_number", ASCENDING)]),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_indexes():
    for collection_name, keys in UNIQUE_INDEXES:
        db[collection_name].create_index(keys, unique=True)
    logger.info("Ensured %d unique indexes", len(UNIQUE_INDEXES))


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort=None):
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(collection_name: str, doc_id: Union[str, ObjectId], changes: dict) -> Optional[dict]:
    """Apply ``$set`` changes, stamp ``updated_at`` and return the updated document."""
    oid = doc_id if isinstance(doc_id, ObjectId) else ObjectId(doc_id)
    return db[collection_name].find_one_and_update(
        {"_id": oid},
        {"$set": {**changes, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def ping() -> bool:
    try:
        db.list_collection_names()
        return True
    except Exception as exc:
        logger.warning("Database ping failed: %s", exc)
        return False

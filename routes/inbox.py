"""
Shared admin workflow for inbound messages (career/idea/expert requests and
contact requests): paginated listing, status counters, mark-as-read, status
updates and deletion. Status moves new -> read -> replied -> archived.
"""
from math import ceil
from typing import Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel

from database import db, update_document, utcnow
from helpers import get_or_404, ilike, parse_bool, populate, populate_many, serialize, to_obj_id
from schemas import InboxStatus

STATUSES = ("new", "read", "replied", "archived")


class StatusUpdate(BaseModel):
    status: Optional[InboxStatus] = None
    notes: Optional[str] = None


def present(doc: Dict) -> Dict:
    doc = serialize(doc)
    populate(doc, "read_by", "user", "read_by_user", ("email",))
    return populate(doc, "replied_by", "user", "replied_by_user", ("email",))


def list_inbox(collection_name: str, query: Dict, search: Optional[str], search_fields: List[str],
               is_read: Optional[str], page: int, limit: int) -> Dict:
    if is_read is not None:
        query["is_read"] = parse_bool(is_read)
    if search:
        query["$or"] = [{field: ilike(search)} for field in search_fields]
    page, limit = max(page, 1), max(limit, 1)
    total = db[collection_name].count_documents(query)
    docs = [serialize(d) for d in db[collection_name].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)]
    populate_many(docs, "read_by", "user", "read_by_user", ("email",))
    return {"items": docs, "pagination": {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit)}}


def inbox_stats(collection_name: str, query: Optional[Dict] = None) -> Dict:
    query = query or {}
    stats = {"total": db[collection_name].count_documents(query)}
    for status in STATUSES:
        stats[status] = db[collection_name].count_documents({**query, "status": status})
    return stats


def mark_read(collection_name: str, doc_id: str, actor: Dict, not_found: str) -> Dict:
    doc = get_or_404(collection_name, doc_id, not_found)
    changes = {"is_read": True, "read_at": utcnow(), "read_by": actor["id"]}
    if doc.get("status") == "new":
        changes["status"] = "read"
    return present(update_document(collection_name, doc["_id"], changes))


def update_status(collection_name: str, doc_id: str, payload: StatusUpdate, actor: Dict, not_found: str) -> Dict:
    doc = get_or_404(collection_name, doc_id, not_found)
    changes = {}
    if payload.status:
        changes["status"] = payload.status
        if payload.status == "replied":
            changes["replied_at"] = utcnow()
            changes["replied_by"] = actor["id"]
    if payload.notes is not None:
        changes["notes"] = payload.notes
    return present(update_document(collection_name, doc["_id"], changes))


def delete_entry(collection_name: str, doc_id: str, not_found: str) -> None:
    result = db[collection_name].delete_one({"_id": to_obj_id(doc_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail=not_found)

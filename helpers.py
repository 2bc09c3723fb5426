import json
import re
from datetime import datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from fastapi import HTTPException

from database import db

EGYPTIAN_PHONE_RE = re.compile(r"^\+20\d{10}$")
PRIVATE_USER_FIELDS = ("password", "otp", "otp_expires_at")


def to_obj_id(id_str: str) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not id_str or not ObjectId.is_valid(str(id_str)):
        raise HTTPException(status_code=400, detail="Invalid id")
    return ObjectId(str(id_str))


def serialize(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def serialize_user(doc: Optional[Dict]) -> Optional[Dict]:
    d = serialize(doc)
    if d:
        for field in PRIVATE_USER_FIELDS:
            d.pop(field, None)
    return d


def get_or_404(collection_name: str, doc_id: str, detail: str = "Not found") -> Dict:
    doc = db[collection_name].find_one({"_id": to_obj_id(doc_id)})
    if not doc:
        raise HTTPException(status_code=404, detail=detail)
    return doc


def find_by_ref(collection_name: str, ref: Optional[str], fields: Optional[Iterable[str]] = None) -> Optional[Dict]:
    """Load a referenced document by string id, optionally projected."""
    if not ref or not ObjectId.is_valid(str(ref)):
        return None
    projection = {f: 1 for f in fields} if fields else None
    return serialize(db[collection_name].find_one({"_id": ObjectId(str(ref))}, projection))


def populate(doc: Dict, ref_field: str, collection_name: str, target: str, fields: Optional[Iterable[str]] = None) -> Dict:
    """Resolve ``doc[ref_field]`` into ``doc[target]`` (None when missing)."""
    doc[target] = find_by_ref(collection_name, doc.get(ref_field), fields)
    return doc


def populate_many(docs: List[Dict], ref_field: str, collection_name: str, target: str, fields: Optional[Iterable[str]] = None) -> List[Dict]:
    ids = {d.get(ref_field) for d in docs if d.get(ref_field) and ObjectId.is_valid(str(d.get(ref_field)))}
    projection = {f: 1 for f in fields} if fields else None
    found = {}
    if ids:
        for ref in db[collection_name].find({"_id": {"$in": [ObjectId(i) for i in ids]}}, projection):
            found[str(ref["_id"])] = serialize(ref)
    for d in docs:
        d[target] = found.get(d.get(ref_field))
    return docs


def ilike(text: str) -> Dict[str, Any]:
    return {"$regex": re.escape(text), "$options": "i"}


def parse_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def parse_number(value: Any, cast=float, default=None):
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def parse_string_list(value: Any) -> List[str]:
    """Accept a list, a JSON array string or comma separated text."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    text = str(value).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
            if isinstance(parsed, list):
                return [str(v).strip() for v in parsed if str(v).strip()]
        except ValueError:
            pass
    return [part.strip() for part in text.split(",") if part.strip()]


def is_egyptian_phone(value: Optional[str]) -> bool:
    return bool(value) and bool(EGYPTIAN_PHONE_RE.match(value.replace(" ", "")))


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


def date_range_filter(from_date: Any = None, to_date: Any = None, field: str = "created_at",
                      whole_day: bool = False) -> Dict[str, Any]:
    start, end = parse_date(from_date), parse_date(to_date)
    if start is None and end is None:
        return {}
    bounds = {}
    if start is not None:
        bounds["$gte"] = start
    if end is not None:
        if whole_day:
            end = datetime.combine(end.date(), time.max, tzinfo=timezone.utc)
        bounds["$lte"] = end
    return {field: bounds}

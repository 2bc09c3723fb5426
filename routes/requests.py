import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from database import create_document
from helpers import get_or_404
from routes import inbox
from schemas import Request as RequestSchema
from security import SUPER_ADMIN, authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/requests", tags=["requests"])

admin_only = authorize(SUPER_ADMIN)

SEARCH_FIELDS = [
    "full_name", "email", "position_of_interest", "cover_letter", "idea_title",
    "brief_idea_description", "company_name", "service_needed", "project_details",
]

# type -> (required fields, message)
REQUIRED_BY_TYPE = {
    "join-our-team": (
        ("position_of_interest", "cover_letter"),
        "Position of interest and cover letter are required for Join Our Team requests",
    ),
    "new-ideas": (
        ("idea_title", "brief_idea_description"),
        "Idea title and brief idea description are required for New Ideas requests",
    ),
    "hire-expert": (
        ("service_needed", "project_details"),
        "Service needed and project details are required for Hire Expert requests",
    ),
}


class RequestPayload(BaseModel):
    type: Optional[Literal["join-our-team", "new-ideas", "hire-expert"]] = None
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    position_of_interest: Optional[str] = None
    cover_letter: Optional[str] = None
    idea_title: Optional[str] = None
    brief_idea_description: Optional[str] = None
    company_name: Optional[str] = None
    service_needed: Optional[str] = None
    project_details: Optional[str] = None


@router.post("", status_code=201)
def submit_request(payload: RequestPayload):
    if not payload.type or not (payload.full_name or "").strip() or not payload.email:
        raise HTTPException(status_code=400, detail="Type, full name, and email are required")
    data = {k: v.strip() if isinstance(v, str) else v for k, v in payload.model_dump().items()}
    fields, message = REQUIRED_BY_TYPE[payload.type]
    if not all(data.get(field) for field in fields):
        raise HTTPException(status_code=400, detail=message)
    data["email"] = data["email"].lower()
    request_id = create_document("request", RequestSchema(**data))
    logger.info("New %s request %s", payload.type, request_id)
    return {"message": "Request submitted successfully", "id": request_id}


@router.get("")
def list_requests(type: Optional[str] = None, status: Optional[str] = None, is_read: Optional[str] = None,
                  search: Optional[str] = None, page: int = 1, limit: int = 20,
                  current_user: dict = Depends(admin_only)):
    query = {}
    if type:
        query["type"] = type
    if status:
        query["status"] = status
    result = inbox.list_inbox("request", query, search, SEARCH_FIELDS, is_read, page, limit)
    return {"requests": result["items"], "pagination": result["pagination"]}


@router.get("/stats")
def request_stats(type: Optional[str] = None, current_user: dict = Depends(admin_only)):
    return inbox.inbox_stats("request", {"type": type} if type else None)


@router.get("/{request_id}")
def get_request(request_id: str, current_user: dict = Depends(admin_only)):
    return inbox.present(get_or_404("request", request_id, "Request not found"))


@router.patch("/{request_id}/read")
def mark_request_read(request_id: str, current_user: dict = Depends(admin_only)):
    request = inbox.mark_read("request", request_id, current_user, "Request not found")
    return {"message": "Request marked as read", "request": request}


@router.patch("/{request_id}/status")
def update_request_status(request_id: str, payload: inbox.StatusUpdate, current_user: dict = Depends(admin_only)):
    request = inbox.update_status("request", request_id, payload, current_user, "Request not found")
    return {"message": "Request updated successfully", "request": request}


@router.delete("/{request_id}")
def delete_request(request_id: str, current_user: dict = Depends(admin_only)):
    inbox.delete_entry("request", request_id, "Request not found")
    return {"message": "Request deleted successfully"}

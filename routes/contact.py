import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from database import create_document
from helpers import get_or_404
from routes import inbox
from schemas import ContactRequest as ContactRequestSchema
from security import SUPER_ADMIN, authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])

admin_only = authorize(SUPER_ADMIN)

NOT_FOUND = "Contact request not found"


class ContactPayload(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    service: Optional[str] = None
    message: Optional[str] = None


@router.post("", status_code=201)
def submit_contact_request(payload: ContactPayload):
    data = {k: v.strip() if isinstance(v, str) else v for k, v in payload.model_dump().items()}
    if not all(data.values()):
        raise HTTPException(status_code=400, detail="All fields are required")
    data["email"] = data["email"].lower()
    contact_id = create_document("contactrequest", ContactRequestSchema(**data))
    logger.info("New contact request %s", contact_id)
    return {"message": "Contact request submitted successfully", "id": contact_id}


@router.get("")
def list_contact_requests(status: Optional[str] = None, is_read: Optional[str] = None, search: Optional[str] = None,
                          page: int = 1, limit: int = 20, current_user: dict = Depends(admin_only)):
    query = {"status": status} if status else {}
    result = inbox.list_inbox("contactrequest", query, search, ["name", "email", "service", "message"],
                              is_read, page, limit)
    return {"contactRequests": result["items"], "pagination": result["pagination"]}


@router.get("/stats")
def contact_stats(current_user: dict = Depends(admin_only)):
    return inbox.inbox_stats("contactrequest")


@router.get("/{contact_id}")
def get_contact_request(contact_id: str, current_user: dict = Depends(admin_only)):
    return inbox.present(get_or_404("contactrequest", contact_id, NOT_FOUND))


@router.patch("/{contact_id}/read")
def mark_contact_read(contact_id: str, current_user: dict = Depends(admin_only)):
    contact = inbox.mark_read("contactrequest", contact_id, current_user, NOT_FOUND)
    return {"message": "Contact request marked as read", "contactRequest": contact}


@router.patch("/{contact_id}/status")
def update_contact_status(contact_id: str, payload: inbox.StatusUpdate, current_user: dict = Depends(admin_only)):
    contact = inbox.update_status("contactrequest", contact_id, payload, current_user, NOT_FOUND)
    return {"message": "Contact request updated successfully", "contactRequest": contact}


@router.delete("/{contact_id}")
def delete_contact_request(contact_id: str, current_user: dict = Depends(admin_only)):
    inbox.delete_entry("contactrequest", contact_id, NOT_FOUND)
    return {"message": "Contact request deleted successfully"}

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import create_document, db, update_document
from helpers import get_or_404, parse_bool, populate_many, serialize, to_obj_id
from schemas import Video as VideoSchema
from security import SUPER_ADMIN, authorize

router = APIRouter(prefix="/api/videos", tags=["videos"])

admin_only = authorize(SUPER_ADMIN)


class VideoPayload(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None
    priority: int = Field(0, ge=0)
    is_active: bool = True


class VideoUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PriorityEntry(BaseModel):
    id: str
    priority: int


class PriorityUpdate(BaseModel):
    videos: List[PriorityEntry]


def sorted_videos(query: Optional[dict] = None):
    videos = [serialize(v) for v in db["video"].find(query or {}).sort([("priority", -1), ("created_at", -1)])]
    return populate_many(videos, "created_by", "user", "created_by_user", ("email",))


@router.get("")
def list_videos(is_active: Optional[str] = None):
    query = {}
    if is_active is not None:
        query["is_active"] = parse_bool(is_active)
    return sorted_videos(query)


@router.get("/{video_id}")
def get_video(video_id: str):
    return serialize(get_or_404("video", video_id, "Video not found"))


@router.post("", status_code=201)
def create_video(payload: VideoPayload, current_user: dict = Depends(admin_only)):
    if not payload.video_url:
        raise HTTPException(status_code=400, detail="Video URL or video file is required")
    video_id = create_document("video", VideoSchema(**payload.model_dump(), created_by=current_user["id"]))
    return serialize(db["video"].find_one({"_id": to_obj_id(video_id)}))


@router.patch("/priority/update")
def update_priority(payload: PriorityUpdate, current_user: dict = Depends(admin_only)):
    for entry in payload.videos:
        update_document("video", to_obj_id(entry.id), {"priority": max(entry.priority, 0), "updated_by": current_user["id"]})
    return sorted_videos()


@router.put("/{video_id}")
def update_video(video_id: str, payload: VideoUpdate, current_user: dict = Depends(admin_only)):
    get_or_404("video", video_id, "Video not found")
    changes = payload.model_dump(exclude_unset=True)
    if "video_url" in changes and not changes["video_url"]:
        changes.pop("video_url")
    changes["updated_by"] = current_user["id"]
    return serialize(update_document("video", video_id, changes))


@router.delete("/{video_id}")
def delete_video(video_id: str, current_user: dict = Depends(admin_only)):
    result = db["video"].delete_one({"_id": to_obj_id(video_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Video not found")
    return {"message": "Video deleted successfully"}


@router.patch("/{video_id}/toggle")
def toggle_video(video_id: str, current_user: dict = Depends(admin_only)):
    video = get_or_404("video", video_id, "Video not found")
    return serialize(update_document("video", video_id, {
        "is_active": not video.get("is_active", True),
        "updated_by": current_user["id"],
    }))

from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

import ai_chat
from database import utcnow

router = APIRouter(prefix="/api/ai", tags=["ai"])


class ChatPayload(BaseModel):
    message: Optional[str] = None
    language: Literal["en", "ar"] = "en"
    conversationHistory: List[Dict] = Field(default_factory=list)


@router.post("/chat")
def chat(payload: ChatPayload):
    if not (payload.message or "").strip():
        raise HTTPException(status_code=400, detail="Message is required")
    result = ai_chat.chat(payload.message, payload.language, payload.conversationHistory)
    result["timestamp"] = utcnow()
    return result


@router.get("/prompt")
def get_prompt(language: Literal["en", "ar"] = "en"):
    return {"prompt": ai_chat.get_system_prompt(language), "language": language}

"""Chatbot response payload."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChatResponse(BaseModel):
    """Structured result returned to the caller for every request."""

    success: bool
    response: str
    confidence: float = Field(default=0.0, ge=0, le=1)
    similarity: float = Field(default=0.0, ge=0, le=1)
    category: str = "general"
    matched_question: Optional[str] = None
    match_type: Optional[str] = None
    timestamp: str = Field(default_factory=_utc_now)
    error: Optional[str] = None
    message: Optional[str] = None
    correlation_id: Optional[str] = None

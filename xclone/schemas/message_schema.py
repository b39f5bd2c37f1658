from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from xclone.schemas.user_schema import UserSummary


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    recipient_id: int
    text: Optional[str] = None
    media: List[str] = []
    is_read: bool = False
    created_at: datetime


class ConversationSummary(BaseModel):
    """One row of the inbox: the counterpart, the last message and unread count"""
    user: UserSummary
    last_message: MessageResponse
    unread_count: int = 0

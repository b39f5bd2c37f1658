from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum

from xclone.schemas.user_schema import UserSummary


class NotificationType(str, Enum):
    LIKE = "like"
    REPLY = "reply"
    RETWEET = "retweet"
    FOLLOW = "follow"
    MENTION = "mention"
    MESSAGE = "message"
    SYSTEM = "system"


class NotificationTweet(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: NotificationType
    is_read: bool = False
    created_at: datetime
    from_user: Optional[UserSummary] = None
    tweet: Optional[NotificationTweet] = None

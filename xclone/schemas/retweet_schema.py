from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from xclone.schemas.user_schema import UserSummary
from xclone.schemas.tweet_schema import TweetResponse


class RetweetCreate(BaseModel):
    comment: Optional[str] = Field(None, max_length=280)


class RetweetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    tweet_id: int
    comment: Optional[str] = None
    created_at: datetime
    user: Optional[UserSummary] = None
    tweet: Optional[TweetResponse] = None


class RetweetStatus(BaseModel):
    is_retweeted: bool
    retweet_id: Optional[int] = None
    comment: Optional[str] = None

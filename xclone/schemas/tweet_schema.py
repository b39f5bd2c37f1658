from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum

from xclone.schemas.user_schema import UserSummary


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"


class TweetBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    media: List[str] = []
    visibility: Visibility = Visibility.PUBLIC
    is_reply: bool = False
    reply_to_id: Optional[int] = None
    is_quote: bool = False
    quote_of_id: Optional[int] = None
    pinned: bool = False
    likes_count: int = 0
    replies_count: int = 0
    retweet_count: int = 0
    created_at: datetime
    updated_at: datetime


class QuotedTweet(TweetBase):
    author: Optional[UserSummary] = None


class TweetResponse(TweetBase):
    """Tweet as seen by one viewer"""
    author: Optional[UserSummary] = None
    quoted_tweet: Optional[QuotedTweet] = None
    is_liked: bool = False
    is_retweeted: bool = False
    is_bookmarked: bool = False
    is_following_author: bool = False

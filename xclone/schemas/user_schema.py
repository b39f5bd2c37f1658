from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime, date


class UserSummary(BaseModel):
    """Compact author/actor view embedded in other resources"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: Optional[str] = None
    full_name: str
    avatar_url: Optional[str] = None
    is_verified: bool = False


class UserPublic(UserSummary):
    bio: str = ""
    location: Optional[str] = None
    website: Optional[str] = None
    banner_url: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0
    tweets_count: int = 0
    created_at: datetime


class UserResponse(UserPublic):
    """The signed in user's own account"""
    email: str
    birth_date: Optional[date] = None
    last_login_at: Optional[datetime] = None


class UserProfile(UserPublic):
    # Relationship status with current user
    is_following: bool = False
    follows_you: bool = False
    is_self: bool = False


class UserListItem(UserSummary):
    bio: str = ""
    followers_count: int = 0
    is_following: bool = False


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=160)
    location: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=255)


class UsernameSuggestions(BaseModel):
    usernames: List[str]

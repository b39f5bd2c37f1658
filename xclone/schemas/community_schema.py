from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from xclone.schemas.user_schema import UserSummary


class CommunityRole(str, Enum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"


class CommunityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_private: bool = False


class CommunityUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_private: Optional[bool] = None


class CommunityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    creator_id: int
    is_private: bool = False
    members_count: int = 0
    created_at: datetime


class MemberResponse(BaseModel):
    role: CommunityRole
    joined_at: datetime
    user: UserSummary


class MembershipResponse(BaseModel):
    role: CommunityRole
    joined_at: datetime
    community: CommunityResponse


class MemberRoleUpdate(BaseModel):
    role: str

from pydantic import BaseModel


class FollowToggleResponse(BaseModel):
    following: bool
    followers_count: int
    following_count: int

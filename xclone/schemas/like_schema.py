from pydantic import BaseModel


class LikeToggleResponse(BaseModel):
    liked: bool
    likes_count: int


class BookmarkToggleResponse(BaseModel):
    bookmarked: bool

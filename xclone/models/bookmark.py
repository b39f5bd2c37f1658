from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, Index
from xclone.db.base import BaseModel


class Bookmark(BaseModel):
    __tablename__ = "bookmarks"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tweet_id = Column(Integer, ForeignKey("tweets.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'tweet_id', name='unique_bookmark'),
        Index('ix_bookmarks_user_id', 'user_id'),
    )

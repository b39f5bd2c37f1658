from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, Index
from xclone.db.base import BaseModel


class Like(BaseModel):
    __tablename__ = "likes"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tweet_id = Column(Integer, ForeignKey("tweets.id", ondelete="CASCADE"), nullable=False)

    # prevent duplicate likes at DB level
    __table_args__ = (
        UniqueConstraint('user_id', 'tweet_id', name='unique_like'),
        Index('ix_likes_tweet_id', 'tweet_id'),
        Index('ix_likes_user_id', 'user_id'),
    )

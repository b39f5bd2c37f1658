from sqlalchemy import Column, Integer, ForeignKey, Text, UniqueConstraint, Index
from xclone.db.base import BaseModel


class Retweet(BaseModel):
    __tablename__ = "retweets"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tweet_id = Column(Integer, ForeignKey("tweets.id", ondelete="CASCADE"), nullable=False)
    comment = Column(Text, nullable=True)  # set for quote retweets

    __table_args__ = (
        UniqueConstraint('user_id', 'tweet_id', name='unique_retweet'),
        Index('ix_retweets_user_id', 'user_id'),
        Index('ix_retweets_tweet_id', 'tweet_id'),
    )

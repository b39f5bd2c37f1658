from sqlalchemy import Column, String, Text, Integer, ForeignKey, Boolean, JSON, Index
from xclone.db.base import BaseModel


class Tweet(BaseModel):
    __tablename__ = "tweets"

    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    media = Column(JSON, default=list, nullable=False)  # list of media URLs
    reply_to_id = Column(Integer, ForeignKey("tweets.id", ondelete="SET NULL"), nullable=True)
    is_reply = Column(Boolean, default=False, nullable=False)
    quote_of_id = Column(Integer, ForeignKey("tweets.id", ondelete="SET NULL"), nullable=True)
    is_quote = Column(Boolean, default=False, nullable=False)
    visibility = Column(String(20), default="public", nullable=False)  # public, private, protected
    pinned = Column(Boolean, default=False, nullable=False)

    # Denormalized counts for performance
    likes_count = Column(Integer, default=0, nullable=False)
    replies_count = Column(Integer, default=0, nullable=False)
    retweet_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_tweets_author_created', 'author_id', 'created_at'),
        Index('ix_tweets_created_at', 'created_at'),
        Index('ix_tweets_reply_to_id', 'reply_to_id'),
        Index('ix_tweets_visibility', 'visibility'),
    )

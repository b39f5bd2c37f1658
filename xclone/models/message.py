from sqlalchemy import Column, Integer, ForeignKey, Text, Boolean, JSON, Index
from xclone.db.base import BaseModel


class Message(BaseModel):
    __tablename__ = "messages"

    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=True)
    media = Column(JSON, default=list, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('ix_messages_pair_created', 'sender_id', 'recipient_id', 'created_at'),
        Index('ix_messages_recipient_read', 'recipient_id', 'is_read'),
    )

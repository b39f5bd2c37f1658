from sqlalchemy import Column, String, Text, Integer, ForeignKey, Boolean, Index
from xclone.db.base import BaseModel


class AIConversation(BaseModel):
    """A named AI chat thread owned by a user"""
    __tablename__ = "ai_conversations"

    name = Column(String(100), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class AIMessage(BaseModel):
    """One turn of an AI chat thread, either the user's or the assistant's"""
    __tablename__ = "ai_messages"

    conversation_id = Column(Integer, ForeignKey("ai_conversations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    is_ai = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('ix_ai_messages_conversation_created', 'conversation_id', 'created_at'),
        Index('ix_ai_messages_user_id', 'user_id'),
    )

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class AIConversationCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)


class AIConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class AIPrompt(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class AIMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    message: str
    is_ai: bool
    created_at: datetime
    updated_at: datetime


class AIExchange(BaseModel):
    user_message: AIMessageResponse
    ai_response: AIMessageResponse

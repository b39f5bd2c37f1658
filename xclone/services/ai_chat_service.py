from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, desc, asc, func
import logging

from xclone.config import settings
from xclone.models.ai_chat import AIConversation, AIMessage
from xclone.schemas.ai_chat_schema import AIConversationResponse, AIExchange, AIMessageResponse
from xclone.services.ai_client import AIClientError, OpenAIChatClient
from xclone.utils.errors import APIError
from xclone.utils.pagination import paginate, paginated

logger = logging.getLogger(__name__)


def build_prompt(history: List[AIMessage], message: str) -> str:
    """Previous turns as `User:`/`AI:` lines followed by the new question"""
    lines = [f"{'AI' if m.is_ai else 'User'}: {m.message}" for m in history]
    lines.append(f"User: {message}")
    lines.append("AI:")
    return "\n".join(lines)


class AIChatService:
    def __init__(self, db: AsyncSession, client: Optional[OpenAIChatClient] = None):
        self.db = db
        self.client = client

    async def get_conversation_or_404(self, conversation_id: int, user_id: int) -> AIConversation:
        conversation = await self.db.get(AIConversation, conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise APIError(404, "Conversation not found")
        return conversation

    async def get_message_or_404(self, message_id: int, user_id: int) -> AIMessage:
        message = await self.db.get(AIMessage, message_id)
        if message is None or message.user_id != user_id:
            raise APIError(404, "Message not found")
        return message

    async def create_conversation(self, user_id: int, name: Optional[str] = None) -> AIConversationResponse:
        name = (name or "").strip() or f"AIChat_{int(datetime.utcnow().timestamp() * 1000)}"
        conversation = AIConversation(name=name, user_id=user_id)
        self.db.add(conversation)
        await self.db.flush()

        logger.info(f"User {user_id} started AI conversation {conversation.id}")
        return AIConversationResponse.model_validate(conversation)

    async def list_conversations(self, user_id: int) -> List[AIConversationResponse]:
        """The user's conversations, most recently updated first, with message counts"""
        counts = (
            select(AIMessage.conversation_id, func.count(AIMessage.id).label("message_count"))
            .group_by(AIMessage.conversation_id)
            .subquery()
        )
        result = await self.db.execute(
            select(AIConversation, func.coalesce(counts.c.message_count, 0))
            .outerjoin(counts, counts.c.conversation_id == AIConversation.id)
            .where(AIConversation.user_id == user_id)
            .order_by(desc(AIConversation.updated_at), desc(AIConversation.id))
        )
        return [
            AIConversationResponse.model_validate(conversation).model_copy(update={"message_count": count})
            for conversation, count in result.all()
        ]

    async def delete_conversation(self, conversation_id: int, user_id: int) -> None:
        conversation = await self.get_conversation_or_404(conversation_id, user_id)
        await self.db.execute(delete(AIMessage).where(AIMessage.conversation_id == conversation_id))
        await self.db.delete(conversation)
        await self.db.flush()
        logger.info(f"User {user_id} deleted AI conversation {conversation_id}")

    async def _exchange(self, conversation: AIConversation, user_id: int, message: str, prompt: str) -> AIExchange:
        """
        Store the user's message, ask the AI and store its reply.

        Both rows are only flushed; a provider failure raises and the request
        transaction rolls back, so no half exchange is kept.
        """
        if self.client is None:
            raise APIError(503, "AI service is not configured")

        user_message = AIMessage(conversation_id=conversation.id, user_id=user_id, message=message, is_ai=False)
        self.db.add(user_message)
        await self.db.flush()

        try:
            reply = await self.client.generate(prompt)
        except AIClientError as e:
            raise APIError(500, f"Failed to get AI response: {e}")

        ai_message = AIMessage(conversation_id=conversation.id, user_id=user_id, message=reply, is_ai=True)
        self.db.add(ai_message)
        conversation.updated_at = datetime.utcnow()
        await self.db.flush()

        return AIExchange(
            user_message=AIMessageResponse.model_validate(user_message),
            ai_response=AIMessageResponse.model_validate(ai_message),
        )

    async def ask(self, conversation_id: int, user_id: int, message: str) -> AIExchange:
        conversation = await self.get_conversation_or_404(conversation_id, user_id)
        message = message.strip()
        if not message:
            raise APIError(400, "Message is required")
        return await self._exchange(conversation, user_id, message, message)

    async def continue_conversation(self, conversation_id: int, user_id: int, message: str) -> AIExchange:
        """Like ask, with the latest turns of the conversation as context"""
        conversation = await self.get_conversation_or_404(conversation_id, user_id)
        message = message.strip()
        if not message:
            raise APIError(400, "Message is required")

        result = await self.db.execute(
            select(AIMessage)
            .where(AIMessage.conversation_id == conversation_id)
            .order_by(desc(AIMessage.created_at), desc(AIMessage.id))
            .limit(settings.AI_CONTEXT_MESSAGES)
        )
        history = list(reversed(result.scalars().all()))
        return await self._exchange(conversation, user_id, message, build_prompt(history, message))

    async def list_messages(self, conversation_id: int, user_id: int, page: int, limit: int) -> dict:
        await self.get_conversation_or_404(conversation_id, user_id)
        stmt = (
            select(AIMessage)
            .where(AIMessage.conversation_id == conversation_id)
            .order_by(asc(AIMessage.created_at), asc(AIMessage.id))
        )
        messages, total = await paginate(self.db, stmt, page, limit)
        return paginated("messages", [AIMessageResponse.model_validate(m) for m in messages], page, limit, total)

    async def get_message(self, message_id: int, user_id: int) -> AIMessageResponse:
        return AIMessageResponse.model_validate(await self.get_message_or_404(message_id, user_id))

    async def update_message(self, message_id: int, user_id: int, text: str) -> AIMessageResponse:
        message = await self.get_message_or_404(message_id, user_id)
        if message.is_ai:
            raise APIError(403, "AI responses cannot be edited")

        text = text.strip()
        if not text:
            raise APIError(400, "Message is required")

        message.message = text
        message.updated_at = datetime.utcnow()
        await self.db.flush()
        return AIMessageResponse.model_validate(message)

    async def delete_message(self, message_id: int, user_id: int) -> None:
        message = await self.get_message_or_404(message_id, user_id)
        await self.db.delete(message)
        await self.db.flush()

    async def delete_all_messages(self, conversation_id: int, user_id: int) -> int:
        await self.get_conversation_or_404(conversation_id, user_id)
        result = await self.db.execute(
            delete(AIMessage).where(AIMessage.conversation_id == conversation_id)
        )
        return result.rowcount

    async def get_stats(self, user_id: int) -> dict:
        """Message counts and lengths split by author type"""
        result = await self.db.execute(
            select(
                AIMessage.is_ai,
                func.count(AIMessage.id),
                func.coalesce(func.sum(func.length(AIMessage.message)), 0),
                func.avg(func.length(AIMessage.message)),
            )
            .where(AIMessage.user_id == user_id)
            .group_by(AIMessage.is_ai)
        )

        stats = {
            "user_messages": {"count": 0, "total_length": 0, "avg_length": 0.0},
            "ai_messages": {"count": 0, "total_length": 0, "avg_length": 0.0},
        }
        for is_ai, count, total_length, avg_length in result.all():
            stats["ai_messages" if is_ai else "user_messages"] = {
                "count": count,
                "total_length": int(total_length),
                "avg_length": round(float(avg_length or 0), 2),
            }
        stats["total_messages"] = stats["user_messages"]["count"] + stats["ai_messages"]["count"]
        return stats

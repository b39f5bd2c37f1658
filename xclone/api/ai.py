from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.schemas.ai_chat_schema import AIConversationCreate, AIPrompt
from xclone.services.ai_chat_service import AIChatService
from xclone.services.ai_client import OpenAIChatClient, get_ai_client
from xclone.services.auth_service import get_current_user
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/conversations", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    data: AIConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Start a new AI conversation"""
    try:
        conversation = await AIChatService(db).create_conversation(current_user.id, data.name)
        return envelope(201, conversation, "Conversation created successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error creating AI conversation: {e}")
        raise APIError(500, "Failed to create conversation")


@router.get("/conversations")
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        conversations = await AIChatService(db).list_conversations(current_user.id)
        return envelope(200, conversations, "Conversations fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error listing AI conversations of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch conversations")


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a conversation and all of its messages"""
    try:
        await AIChatService(db).delete_conversation(conversation_id, current_user.id)
        return envelope(200, None, "Conversation deleted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error deleting AI conversation {conversation_id}: {e}")
        raise APIError(500, "Failed to delete conversation")


@router.post("/conversations/{conversation_id}/ask", status_code=status.HTTP_201_CREATED)
async def ask(
    conversation_id: int,
    data: AIPrompt,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: OpenAIChatClient = Depends(get_ai_client)
):
    """Ask a single question without conversation context"""
    try:
        exchange = await AIChatService(db, client).ask(conversation_id, current_user.id, data.message)
        return envelope(201, exchange, "AI response generated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error asking AI in conversation {conversation_id}: {e}")
        raise APIError(500, "Failed to get AI response")


@router.post("/conversations/{conversation_id}/continue", status_code=status.HTTP_201_CREATED)
async def continue_conversation(
    conversation_id: int,
    data: AIPrompt,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: OpenAIChatClient = Depends(get_ai_client)
):
    """Ask with the latest turns of the conversation as context"""
    try:
        exchange = await AIChatService(db, client).continue_conversation(conversation_id, current_user.id, data.message)
        return envelope(201, exchange, "AI response generated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error continuing AI conversation {conversation_id}: {e}")
        raise APIError(500, "Failed to get AI response")


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        messages = await AIChatService(db).list_messages(conversation_id, current_user.id, page, limit)
        return envelope(200, messages, "Messages fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error listing messages of AI conversation {conversation_id}: {e}")
        raise APIError(500, "Failed to fetch messages")


@router.delete("/conversations/{conversation_id}/messages")
async def delete_all_messages(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Clear a conversation but keep it"""
    try:
        deleted = await AIChatService(db).delete_all_messages(conversation_id, current_user.id)
        return envelope(200, {"deleted": deleted}, "Messages deleted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error clearing AI conversation {conversation_id}: {e}")
        raise APIError(500, "Failed to delete messages")


@router.get("/stats")
async def get_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Message counts and lengths of the current user's AI chats"""
    try:
        stats = await AIChatService(db).get_stats(current_user.id)
        return envelope(200, stats, "Stats fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error computing AI stats of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch stats")


@router.get("/messages/{message_id}")
async def get_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message = await AIChatService(db).get_message(message_id, current_user.id)
        return envelope(200, message, "Message fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching AI message {message_id}: {e}")
        raise APIError(500, "Failed to fetch message")


@router.put("/messages/{message_id}")
async def update_message(
    message_id: int,
    data: AIPrompt,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Edit one of your own prompts"""
    try:
        message = await AIChatService(db).update_message(message_id, current_user.id, data.message)
        return envelope(200, message, "Message updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error updating AI message {message_id}: {e}")
        raise APIError(500, "Failed to update message")


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await AIChatService(db).delete_message(message_id, current_user.id)
        return envelope(200, None, "Message deleted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error deleting AI message {message_id}: {e}")
        raise APIError(500, "Failed to delete message")

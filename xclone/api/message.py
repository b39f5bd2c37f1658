from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.services.auth_service import get_current_user
from xclone.services.message_service import MessageService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def send_message(
    to: Optional[int] = Form(None),
    text: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Send a direct message"""
    try:
        message = await MessageService(db).send_message(current_user.id, to, text, files)
        return envelope(201, message, "Message sent successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error sending message: {e}")
        raise APIError(500, "Failed to send message")


@router.get("/conversations")
async def get_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Inbox: one entry per counterpart"""
    try:
        conversations = await MessageService(db).get_conversations(current_user.id, page, limit)
        return envelope(200, conversations, "Conversations fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching conversations of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch conversations")


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        count = await MessageService(db).get_unread_count(current_user.id)
        return envelope(200, {"unread_count": count}, "Unread count fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error counting unread messages of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch unread count")


@router.get("/search")
async def search_messages(
    q: str = Query(""),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Search the current user's messages"""
    try:
        results = await MessageService(db).search_messages(current_user.id, q, page, limit)
        return envelope(200, results, "Messages fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error searching messages: {e}")
        raise APIError(500, "Failed to search messages")


@router.get("/conversation/{user_id}")
async def get_conversation(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Messages exchanged with one user"""
    try:
        conversation = await MessageService(db).get_conversation(current_user.id, user_id, page, limit)
        return envelope(200, conversation, "Conversation fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching conversation with user {user_id}: {e}")
        raise APIError(500, "Failed to fetch conversation")


@router.patch("/read/{user_id}")
async def mark_as_read(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark every message from a user as read"""
    try:
        updated = await MessageService(db).mark_as_read(current_user.id, user_id)
        return envelope(200, {"updated": updated}, "Messages marked as read")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error marking messages from user {user_id} read: {e}")
        raise APIError(500, "Failed to mark messages as read")


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a message you sent"""
    try:
        await MessageService(db).delete_message(message_id, current_user.id)
        return envelope(200, None, "Message deleted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error deleting message {message_id}: {e}")
        raise APIError(500, "Failed to delete message")

from typing import List, Optional
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_, desc, func, case
import logging

from xclone.config import settings
from xclone.models.user import User
from xclone.models.message import Message
from xclone.schemas.message_schema import ConversationSummary, MessageResponse
from xclone.schemas.user_schema import UserSummary
from xclone.utils.errors import APIError
from xclone.utils.file_upload import MESSAGE_MEDIA, save_media
from xclone.utils.pagination import paginate, paginated, pagination_meta, get_offset
from xclone.websocket.manager import WebSocketManager, ws_manager

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


def between(user_id: int, other_id: int):
    return or_(
        and_(Message.sender_id == user_id, Message.recipient_id == other_id),
        and_(Message.sender_id == other_id, Message.recipient_id == user_id),
    )


def involving(user_id: int):
    return or_(Message.sender_id == user_id, Message.recipient_id == user_id)


class MessageService:
    def __init__(self, db: AsyncSession, manager: WebSocketManager = ws_manager):
        self.db = db
        self.ws_manager = manager

    async def send_message(
        self,
        sender_id: int,
        recipient_id: Optional[int],
        text: Optional[str],
        files: Optional[List[UploadFile]] = None,
    ) -> MessageResponse:
        """Store a direct message and push it to the recipient's live connections"""
        if recipient_id is None:
            raise APIError(400, "Recipient is required")

        text = (text or "").strip()
        has_files = any(f is not None and f.filename for f in (files or []))
        if not text and not has_files:
            raise APIError(400, "Message cannot be empty")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise APIError(400, f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
        if recipient_id == sender_id:
            raise APIError(400, "You cannot message yourself")

        if await self.db.get(User, recipient_id) is None:
            raise APIError(404, "Recipient not found")

        media = await save_media(files, MESSAGE_MEDIA, settings.MAX_MESSAGE_FILES, "messages")

        message = Message(
            sender_id=sender_id,
            recipient_id=recipient_id,
            text=text or None,
            media=media,
            is_read=False,
        )
        self.db.add(message)
        await self.db.flush()

        response = MessageResponse.model_validate(message)
        self.ws_manager.queue(self.db, recipient_id, "message", response)

        logger.info(f"User {sender_id} sent message {message.id} to user {recipient_id}")
        return response

    async def get_conversation(self, user_id: int, other_id: int, page: int, limit: int) -> dict:
        """
        One page of the messages exchanged with another user, oldest first
        within the page; the other user's messages are marked read.
        """
        other = await self.db.get(User, other_id)
        if other is None:
            raise APIError(404, "User not found")

        stmt = (
            select(Message)
            .where(between(user_id, other_id))
            .order_by(desc(Message.created_at), desc(Message.id))
        )
        messages, total = await paginate(self.db, stmt, page, limit)

        await self.mark_as_read(user_id, other_id)

        items = [
            MessageResponse.model_validate(m).model_copy(
                update={"is_read": True} if m.recipient_id == user_id else {}
            )
            for m in reversed(messages)
        ]
        return {
            "user": UserSummary.model_validate(other),
            **paginated("messages", items, page, limit, total),
        }

    async def get_conversations(self, user_id: int, page: int, limit: int) -> dict:
        """Inbox grouped by counterpart with the last message and unread count"""
        counterpart = case(
            (Message.sender_id == user_id, Message.recipient_id),
            else_=Message.sender_id,
        ).label("counterpart_id")

        per_message = (
            select(counterpart, Message.id.label("message_id"))
            .where(involving(user_id))
            .subquery()
        )
        grouped = (
            select(per_message.c.counterpart_id, func.max(per_message.c.message_id).label("last_message_id"))
            .group_by(per_message.c.counterpart_id)
            .subquery()
        )

        total = (await self.db.execute(select(func.count()).select_from(grouped))).scalar_one()
        rows = (await self.db.execute(
            select(grouped.c.counterpart_id, grouped.c.last_message_id)
            .order_by(desc(grouped.c.last_message_id))
            .offset(get_offset(page, limit))
            .limit(limit)
        )).all()

        counterpart_ids = [row.counterpart_id for row in rows]
        message_ids = [row.last_message_id for row in rows]

        users = {}
        messages = {}
        unread = {}
        if rows:
            users = {
                u.id: u for u in
                (await self.db.execute(select(User).where(User.id.in_(counterpart_ids)))).scalars().all()
            }
            messages = {
                m.id: m for m in
                (await self.db.execute(select(Message).where(Message.id.in_(message_ids)))).scalars().all()
            }
            unread = dict((await self.db.execute(
                select(Message.sender_id, func.count())
                .where(
                    Message.recipient_id == user_id,
                    Message.is_read.is_(False),
                    Message.sender_id.in_(counterpart_ids),
                )
                .group_by(Message.sender_id)
            )).all())

        conversations = [
            ConversationSummary(
                user=UserSummary.model_validate(users[row.counterpart_id]),
                last_message=MessageResponse.model_validate(messages[row.last_message_id]),
                unread_count=unread.get(row.counterpart_id, 0),
            )
            for row in rows
            if row.counterpart_id in users
        ]
        return {"conversations": conversations, **pagination_meta(page, limit, total)}

    async def mark_as_read(self, user_id: int, other_id: int) -> int:
        """Mark everything the other user sent to this user as read"""
        result = await self.db.execute(
            update(Message)
            .where(
                Message.sender_id == other_id,
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_message(self, message_id: int, user_id: int) -> None:
        message = await self.db.get(Message, message_id)
        if message is None or message.sender_id != user_id:
            raise APIError(404, "Message not found")

        await self.db.delete(message)
        await self.db.flush()
        logger.info(f"User {user_id} deleted message {message_id}")

    async def get_unread_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Message).where(
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
        )
        return result.scalar_one()

    async def search_messages(self, user_id: int, query: str, page: int, limit: int) -> dict:
        query = (query or "").strip()
        if not query:
            raise APIError(400, "Search query is required")

        stmt = (
            select(Message)
            .where(involving(user_id), Message.text.ilike(f"%{query}%"))
            .order_by(desc(Message.created_at), desc(Message.id))
        )
        messages, total = await paginate(self.db, stmt, page, limit)
        return paginated("messages", [MessageResponse.model_validate(m) for m in messages], page, limit, total)

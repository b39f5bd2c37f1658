from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, desc, func
import logging

from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.notification import Notification
from xclone.schemas.notification_schema import (
    NotificationResponse,
    NotificationTweet,
    NotificationType,
)
from xclone.schemas.user_schema import UserSummary
from xclone.utils.errors import APIError
from xclone.websocket.manager import WebSocketManager, ws_manager

logger = logging.getLogger(__name__)

NOTIFICATION_LIST_LIMIT = 50


class NotificationService:
    def __init__(self, db: AsyncSession, manager: WebSocketManager = ws_manager):
        self.db = db
        self.ws_manager = manager

    async def notify(
        self,
        user_id: int,
        type: NotificationType,
        from_user_id: Optional[int] = None,
        tweet_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """Create a notification and push it live; self actions are skipped"""
        if from_user_id is not None and user_id == from_user_id:
            return None

        notification = Notification(
            user_id=user_id,
            type=type.value,
            from_user_id=from_user_id,
            tweet_id=tweet_id,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.flush()

        payload = (await self._serialize([notification]))[0]
        self.ws_manager.queue(self.db, user_id, "notification", payload)

        logger.info(f"Notification {type.value} for user {user_id} from {from_user_id}")
        return notification

    async def remove(
        self,
        user_id: int,
        type: NotificationType,
        from_user_id: int,
        tweet_id: Optional[int] = None,
    ) -> None:
        """Delete the notification created by an action that was undone"""
        stmt = delete(Notification).where(
            Notification.user_id == user_id,
            Notification.type == type.value,
            Notification.from_user_id == from_user_id,
        )
        if tweet_id is not None:
            stmt = stmt.where(Notification.tweet_id == tweet_id)
        await self.db.execute(stmt)

    async def _serialize(self, notifications: List[Notification]) -> List[NotificationResponse]:
        user_ids = {n.from_user_id for n in notifications if n.from_user_id}
        tweet_ids = {n.tweet_id for n in notifications if n.tweet_id}

        users = {}
        if user_ids:
            result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
            users = {u.id: u for u in result.scalars().all()}

        tweets = {}
        if tweet_ids:
            result = await self.db.execute(select(Tweet.id, Tweet.content).where(Tweet.id.in_(tweet_ids)))
            tweets = {row.id: row for row in result.all()}

        return [
            NotificationResponse(
                id=n.id,
                type=n.type,
                is_read=n.is_read,
                created_at=n.created_at,
                from_user=UserSummary.model_validate(users[n.from_user_id]) if n.from_user_id in users else None,
                tweet=NotificationTweet(id=tweets[n.tweet_id].id, content=tweets[n.tweet_id].content)
                if n.tweet_id in tweets else None,
            )
            for n in notifications
        ]

    async def get_notifications(self, user_id: int) -> List[NotificationResponse]:
        """Latest notifications with the actor and tweet summary"""
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(desc(Notification.created_at), desc(Notification.id))
            .limit(NOTIFICATION_LIST_LIMIT)
        )
        return await self._serialize(list(result.scalars().all()))

    async def get_unread_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Notification).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    async def mark_read(self, notification_id: int, user_id: int) -> NotificationResponse:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise APIError(404, "Notification not found")

        notification.is_read = True
        await self.db.flush()
        return (await self._serialize([notification]))[0]

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

from typing import List, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
import logging

from xclone.models.user import User
from xclone.models.follow import Follow
from xclone.schemas.follow_schema import FollowToggleResponse
from xclone.schemas.notification_schema import NotificationType
from xclone.schemas.user_schema import UserListItem
from xclone.services.counter_service import add_unique, decrement, get_counter, increment
from xclone.services.notification_service import NotificationService
from xclone.utils.errors import APIError
from xclone.utils.pagination import paginate, paginated

logger = logging.getLogger(__name__)


def following_ids_query(user_id: int):
    """Subquery of the ids a user follows"""
    return select(Follow.following_id).where(Follow.follower_id == user_id)


async def get_following_ids(db: AsyncSession, user_id: int) -> Set[int]:
    result = await db.execute(following_ids_query(user_id))
    return set(result.scalars().all())


class FollowService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def get_follow_relationship(self, follower_id: int, following_id: int):
        result = await self.db.execute(
            select(Follow).where(
                Follow.follower_id == follower_id,
                Follow.following_id == following_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_following(self, follower_id: int, following_id: int) -> bool:
        return await self.get_follow_relationship(follower_id, following_id) is not None

    async def toggle_follow(self, follower_id: int, target_id: int) -> FollowToggleResponse:
        """Follow the target, or unfollow when already following"""
        if follower_id == target_id:
            raise APIError(400, "You cannot follow yourself")

        target = await self.db.get(User, target_id)
        if target is None:
            raise APIError(404, "User not found")

        existing = await self.get_follow_relationship(follower_id, target_id)

        if existing:
            await self.db.delete(existing)
            await decrement(self.db, User, target_id, "followers_count")
            await decrement(self.db, User, follower_id, "following_count")
            await self.notifications.remove(target_id, NotificationType.FOLLOW, follower_id)
            following = False
            logger.info(f"User {follower_id} unfollowed user {target_id}")
        elif await add_unique(self.db, Follow(follower_id=follower_id, following_id=target_id)):
            await increment(self.db, User, target_id, "followers_count")
            await increment(self.db, User, follower_id, "following_count")
            await self.notifications.notify(target_id, NotificationType.FOLLOW, follower_id)
            following = True
            logger.info(f"User {follower_id} started following user {target_id}")
        else:
            # A concurrent request created the same follow
            following = True

        await self.db.flush()
        return FollowToggleResponse(
            following=following,
            followers_count=await get_counter(self.db, User, target_id, "followers_count"),
            following_count=await get_counter(self.db, User, follower_id, "following_count"),
        )

    async def _user_list(self, stmt, viewer_id: int, page: int, limit: int) -> dict:
        users, total = await paginate(self.db, stmt, page, limit)
        viewer_follows = await get_following_ids(self.db, viewer_id)
        items: List[UserListItem] = [
            UserListItem.model_validate(u).model_copy(update={"is_following": u.id in viewer_follows})
            for u in users
        ]
        return paginated("users", items, page, limit, total)

    async def get_followers(self, user_id: int, viewer_id: int, page: int, limit: int) -> dict:
        if await self.db.get(User, user_id) is None:
            raise APIError(404, "User not found")

        stmt = (
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.following_id == user_id)
            .order_by(desc(Follow.created_at), desc(Follow.id))
        )
        return await self._user_list(stmt, viewer_id, page, limit)

    async def get_following(self, user_id: int, viewer_id: int, page: int, limit: int) -> dict:
        if await self.db.get(User, user_id) is None:
            raise APIError(404, "User not found")

        stmt = (
            select(User)
            .join(Follow, Follow.following_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(desc(Follow.created_at), desc(Follow.id))
        )
        return await self._user_list(stmt, viewer_id, page, limit)


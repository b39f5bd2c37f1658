from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
import logging

from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.like import Like
from xclone.schemas.like_schema import LikeToggleResponse
from xclone.schemas.notification_schema import NotificationType
from xclone.schemas.user_schema import UserSummary
from xclone.services.counter_service import add_unique, decrement, get_counter, increment
from xclone.services.notification_service import NotificationService
from xclone.services.tweet_service import TweetService, visible_to
from xclone.utils.errors import APIError
from xclone.utils.pagination import paginate, paginated

logger = logging.getLogger(__name__)


class LikeService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tweets = TweetService(db)
        self.notifications = NotificationService(db)

    async def _get_existing_like(self, user_id: int, tweet_id: int):
        result = await self.db.execute(
            select(Like).where(Like.user_id == user_id, Like.tweet_id == tweet_id)
        )
        return result.scalar_one_or_none()

    async def toggle_like(self, tweet_id: int, user_id: int) -> LikeToggleResponse:
        """Like a tweet, or remove the like when it exists"""
        tweet = await self.tweets.get_visible_tweet(tweet_id, user_id)
        author_id = tweet.author_id

        existing = await self._get_existing_like(user_id, tweet_id)
        if existing:
            await self.db.delete(existing)
            await decrement(self.db, Tweet, tweet_id, "likes_count")
            await self.notifications.remove(author_id, NotificationType.LIKE, user_id, tweet_id)
            liked = False
            logger.info(f"User {user_id} unliked tweet {tweet_id}")
        elif await add_unique(self.db, Like(user_id=user_id, tweet_id=tweet_id)):
            await increment(self.db, Tweet, tweet_id, "likes_count")
            await self.notifications.notify(author_id, NotificationType.LIKE, user_id, tweet_id)
            liked = True
            logger.info(f"User {user_id} liked tweet {tweet_id}")
        else:
            # A concurrent request created the same like
            liked = True

        await self.db.flush()
        return LikeToggleResponse(
            liked=liked,
            likes_count=await get_counter(self.db, Tweet, tweet_id, "likes_count"),
        )

    async def get_tweet_likes(self, tweet_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """Users who liked a tweet, most recent first"""
        await self.tweets.get_visible_tweet(tweet_id, viewer_id)

        stmt = (
            select(User)
            .join(Like, Like.user_id == User.id)
            .where(Like.tweet_id == tweet_id)
            .order_by(desc(Like.created_at), desc(Like.id))
        )
        users, total = await paginate(self.db, stmt, page, limit)
        return paginated("users", [UserSummary.model_validate(u) for u in users], page, limit, total)

    async def get_user_liked_tweets(self, user_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """Tweets a user liked that the viewer may see"""
        if await self.db.get(User, user_id) is None:
            raise APIError(404, "User not found")

        stmt = (
            select(Tweet)
            .join(Like, Like.tweet_id == Tweet.id)
            .where(Like.user_id == user_id, visible_to(viewer_id))
            .order_by(desc(Like.created_at), desc(Like.id))
        )
        tweets, total = await paginate(self.db, stmt, page, limit)
        return paginated("tweets", await self.tweets.build_views(tweets, viewer_id), page, limit, total)

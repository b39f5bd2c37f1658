from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
import logging

from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.retweet import Retweet
from xclone.schemas.notification_schema import NotificationType
from xclone.schemas.retweet_schema import RetweetResponse, RetweetStatus
from xclone.schemas.user_schema import UserSummary
from xclone.services.counter_service import add_unique, decrement, increment
from xclone.services.notification_service import NotificationService
from xclone.services.tweet_service import TweetService, visible_to
from xclone.utils.errors import APIError
from xclone.utils.pagination import paginate, paginated

logger = logging.getLogger(__name__)


class RetweetService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tweets = TweetService(db)
        self.notifications = NotificationService(db)

    async def get_retweet(self, user_id: int, tweet_id: int) -> Optional[Retweet]:
        result = await self.db.execute(
            select(Retweet).where(Retweet.user_id == user_id, Retweet.tweet_id == tweet_id)
        )
        return result.scalar_one_or_none()

    async def create_retweet(self, tweet_id: int, user_id: int, comment: Optional[str] = None) -> RetweetResponse:
        tweet = await self.tweets.get_visible_tweet(tweet_id, user_id)
        author_id = tweet.author_id

        if await self.get_retweet(user_id, tweet_id):
            raise APIError(409, "You have already retweeted this tweet")

        comment = comment.strip() if comment else None
        retweet = Retweet(user_id=user_id, tweet_id=tweet_id, comment=comment or None)
        if not await add_unique(self.db, retweet):
            raise APIError(409, "You have already retweeted this tweet")

        await increment(self.db, Tweet, tweet_id, "retweet_count")
        await increment(self.db, User, user_id, "tweets_count")
        await self.notifications.notify(author_id, NotificationType.RETWEET, user_id, tweet_id)

        logger.info(f"User {user_id} retweeted tweet {tweet_id}")
        return (await self._serialize([retweet], user_id))[0]

    async def remove_retweet(self, tweet_id: int, user_id: int) -> None:
        retweet = await self.get_retweet(user_id, tweet_id)
        if retweet is None:
            raise APIError(404, "Retweet not found")

        tweet = await self.db.get(Tweet, tweet_id)
        await self.db.delete(retweet)
        await decrement(self.db, Tweet, tweet_id, "retweet_count")
        await decrement(self.db, User, user_id, "tweets_count")
        if tweet is not None:
            await self.notifications.remove(tweet.author_id, NotificationType.RETWEET, user_id, tweet_id)

        await self.db.flush()
        logger.info(f"User {user_id} removed retweet of tweet {tweet_id}")

    async def _serialize(self, retweets: List[Retweet], viewer_id: int) -> List[RetweetResponse]:
        """Attach the retweeting user and the viewer's view of the tweet"""
        if not retweets:
            return []

        user_ids = {r.user_id for r in retweets}
        users = {
            u.id: UserSummary.model_validate(u)
            for u in (await self.db.execute(select(User).where(User.id.in_(user_ids)))).scalars().all()
        }

        tweet_ids = {r.tweet_id for r in retweets}
        tweets = (await self.db.execute(
            select(Tweet).where(Tweet.id.in_(tweet_ids)).execution_options(populate_existing=True)
        )).scalars().all()
        views = {v.id: v for v in await self.tweets.build_views(tweets, viewer_id)}

        return [
            RetweetResponse.model_validate(r).model_copy(update={
                "user": users.get(r.user_id),
                "tweet": views.get(r.tweet_id),
            })
            for r in retweets
        ]

    async def get_tweet_retweets(self, tweet_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """Who retweeted a tweet, newest first"""
        await self.tweets.get_visible_tweet(tweet_id, viewer_id)

        stmt = (
            select(Retweet)
            .where(Retweet.tweet_id == tweet_id)
            .order_by(desc(Retweet.created_at), desc(Retweet.id))
        )
        retweets, total = await paginate(self.db, stmt, page, limit)
        items = [r.model_copy(update={"tweet": None}) for r in await self._serialize(retweets, viewer_id)]
        return paginated("retweets", items, page, limit, total)

    async def get_user_retweets(self, user_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """A user's retweets of tweets the viewer may see"""
        if await self.db.get(User, user_id) is None:
            raise APIError(404, "User not found")

        stmt = (
            select(Retweet)
            .join(Tweet, Tweet.id == Retweet.tweet_id)
            .where(Retweet.user_id == user_id, visible_to(viewer_id))
            .order_by(desc(Retweet.created_at), desc(Retweet.id))
        )
        retweets, total = await paginate(self.db, stmt, page, limit)
        return paginated("retweets", await self._serialize(retweets, viewer_id), page, limit, total)

    async def check_retweet_status(self, tweet_id: int, user_id: int) -> RetweetStatus:
        await self.tweets.get_tweet_or_404(tweet_id)
        retweet = await self.get_retweet(user_id, tweet_id)
        if retweet is None:
            return RetweetStatus(is_retweeted=False)
        return RetweetStatus(is_retweeted=True, retweet_id=retweet.id, comment=retweet.comment)

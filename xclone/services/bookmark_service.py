from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
import logging

from xclone.models.tweet import Tweet
from xclone.models.bookmark import Bookmark
from xclone.schemas.like_schema import BookmarkToggleResponse
from xclone.services.counter_service import add_unique
from xclone.services.tweet_service import TweetService, visible_to
from xclone.utils.pagination import paginate, paginated

logger = logging.getLogger(__name__)


class BookmarkService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tweets = TweetService(db)

    async def toggle_bookmark(self, tweet_id: int, user_id: int) -> BookmarkToggleResponse:
        await self.tweets.get_visible_tweet(tweet_id, user_id)

        result = await self.db.execute(
            select(Bookmark).where(Bookmark.user_id == user_id, Bookmark.tweet_id == tweet_id)
        )
        existing = result.scalar_one_or_none()

        if existing:
            await self.db.delete(existing)
            await self.db.flush()
            logger.info(f"User {user_id} removed bookmark on tweet {tweet_id}")
            return BookmarkToggleResponse(bookmarked=False)

        await add_unique(self.db, Bookmark(user_id=user_id, tweet_id=tweet_id))
        logger.info(f"User {user_id} bookmarked tweet {tweet_id}")
        return BookmarkToggleResponse(bookmarked=True)

    async def get_user_bookmarks(self, user_id: int, page: int, limit: int) -> dict:
        """Bookmarked tweets, most recently saved first, annotated for the owner"""
        stmt = (
            select(Tweet)
            .join(Bookmark, Bookmark.tweet_id == Tweet.id)
            .where(Bookmark.user_id == user_id, visible_to(user_id))
            .order_by(desc(Bookmark.created_at), desc(Bookmark.id))
        )
        tweets, total = await paginate(self.db, stmt, page, limit)
        return paginated("tweets", await self.tweets.build_views(tweets, user_id), page, limit, total)

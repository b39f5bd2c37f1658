from typing import Dict, List, Optional, Sequence, Set
from datetime import datetime
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, and_, or_, desc, asc
import logging

from xclone.config import settings
from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.like import Like
from xclone.models.bookmark import Bookmark
from xclone.models.retweet import Retweet
from xclone.models.notification import Notification
from xclone.schemas.notification_schema import NotificationType
from xclone.schemas.tweet_schema import QuotedTweet, TweetResponse, Visibility
from xclone.schemas.user_schema import UserSummary
from xclone.services.counter_service import decrement, increment
from xclone.services.follow_service import following_ids_query, get_following_ids
from xclone.services.notification_service import NotificationService
from xclone.utils.errors import APIError
from xclone.utils.file_upload import TWEET_MEDIA, save_media
from xclone.utils.pagination import paginate, paginated

logger = logging.getLogger(__name__)

MAX_TWEET_LENGTH = 280


def visible_to(viewer_id: int):
    """
    SQL condition for tweets a viewer may see.

    public: everyone; protected: the author and the author's followers;
    private: the author only.
    """
    return or_(
        Tweet.visibility == Visibility.PUBLIC.value,
        Tweet.author_id == viewer_id,
        and_(
            Tweet.visibility == Visibility.PROTECTED.value,
            Tweet.author_id.in_(following_ids_query(viewer_id)),
        ),
    )


def can_view(tweet: Tweet, viewer_id: int, following: Set[int]) -> bool:
    if tweet.visibility == Visibility.PUBLIC.value or tweet.author_id == viewer_id:
        return True
    if tweet.visibility == Visibility.PROTECTED.value:
        return tweet.author_id in following
    return False


def newest_first(stmt):
    return stmt.order_by(desc(Tweet.created_at), desc(Tweet.id))


def validate_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise APIError(400, "Tweet content is required")
    if len(content) > MAX_TWEET_LENGTH:
        raise APIError(400, f"Tweet content cannot exceed {MAX_TWEET_LENGTH} characters")
    return content


class TweetService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def get_tweet_or_404(self, tweet_id: int) -> Tweet:
        tweet = await self.db.get(Tweet, tweet_id)
        if tweet is None:
            raise APIError(404, "Tweet not found")
        return tweet

    async def get_visible_tweet(self, tweet_id: int, viewer_id: int) -> Tweet:
        """Fetch a tweet the viewer is allowed to see (404 missing, 403 hidden)"""
        tweet = await self.get_tweet_or_404(tweet_id)
        following = await get_following_ids(self.db, viewer_id)
        if not can_view(tweet, viewer_id, following):
            raise APIError(403, "You do not have permission to view this tweet")
        return tweet

    async def build_views(self, tweets: Sequence[Tweet], viewer_id: int) -> List[TweetResponse]:
        """
        Assemble tweets for one viewer.

        Authors, quoted tweets and the viewer's likes, retweets and bookmarks
        are loaded in batches; quoted tweets the viewer cannot see are
        replaced by None.
        """
        if not tweets:
            return []

        tweet_ids = [t.id for t in tweets]
        following = await get_following_ids(self.db, viewer_id)

        quote_ids = {t.quote_of_id for t in tweets if t.quote_of_id}
        quoted: Dict[int, Tweet] = {}
        if quote_ids:
            result = await self.db.execute(
                select(Tweet).where(Tweet.id.in_(quote_ids)).execution_options(populate_existing=True)
            )
            quoted = {
                q.id: q for q in result.scalars().all()
                if can_view(q, viewer_id, following)
            }

        author_ids = {t.author_id for t in tweets} | {q.author_id for q in quoted.values()}
        result = await self.db.execute(select(User).where(User.id.in_(author_ids)))
        authors = {u.id: UserSummary.model_validate(u) for u in result.scalars().all()}

        async def viewer_set(model) -> Set[int]:
            rows = await self.db.execute(
                select(model.tweet_id).where(model.user_id == viewer_id, model.tweet_id.in_(tweet_ids))
            )
            return set(rows.scalars().all())

        liked = await viewer_set(Like)
        retweeted = await viewer_set(Retweet)
        bookmarked = await viewer_set(Bookmark)

        views = []
        for tweet in tweets:
            quoted_view = None
            if tweet.quote_of_id in quoted:
                q = quoted[tweet.quote_of_id]
                quoted_view = QuotedTweet.model_validate(q).model_copy(update={"author": authors.get(q.author_id)})

            view = TweetResponse.model_validate(tweet).model_copy(update={
                "author": authors.get(tweet.author_id),
                "quoted_tweet": quoted_view,
                "is_liked": tweet.id in liked,
                "is_retweeted": tweet.id in retweeted,
                "is_bookmarked": tweet.id in bookmarked,
                "is_following_author": tweet.author_id in following,
            })
            views.append(view)
        return views

    async def build_view(self, tweet: Tweet, viewer_id: int) -> TweetResponse:
        return (await self.build_views([tweet], viewer_id))[0]

    async def _page(self, stmt, viewer_id: int, page: int, limit: int) -> dict:
        tweets, total = await paginate(self.db, stmt, page, limit)
        return paginated("tweets", await self.build_views(tweets, viewer_id), page, limit, total)

    async def create_tweet(
        self,
        author_id: int,
        content: Optional[str],
        visibility: Visibility = Visibility.PUBLIC,
        reply_to_id: Optional[int] = None,
        quote_of_id: Optional[int] = None,
        files: Optional[List[UploadFile]] = None,
    ) -> TweetResponse:
        """Create a tweet, reply or quote"""
        content = validate_content(content)

        parent = None
        if reply_to_id is not None:
            parent = await self.get_visible_tweet(reply_to_id, author_id)

        quoted = None
        if quote_of_id is not None:
            quoted = await self.get_visible_tweet(quote_of_id, author_id)

        media = await save_media(files, TWEET_MEDIA, settings.MAX_TWEET_FILES, "tweets")

        tweet = Tweet(
            author_id=author_id,
            content=content,
            media=media,
            visibility=visibility.value,
            reply_to_id=parent.id if parent else None,
            is_reply=parent is not None,
            quote_of_id=quoted.id if quoted else None,
            is_quote=quoted is not None,
        )
        self.db.add(tweet)
        await self.db.flush()

        await increment(self.db, User, author_id, "tweets_count")

        if parent is not None:
            await increment(self.db, Tweet, parent.id, "replies_count")
            await self.notifications.notify(parent.author_id, NotificationType.REPLY, author_id, tweet.id)

        if quoted is not None:
            await increment(self.db, Tweet, quoted.id, "retweet_count")

        logger.info(f"User {author_id} created tweet {tweet.id}")
        return await self.build_view(tweet, author_id)

    async def get_tweet(self, tweet_id: int, viewer_id: int) -> TweetResponse:
        tweet = await self.get_visible_tweet(tweet_id, viewer_id)
        return await self.build_view(tweet, viewer_id)

    async def get_user_tweets(self, user_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """Non-reply tweets of one user, newest first"""
        if await self.db.get(User, user_id) is None:
            raise APIError(404, "User not found")

        stmt = newest_first(
            select(Tweet).where(
                Tweet.author_id == user_id,
                Tweet.is_reply.is_(False),
                visible_to(viewer_id),
            )
        )
        return await self._page(stmt, viewer_id, page, limit)

    async def get_timeline(self, viewer_id: int, page: int, limit: int) -> dict:
        """
        Home timeline: posts by followed accounts and the viewer plus public
        posts, replies excluded, newest first.
        """
        stmt = newest_first(
            select(Tweet).where(
                Tweet.is_reply.is_(False),
                or_(
                    Tweet.author_id == viewer_id,
                    Tweet.author_id.in_(following_ids_query(viewer_id)),
                    Tweet.visibility == Visibility.PUBLIC.value,
                ),
                visible_to(viewer_id),
            )
        )
        return await self._page(stmt, viewer_id, page, limit)

    async def update_tweet(
        self,
        tweet_id: int,
        user_id: int,
        content: Optional[str],
        visibility: Optional[Visibility] = None,
        files: Optional[List[UploadFile]] = None,
    ) -> TweetResponse:
        tweet = await self.get_tweet_or_404(tweet_id)
        if tweet.author_id != user_id:
            raise APIError(403, "You can only update your own tweets")
        if tweet.is_reply or tweet.is_quote:
            raise APIError(400, "Replies and quotes cannot be edited")

        has_files = any(f is not None and f.filename for f in (files or []))
        if content is None and visibility is None and not has_files:
            raise APIError(400, "Nothing to update")

        if content is not None:
            tweet.content = validate_content(content)
        if visibility is not None:
            tweet.visibility = visibility.value

        media = await save_media(files, TWEET_MEDIA, settings.MAX_TWEET_FILES, "tweets")
        if media:
            tweet.media = media

        tweet.updated_at = datetime.utcnow()
        await self.db.flush()

        logger.info(f"User {user_id} updated tweet {tweet_id}")
        return await self.build_view(tweet, user_id)

    async def delete_tweet(self, tweet_id: int, user_id: int) -> None:
        """Delete a tweet with its engagement rows, keeping every counter in step"""
        tweet = await self.get_tweet_or_404(tweet_id)
        if tweet.author_id != user_id:
            raise APIError(403, "You can only delete your own tweets")

        if tweet.is_reply and tweet.reply_to_id:
            await decrement(self.db, Tweet, tweet.reply_to_id, "replies_count")
        if tweet.is_quote and tweet.quote_of_id:
            await decrement(self.db, Tweet, tweet.quote_of_id, "retweet_count")
        await decrement(self.db, User, tweet.author_id, "tweets_count")

        # retweets of this tweet counted towards their owners' tweets_count
        retweeters = (await self.db.execute(
            select(Retweet.user_id).where(Retweet.tweet_id == tweet_id)
        )).scalars().all()
        await decrement(self.db, User, retweeters, "tweets_count")

        await self.db.execute(delete(Like).where(Like.tweet_id == tweet_id))
        await self.db.execute(delete(Bookmark).where(Bookmark.tweet_id == tweet_id))
        await self.db.execute(delete(Retweet).where(Retweet.tweet_id == tweet_id))
        await self.db.execute(delete(Notification).where(Notification.tweet_id == tweet_id))

        # children keep existing without their parent
        await self.db.execute(
            update(Tweet).where(Tweet.reply_to_id == tweet_id).values(reply_to_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Tweet).where(Tweet.quote_of_id == tweet_id).values(quote_of_id=None)
            .execution_options(synchronize_session=False)
        )

        await self.db.delete(tweet)
        await self.db.flush()
        logger.info(f"User {user_id} deleted tweet {tweet_id}")

    async def get_tweet_replies(self, tweet_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """Replies oldest first, together with the parent tweet"""
        parent = await self.get_visible_tweet(tweet_id, viewer_id)

        stmt = (
            select(Tweet)
            .where(Tweet.reply_to_id == tweet_id, visible_to(viewer_id))
            .order_by(asc(Tweet.created_at), asc(Tweet.id))
        )
        replies, total = await paginate(self.db, stmt, page, limit)
        return {
            "tweet": await self.build_view(parent, viewer_id),
            **paginated("replies", await self.build_views(replies, viewer_id), page, limit, total),
        }

    async def toggle_pin(self, tweet_id: int, user_id: int) -> TweetResponse:
        tweet = await self.get_tweet_or_404(tweet_id)
        if tweet.author_id != user_id:
            raise APIError(403, "You can only pin your own tweets")

        tweet.pinned = not tweet.pinned
        await self.db.flush()
        return await self.build_view(tweet, user_id)

    async def search_tweets(self, query: str, viewer_id: int, page: int, limit: int) -> dict:
        query = (query or "").strip()
        if not query:
            raise APIError(400, "Search query is required")

        stmt = newest_first(
            select(Tweet).where(
                Tweet.content.ilike(f"%{query}%"),
                Tweet.is_reply.is_(False),
                visible_to(viewer_id),
            )
        )
        return await self._page(stmt, viewer_id, page, limit)

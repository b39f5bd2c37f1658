"""
Denormalized counters.

Counters are changed with single UPDATE statements so concurrent requests
never overwrite each other, and can be recomputed from the join tables when
they drift. updated_at is left untouched. In-memory instances are not
synchronized; read fresh values with get_counter.
"""
import logging
from typing import Dict, Iterable

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.like import Like
from xclone.models.retweet import Retweet
from xclone.models.follow import Follow
from xclone.models.community import Community, CommunityMember

logger = logging.getLogger(__name__)


async def increment(db: AsyncSession, model, row_id: int, field: str, amount: int = 1) -> None:
    column = getattr(model, field)
    await db.execute(
        update(model)
        .where(model.id == row_id)
        .values({field: column + amount, "updated_at": model.updated_at})
        .execution_options(synchronize_session=False)
    )


async def decrement(db: AsyncSession, model, row_ids, field: str) -> None:
    """Decrease by one without going below zero; accepts one id or many"""
    ids = [row_ids] if isinstance(row_ids, int) else list(row_ids)
    if not ids:
        return
    column = getattr(model, field)
    await db.execute(
        update(model)
        .where(model.id.in_(ids))
        .values({field: case((column > 0, column - 1), else_=0), "updated_at": model.updated_at})
        .execution_options(synchronize_session=False)
    )


async def get_counter(db: AsyncSession, model, row_id: int, field: str) -> int:
    result = await db.execute(select(getattr(model, field)).where(model.id == row_id))
    return result.scalar_one_or_none() or 0


async def add_unique(db: AsyncSession, instance) -> bool:
    """
    Insert a join row guarded by a unique constraint.

    Returns False when a concurrent request already inserted the same pair;
    the session is rolled back in that case.
    """
    db.add(instance)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Duplicate {type(instance).__name__} ignored")
        return False
    return True


async def _counts(db: AsyncSession, column) -> Dict[int, int]:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {row_id: count for row_id, count in result.all()}


async def _apply(db: AsyncSession, model, field: str, ids: Iterable[int], truth: Dict[int, int]) -> int:
    """Write the true values back, returning how many rows were fixed"""
    fixed = 0
    column = getattr(model, field)
    current = dict((await db.execute(select(model.id, column).where(model.id.in_(list(ids))))).all())
    for row_id, value in current.items():
        expected = truth.get(row_id, 0)
        if value != expected:
            await db.execute(update(model).where(model.id == row_id).values({field: expected}))
            fixed += 1
    return fixed


async def reconcile_counters(db: AsyncSession) -> Dict[str, int]:
    """
    Recompute every denormalized counter from the underlying rows.

    Returns the number of corrected rows per counter.
    """
    user_ids = list((await db.execute(select(User.id))).scalars().all())
    tweet_ids = list((await db.execute(select(Tweet.id))).scalars().all())
    community_ids = list((await db.execute(select(Community.id))).scalars().all())

    # tweets_count covers authored tweets plus retweets
    authored = await _counts(db, Tweet.author_id)
    retweeted = await _counts(db, Retweet.user_id)
    tweets_total = {
        uid: authored.get(uid, 0) + retweeted.get(uid, 0)
        for uid in set(authored) | set(retweeted)
    }

    # quotes count as retweets of the quoted tweet
    retweets_of = await _counts(db, Retweet.tweet_id)
    quotes_of = dict((await db.execute(
        select(Tweet.quote_of_id, func.count())
        .where(Tweet.quote_of_id.is_not(None))
        .group_by(Tweet.quote_of_id)
    )).all())
    retweet_total = {
        tid: retweets_of.get(tid, 0) + quotes_of.get(tid, 0)
        for tid in set(retweets_of) | set(quotes_of)
    }

    replies_of = dict((await db.execute(
        select(Tweet.reply_to_id, func.count())
        .where(Tweet.reply_to_id.is_not(None))
        .group_by(Tweet.reply_to_id)
    )).all())

    report = {
        "followers_count": await _apply(db, User, "followers_count", user_ids,
                                        await _counts(db, Follow.following_id)),
        "following_count": await _apply(db, User, "following_count", user_ids,
                                        await _counts(db, Follow.follower_id)),
        "tweets_count": await _apply(db, User, "tweets_count", user_ids, tweets_total),
        "likes_count": await _apply(db, Tweet, "likes_count", tweet_ids, await _counts(db, Like.tweet_id)),
        "replies_count": await _apply(db, Tweet, "replies_count", tweet_ids, replies_of),
        "retweet_count": await _apply(db, Tweet, "retweet_count", tweet_ids, retweet_total),
        "members_count": await _apply(db, Community, "members_count", community_ids,
                                      await _counts(db, CommunityMember.community_id)),
    }

    logger.info(f"Counter reconciliation finished: {report}")
    return report

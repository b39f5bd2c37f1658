import pytest
from sqlalchemy import select, update

from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.community import Community
from xclone.models.follow import Follow
from xclone.services.counter_service import add_unique, decrement, get_counter, increment, reconcile_counters


@pytest.mark.asyncio
async def test_decrement_never_goes_negative(db_session, alice):
    await decrement(db_session, User, alice.id, "followers_count")
    await db_session.commit()

    assert await get_counter(db_session, User, alice.id, "followers_count") == 0


@pytest.mark.asyncio
async def test_counter_updates_leave_updated_at(db_session, alice):
    before = (await db_session.execute(select(User.updated_at).where(User.id == alice.id))).scalar_one()

    await increment(db_session, User, alice.id, "tweets_count", 3)
    await db_session.commit()

    after = (await db_session.execute(select(User.updated_at).where(User.id == alice.id))).scalar_one()
    assert after == before
    assert await get_counter(db_session, User, alice.id, "tweets_count") == 3


@pytest.mark.asyncio
async def test_add_unique_reports_duplicate(db_session, alice, bob):
    db_session.add(Follow(follower_id=bob.id, following_id=alice.id))
    await db_session.commit()

    assert await add_unique(db_session, Follow(follower_id=bob.id, following_id=alice.id)) is False
    assert await add_unique(db_session, Follow(follower_id=alice.id, following_id=bob.id)) is True
    await db_session.commit()

    follows = (await db_session.execute(select(Follow))).scalars().all()
    assert len(follows) == 2


@pytest.mark.asyncio
async def test_reconcile_counters(client, session_factory, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "count me")
    await post_tweet(bob, "quote", quote_of=tweet["id"])
    await post_tweet(bob, "reply", reply_to=tweet["id"])
    await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)
    await client.post(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)
    await client.post(f"/api/v1/follow/{alice.id}", headers=bob.headers)
    community = (await client.post("/api/v1/community/", json={"name": "Counters"}, headers=alice.headers)).json()["data"]

    async with session_factory() as session:
        # a consistent database needs no fixes
        assert set((await reconcile_counters(session)).values()) == {0}

        await session.execute(update(User).where(User.id == alice.id).values(followers_count=7, tweets_count=0))
        await session.execute(update(User).where(User.id == bob.id).values(tweets_count=99))
        await session.execute(
            update(Tweet).where(Tweet.id == tweet["id"]).values(likes_count=5, replies_count=0, retweet_count=0)
        )
        await session.execute(update(Community).where(Community.id == community["id"]).values(members_count=0))
        await session.commit()

    async with session_factory() as session:
        report = await reconcile_counters(session)
        await session.commit()

    assert report["followers_count"] == 1
    assert report["tweets_count"] == 2
    assert report["likes_count"] == 1
    assert report["replies_count"] == 1
    assert report["retweet_count"] == 1
    assert report["members_count"] == 1
    assert report["following_count"] == 0

    async with session_factory() as session:
        assert await get_counter(session, User, alice.id, "followers_count") == 1
        assert await get_counter(session, User, alice.id, "tweets_count") == 1
        # two authored tweets plus one retweet
        assert await get_counter(session, User, bob.id, "tweets_count") == 3
        assert await get_counter(session, Tweet, tweet["id"], "likes_count") == 1
        assert await get_counter(session, Tweet, tweet["id"], "replies_count") == 1
        # one retweet plus one quote
        assert await get_counter(session, Tweet, tweet["id"], "retweet_count") == 2
        assert await get_counter(session, Community, community["id"], "members_count") == 1

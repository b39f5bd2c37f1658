import pytest

from xclone.services.like_service import LikeService


async def _notifications(client, user):
    return (await client.get("/api/v1/notification/", headers=user.headers)).json()["data"]


async def _profile(client, viewer, user):
    response = await client.get(f"/api/v1/user/profile/{user.username}", headers=viewer.headers)
    return response.json()["data"]


# Likes

@pytest.mark.asyncio
async def test_toggle_like(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "like me")

    response = await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"liked": True, "likes_count": 1}

    notifications = await _notifications(client, alice)
    assert [(n["type"], n["from_user"]["id"]) for n in notifications] == [("like", bob.id)]

    viewed = (await client.get(f"/api/v1/tweet/{tweet['id']}", headers=bob.headers)).json()["data"]
    assert viewed["is_liked"] is True
    assert viewed["likes_count"] == 1

    response = await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)
    assert response.json()["data"] == {"liked": False, "likes_count": 0}
    assert await _notifications(client, alice) == []


@pytest.mark.asyncio
async def test_liking_own_tweet_does_not_notify(client, alice, post_tweet):
    tweet = await post_tweet(alice, "self love")

    response = await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=alice.headers)

    assert response.json()["data"]["liked"] is True
    assert await _notifications(client, alice) == []


@pytest.mark.asyncio
async def test_like_hidden_tweet(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "private", visibility="private")

    response = await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_like_missing_tweet(client, bob):
    response = await client.post("/api/v1/like/tweet/424242", headers=bob.headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_tweet_likes_and_user_likes(client, alice, bob, carol, post_tweet):
    tweet = await post_tweet(alice, "popular")
    await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)
    await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=carol.headers)

    response = await client.get(f"/api/v1/like/tweet/{tweet['id']}", headers=alice.headers)
    data = response.json()["data"]
    assert [u["id"] for u in data["users"]] == [carol.id, bob.id]
    assert data["total"] == 2

    response = await client.get(f"/api/v1/like/user/{bob.id}", headers=alice.headers)
    assert [t["id"] for t in response.json()["data"]["tweets"]] == [tweet["id"]]


@pytest.mark.asyncio
async def test_concurrent_duplicate_like_reports_existing_state(client, alice, bob, post_tweet, monkeypatch):
    tweet = await post_tweet(alice, "race me")
    await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)

    async def missed_lookup(self, user_id, tweet_id):
        return None

    # the second request does not see the first like and hits the unique constraint
    monkeypatch.setattr(LikeService, "_get_existing_like", missed_lookup)
    response = await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=bob.headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"liked": True, "likes_count": 1}
    assert len(await _notifications(client, alice)) == 1


# Bookmarks

@pytest.mark.asyncio
async def test_toggle_bookmark(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "save for later")

    response = await client.post(f"/api/v1/bookmark/{tweet['id']}", headers=bob.headers)
    assert response.json()["data"] == {"bookmarked": True}

    response = await client.get("/api/v1/bookmark/", headers=bob.headers)
    tweets = response.json()["data"]["tweets"]
    assert [t["id"] for t in tweets] == [tweet["id"]]
    assert tweets[0]["is_bookmarked"] is True

    # bookmarks are private and never notify
    assert await _notifications(client, alice) == []

    response = await client.post(f"/api/v1/bookmark/{tweet['id']}", headers=bob.headers)
    assert response.json()["data"] == {"bookmarked": False}
    assert (await client.get("/api/v1/bookmark/", headers=bob.headers)).json()["data"]["tweets"] == []


# Retweets

@pytest.mark.asyncio
async def test_create_and_remove_retweet(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "share me")

    response = await client.post(f"/api/v1/retweet/{tweet['id']}", json={"comment": "so true"}, headers=bob.headers)
    assert response.status_code == 201
    retweet = response.json()["data"]
    assert retweet["comment"] == "so true"
    assert retweet["user"]["id"] == bob.id
    assert retweet["tweet"]["retweet_count"] == 1
    assert retweet["tweet"]["is_retweeted"] is True

    assert (await _profile(client, bob, bob))["tweets_count"] == 1
    assert [n["type"] for n in await _notifications(client, alice)] == ["retweet"]

    response = await client.get(f"/api/v1/retweet/{tweet['id']}/status", headers=bob.headers)
    assert response.json()["data"] == {"is_retweeted": True, "retweet_id": retweet["id"], "comment": "so true"}

    response = await client.delete(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)
    assert response.status_code == 200
    assert (await _profile(client, bob, bob))["tweets_count"] == 0
    assert await _notifications(client, alice) == []

    viewed = (await client.get(f"/api/v1/tweet/{tweet['id']}", headers=bob.headers)).json()["data"]
    assert viewed["retweet_count"] == 0

    response = await client.delete(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_retweet_without_body(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "share me")

    response = await client.post(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)

    assert response.status_code == 201
    assert response.json()["data"]["comment"] is None


@pytest.mark.asyncio
async def test_duplicate_retweet(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "once only")
    await client.post(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)

    response = await client.post(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)

    assert response.status_code == 409
    viewed = (await client.get(f"/api/v1/tweet/{tweet['id']}", headers=bob.headers)).json()["data"]
    assert viewed["retweet_count"] == 1


@pytest.mark.asyncio
async def test_retweet_listings(client, alice, bob, carol, post_tweet):
    tweet = await post_tweet(alice, "spread")
    await client.post(f"/api/v1/retweet/{tweet['id']}", headers=bob.headers)
    await client.post(f"/api/v1/retweet/{tweet['id']}", headers=carol.headers)

    response = await client.get(f"/api/v1/retweet/{tweet['id']}/users", headers=alice.headers)
    data = response.json()["data"]
    assert [r["user"]["id"] for r in data["retweets"]] == [carol.id, bob.id]
    assert all(r["tweet"] is None for r in data["retweets"])

    response = await client.get("/api/v1/retweet/me", headers=bob.headers)
    assert [r["tweet"]["id"] for r in response.json()["data"]["retweets"]] == [tweet["id"]]

    response = await client.get(f"/api/v1/retweet/user/{carol.id}", headers=alice.headers)
    assert response.json()["data"]["total"] == 1


@pytest.mark.asyncio
async def test_retweet_status_when_not_retweeted(client, alice, bob, post_tweet):
    tweet = await post_tweet(alice, "untouched")

    response = await client.get(f"/api/v1/retweet/{tweet['id']}/status", headers=bob.headers)

    assert response.json()["data"] == {"is_retweeted": False, "retweet_id": None, "comment": None}


# Follows

@pytest.mark.asyncio
async def test_toggle_follow(client, alice, bob):
    response = await client.post(f"/api/v1/follow/{bob.id}", headers=alice.headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"following": True, "followers_count": 1, "following_count": 1}
    assert response.json()["message"] == "User followed successfully"

    notifications = await _notifications(client, bob)
    assert [(n["type"], n["from_user"]["id"]) for n in notifications] == [("follow", alice.id)]

    response = await client.post(f"/api/v1/follow/{bob.id}", headers=alice.headers)
    assert response.json()["data"] == {"following": False, "followers_count": 0, "following_count": 0}
    assert await _notifications(client, bob) == []


@pytest.mark.asyncio
async def test_follow_self(client, alice):
    response = await client.post(f"/api/v1/follow/{alice.id}", headers=alice.headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_follow_unknown_user(client, alice):
    response = await client.post("/api/v1/follow/9999", headers=alice.headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_followers_and_following(client, alice, bob, carol):
    await client.post(f"/api/v1/follow/{alice.id}", headers=bob.headers)
    await client.post(f"/api/v1/follow/{alice.id}", headers=carol.headers)
    await client.post(f"/api/v1/follow/{bob.id}", headers=carol.headers)

    response = await client.get(f"/api/v1/follow/{alice.id}/followers", headers=bob.headers)
    users = response.json()["data"]["users"]
    assert [u["id"] for u in users] == [carol.id, bob.id]
    # flags are relative to the viewer
    assert [u["is_following"] for u in users] == [False, False]

    response = await client.get(f"/api/v1/follow/{carol.id}/following", headers=bob.headers)
    users = response.json()["data"]["users"]
    assert [u["id"] for u in users] == [bob.id, alice.id]
    assert [u["is_following"] for u in users] == [False, True]

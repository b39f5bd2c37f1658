import pytest

from xclone.models.notification import Notification


@pytest.mark.asyncio
async def test_notification_feed_and_unread_count(client, alice, bob, carol, post_tweet):
    tweet = await post_tweet(alice, "notice me")
    await client.post(f"/api/v1/follow/{alice.id}", headers=bob.headers)
    await client.post(f"/api/v1/like/tweet/{tweet['id']}", headers=carol.headers)

    response = await client.get("/api/v1/notification/", headers=alice.headers)

    assert response.status_code == 200
    notifications = response.json()["data"]
    assert [n["type"] for n in notifications] == ["like", "follow"]
    assert notifications[0]["tweet"] == {"id": tweet["id"], "content": "notice me"}
    assert notifications[1]["tweet"] is None
    assert all(n["is_read"] is False for n in notifications)

    response = await client.get("/api/v1/notification/unread-count", headers=alice.headers)
    assert response.json()["data"]["unread_count"] == 2


@pytest.mark.asyncio
async def test_mark_notification_read(client, alice, bob):
    await client.post(f"/api/v1/follow/{alice.id}", headers=bob.headers)
    notification = (await client.get("/api/v1/notification/", headers=alice.headers)).json()["data"][0]

    response = await client.patch(f"/api/v1/notification/{notification['id']}/read", headers=bob.headers)
    assert response.status_code == 404

    response = await client.patch(f"/api/v1/notification/{notification['id']}/read", headers=alice.headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_read"] is True

    response = await client.get("/api/v1/notification/unread-count", headers=alice.headers)
    assert response.json()["data"]["unread_count"] == 0


@pytest.mark.asyncio
async def test_mark_all_notifications_read(client, alice, bob, carol):
    await client.post(f"/api/v1/follow/{alice.id}", headers=bob.headers)
    await client.post(f"/api/v1/follow/{alice.id}", headers=carol.headers)

    response = await client.patch("/api/v1/notification/read-all", headers=alice.headers)

    assert response.status_code == 200
    assert response.json()["data"]["updated"] == 2
    notifications = (await client.get("/api/v1/notification/", headers=alice.headers)).json()["data"]
    assert all(n["is_read"] for n in notifications)


@pytest.mark.asyncio
async def test_notification_list_is_capped(client, db_session, alice, bob):
    db_session.add_all([
        Notification(user_id=alice.id, type="system", from_user_id=bob.id, is_read=False)
        for _ in range(55)
    ])
    await db_session.commit()

    response = await client.get("/api/v1/notification/", headers=alice.headers)

    assert len(response.json()["data"]) == 50
    response = await client.get("/api/v1/notification/unread-count", headers=alice.headers)
    assert response.json()["data"]["unread_count"] == 55
